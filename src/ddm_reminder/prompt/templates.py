"""
ddm-reminder — prompt content rendering.

File: src/ddm_reminder/prompt/templates.py

Purpose
- Turn configuration templates plus the current enforcement and deferral picture into a
  fully rendered :class:`PromptRequest`.
- Decide which affordances the prompt offers: defer, snooze, timed auto-proceed.

Functional requirements
- ``{placeholder}`` tokens are substituted from a fixed variable set; unknown tokens are
  left unchanged so administrators can see typos in the rendered dialog.
- Displayed day counts never go below zero.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, tzinfo

from ddm_reminder.config.schema import ReminderConfig
from ddm_reminder.domain.models import EnforcementRecord, ExhaustedBehavior, UserInfo

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True, slots=True)
class DeferralSummary:
    """Deferral budget as seen at prompt time."""

    remaining: int
    max_at_threshold: int
    used: int

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0


@dataclass(frozen=True, slots=True)
class PromptRequest:
    """Everything the prompt collaborator needs to show one reminder."""

    title: str
    message: str
    infobox: str
    help_message: str
    button1_text: str
    button2_text: str | None
    info_button_text: str
    snooze_option: str | None
    exhausted: bool
    exhausted_behavior: ExhaustedBehavior
    auto_open_delay_seconds: int
    blur_screen: bool
    timeout_seconds: int | None


def render_template(template: str, variables: Mapping[str, object]) -> str:
    """Substitute ``{name}`` tokens; unknown names are kept verbatim."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return str(variables[name])

    return _PLACEHOLDER.sub(_replace, template)


def format_deadline(deadline: datetime, tz: tzinfo | None = None) -> str:
    """``Thu, 13-Nov-2025, 8:59 a.m.`` in local time (or ``tz``)."""

    local = deadline.astimezone(tz)
    hour = local.hour % 12 or 12
    meridiem = "a.m." if local.hour < 12 else "p.m."
    return f"{local.strftime('%a, %d-%b-%Y')}, {hour}:{local.minute:02d} {meridiem}"


def template_variables(
    config: ReminderConfig,
    enforcement: EnforcementRecord,
    deferrals: DeferralSummary,
    user: UserInfo,
    installed_version: str,
    now: datetime,
    *,
    tz: tzinfo | None = None,
) -> dict[str, str]:
    content = config.dialog_content
    support = config.support
    action = "Upgrade" if enforcement.is_upgrade else "Update"
    local_now = now.astimezone(tz)
    return {
        "userFirstName": user.first_name,
        "userFullName": user.full_name,
        "userName": user.user_name,
        "computerName": user.computer_name,
        "serialNumber": user.serial_number,
        "installedVersion": installed_version,
        "targetVersion": enforcement.target_version,
        "targetBuild": enforcement.target_build,
        "action": action,
        "actionLower": action.lower(),
        "softwareUpdateButtonText": "Upgrade Now" if enforcement.is_upgrade else "Restart Now",
        "deadlineFormatted": format_deadline(enforcement.deadline, tz),
        "daysRemaining": str(max(0, enforcement.days_remaining)),
        "hoursRemaining": str(max(0, enforcement.hours_remaining)),
        "deferralsRemaining": str(deferrals.remaining),
        "deferralsUsed": str(deferrals.used),
        "maxDeferrals": str(deferrals.max_at_threshold),
        "dayOfWeek": local_now.strftime("%A"),
        "currentDate": local_now.strftime("%Y-%m-%d"),
        "currentTime": local_now.strftime("%H:%M"),
        "button1Text": content.button1_text,
        "button2Text": content.button2_text,
        "supportTeamName": support.team_name,
        "supportPhone": support.phone,
        "supportEmail": support.email,
        "supportWebsite": support.website,
        "supportKBArticleID": support.kb_article_id,
        "supportKBArticleURL": support.kb_article_url,
        "snoozeMinutes": str(config.deferral.snooze_minutes),
    }


def build_prompt_request(
    config: ReminderConfig,
    enforcement: EnforcementRecord,
    deferrals: DeferralSummary,
    user: UserInfo,
    installed_version: str,
    now: datetime,
    *,
    tz: tzinfo | None = None,
) -> PromptRequest:
    content = config.dialog_content
    policy = config.deferral
    variables = template_variables(
        config, enforcement, deferrals, user, installed_version, now, tz=tz
    )
    exhausted = deferrals.exhausted

    message_template = content.message_template_exhausted if exhausted else content.message_template
    button2_text: str | None = content.button2_text
    snooze_option: str | None = None
    timeout_seconds: int | None = None
    if not exhausted and policy.snooze_enabled:
        snooze_option = render_template(content.snooze_button_text, variables)
        timeout_seconds = config.advanced.dialog_timeout_seconds
    if exhausted:
        if policy.exhausted_behavior is ExhaustedBehavior.AUTO_OPEN_UPDATE:
            button2_text = None
            timeout_seconds = policy.auto_open_delay_seconds
        else:
            # Shown disabled so the user sees why they cannot postpone.
            button2_text = render_template(content.button2_text_exhausted, variables)

    return PromptRequest(
        title=content.title_upgrade if enforcement.is_upgrade else content.title_update,
        message=render_template(message_template, variables),
        infobox=render_template(content.infobox_template, variables),
        help_message=render_template(content.help_message_template, variables),
        button1_text=content.button1_text,
        button2_text=button2_text,
        info_button_text=content.info_button_text,
        snooze_option=snooze_option,
        exhausted=exhausted,
        exhausted_behavior=policy.exhausted_behavior,
        auto_open_delay_seconds=policy.auto_open_delay_seconds,
        blur_screen=enforcement.days_remaining <= config.behavior.days_before_deadline_blurscreen,
        timeout_seconds=timeout_seconds,
    )


__all__ = [
    "DeferralSummary",
    "PromptRequest",
    "build_prompt_request",
    "format_deadline",
    "render_template",
    "template_variables",
]
