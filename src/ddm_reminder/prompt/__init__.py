"""Prompt content and the swiftDialog collaborator."""

from ddm_reminder.prompt.dialog import (
    DialogPrompt,
    PromptCollaborator,
    build_dialog_arguments,
    decode_dialog_result,
    parse_selected_option,
)
from ddm_reminder.prompt.templates import (
    DeferralSummary,
    PromptRequest,
    build_prompt_request,
    format_deadline,
    render_template,
    template_variables,
)

__all__ = [
    "DeferralSummary",
    "DialogPrompt",
    "PromptCollaborator",
    "PromptRequest",
    "build_dialog_arguments",
    "build_prompt_request",
    "decode_dialog_result",
    "format_deadline",
    "parse_selected_option",
    "render_template",
    "template_variables",
]
