"""Dotted numeric version comparison."""

from __future__ import annotations

from itertools import zip_longest


def version_components(version: str) -> tuple[int, ...]:
    """Split ``version`` on dots, keeping only numeric components."""

    parts: list[int] = []
    for raw in version.strip().split("."):
        if raw.isdigit():
            parts.append(int(raw))
    return tuple(parts)


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0, or 1; missing trailing components compare as 0."""

    for a, b in zip_longest(version_components(left), version_components(right), fillvalue=0):
        if a < b:
            return -1
        if a > b:
            return 1
    return 0


def is_update_required(installed: str, target: str) -> bool:
    return compare_versions(installed, target) < 0


def is_version_sufficient(installed: str, minimum: str) -> bool:
    return compare_versions(installed, minimum) >= 0


def major_component(version: str) -> str:
    """Integer prefix before the first dot, ``"0"`` when absent."""

    head = version.strip().split(".", 1)[0]
    return head or "0"


def is_major_upgrade(installed: str, target: str) -> bool:
    return major_component(installed) != major_component(target)


__all__ = [
    "compare_versions",
    "is_major_upgrade",
    "is_update_required",
    "is_version_sufficient",
    "major_component",
    "version_components",
]
