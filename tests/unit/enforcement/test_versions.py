"""Dotted version comparison and upgrade detection."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ddm_reminder.enforcement.versions import (
    compare_versions,
    is_major_upgrade,
    is_update_required,
    is_version_sufficient,
    major_component,
    version_components,
)

_versions = st.lists(st.integers(min_value=0, max_value=99), min_size=1, max_size=4).map(
    lambda parts: ".".join(str(part) for part in parts)
)


@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [
        ("15", "15.0.0", 0),
        ("15.1", "15.0.9", 1),
        ("14.7.1", "15.0", -1),
        ("15.10", "15.9", 1),
        ("", "0", 0),
    ],
)
def test_compare_versions(left: str, right: str, expected: int) -> None:
    assert compare_versions(left, right) == expected


def test_non_numeric_components_are_ignored() -> None:
    assert version_components("15.2 beta") == (15,)
    assert version_components("2.4.0") == (2, 4, 0)


def test_update_required_only_when_installed_is_older() -> None:
    assert is_update_required("15.1", "15.2")
    assert not is_update_required("15.2", "15.2")
    assert not is_update_required("15.3", "15.2")


def test_version_sufficient_for_minimum_dialog_release() -> None:
    assert is_version_sufficient("2.4.0", "2.4.0")
    assert is_version_sufficient("2.5", "2.4.0")
    assert not is_version_sufficient("2.3.9", "2.4.0")


def test_major_upgrade_detection() -> None:
    assert is_major_upgrade("14.7", "15.1")
    assert not is_major_upgrade("15.0", "15.1")
    assert major_component("") == "0"


@settings(max_examples=100)
@given(left=_versions, right=_versions)
def test_compare_is_antisymmetric(left: str, right: str) -> None:
    assert compare_versions(left, right) == -compare_versions(right, left)


@settings(max_examples=50)
@given(version=_versions, zeros=st.integers(min_value=0, max_value=3))
def test_trailing_zero_components_do_not_change_ordering(version: str, zeros: int) -> None:
    padded = version + ".0" * zeros
    assert compare_versions(version, padded) == 0
