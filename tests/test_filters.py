"""Tests for the immutable email filter value object."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, timedelta

import pytest

from mail_nexus.core.models import OUTBOUND_STATUSES
from mail_nexus.query.filters import EmailFilters, category_statuses, date_cutoff

from conftest import NOW


def test_defaults_describe_unfiltered_newest_first_view() -> None:
    filters = EmailFilters()

    assert filters.search == ""
    assert filters.status == "all"
    assert filters.date_range == "all"
    assert filters.sort_by == "created_at"
    assert filters.sort_order == "desc"
    assert not filters.has_active_filters


def test_filters_are_frozen() -> None:
    filters = EmailFilters()

    with pytest.raises(dataclasses.FrozenInstanceError):
        filters.search = "invoice"  # type: ignore[misc]


def test_replace_returns_new_value_and_leaves_original() -> None:
    original = EmailFilters()
    updated = original.replace(search="invoice", status="failed")

    assert original.search == ""
    assert updated.search == "invoice"
    assert updated.status == "failed"
    assert updated.has_active_filters


def test_toggle_order_flips_direction() -> None:
    filters = EmailFilters(sort_order="asc")

    assert filters.toggle_order().sort_order == "desc"
    assert filters.toggle_order().toggle_order() == filters


def test_cleared_resets_everything() -> None:
    assert EmailFilters.cleared() == EmailFilters()


@pytest.mark.parametrize(
    "field, value",
    [
        ("status", "archived"),
        ("date_range", "year"),
        ("sort_by", "sender"),
        ("sort_order", "up"),
    ],
)
def test_invalid_choices_are_rejected(field: str, value: str) -> None:
    with pytest.raises(ValueError):
        EmailFilters(**{field: value})


def test_date_cutoffs() -> None:
    now = datetime(2025, 10, 15, 12, 30, tzinfo=UTC)

    assert date_cutoff("all", now) is None
    assert date_cutoff("today", now) == datetime(2025, 10, 15, tzinfo=UTC)
    assert date_cutoff("week", now) == now - timedelta(days=7)
    assert date_cutoff("month", now) == datetime(2025, 10, 1, tzinfo=UTC)
    assert date_cutoff("quarter", now) == now - timedelta(days=90)


def test_category_statuses() -> None:
    assert category_statuses("all") is None
    assert category_statuses("sent") == OUTBOUND_STATUSES
    assert category_statuses("received") == frozenset({"received"})
    with pytest.raises(ValueError):
        category_statuses("drafts")


def test_selection_intersects_status_with_category() -> None:
    sent_failed = EmailFilters(status="failed").to_selection("sent", NOW)
    received_failed = EmailFilters(status="failed").to_selection("received", NOW)
    all_drafts = EmailFilters(status="draft").to_selection("all", NOW)

    assert sent_failed.statuses == frozenset({"failed"})
    assert received_failed.statuses == frozenset()
    assert all_drafts.statuses == frozenset({"draft"})


def test_selection_carries_sort_and_search() -> None:
    selection = EmailFilters(
        search="invoice", sort_by="subject", sort_order="asc", date_range="today"
    ).to_selection("all", NOW)

    assert selection.search == "invoice"
    assert selection.order_by == "subject"
    assert selection.descending is False
    assert selection.created_since == datetime(2025, 10, 15, tzinfo=UTC)
