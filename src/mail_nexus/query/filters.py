"""Immutable filter/sort description of an email list view."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from mail_nexus.core.datetime_utils import start_of_day, start_of_month
from mail_nexus.core.models import (
    EMAIL_CATEGORIES,
    EMAIL_STATUSES,
    OUTBOUND_STATUSES,
    EmailSelection,
)

STATUS_CHOICES: tuple[str, ...] = ("all", *EMAIL_STATUSES)
DATE_RANGES: tuple[str, ...] = ("all", "today", "week", "month", "quarter")
SORT_KEYS: tuple[str, ...] = ("created_at", "sent_at", "subject", "status")
SORT_ORDERS: tuple[str, ...] = ("asc", "desc")

TIMESTAMP_SORT_KEYS: frozenset[str] = frozenset({"created_at", "sent_at"})


@dataclass(frozen=True, slots=True)
class EmailFilters:
    """What the user asked to see and in which order."""

    search: str = ""
    status: str = "all"
    date_range: str = "all"
    sort_by: str = "created_at"
    sort_order: str = "desc"

    def __post_init__(self) -> None:
        _require_choice("status", self.status, STATUS_CHOICES)
        _require_choice("date_range", self.date_range, DATE_RANGES)
        _require_choice("sort_by", self.sort_by, SORT_KEYS)
        _require_choice("sort_order", self.sort_order, SORT_ORDERS)

    @property
    def has_active_filters(self) -> bool:
        """Whether anything narrows the list beyond its category."""
        return bool(self.search) or self.status != "all" or self.date_range != "all"

    def replace(self, **changes: Any) -> EmailFilters:
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    def toggle_order(self) -> EmailFilters:
        """Return a copy sorted in the opposite direction."""
        return self.replace(sort_order="asc" if self.sort_order == "desc" else "desc")

    @classmethod
    def cleared(cls) -> EmailFilters:
        """Default view: everything, newest first."""
        return cls()

    def to_selection(self, category: str, now: datetime) -> EmailSelection:
        """Translate the filters plus ``category`` into source predicates."""
        return EmailSelection(
            statuses=_status_restriction(category, self.status),
            created_since=date_cutoff(self.date_range, now),
            search=self.search,
            order_by=self.sort_by,
            descending=self.sort_order == "desc",
        )


def date_cutoff(date_range: str, now: datetime) -> datetime | None:
    """Earliest creation time included by ``date_range``; ``None`` for all."""
    if date_range == "today":
        return start_of_day(now)
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return start_of_month(now)
    if date_range == "quarter":
        return now - timedelta(days=90)
    if date_range == "all":
        return None
    raise ValueError(f"Unknown date range {date_range!r}")


def category_statuses(category: str) -> frozenset[str] | None:
    """Statuses belonging to ``category``; ``None`` when unrestricted."""
    _require_choice("category", category, EMAIL_CATEGORIES)
    if category == "sent":
        return OUTBOUND_STATUSES
    if category == "received":
        return frozenset({"received"})
    return None


def _status_restriction(category: str, status: str) -> frozenset[str] | None:
    allowed = category_statuses(category)
    if status == "all":
        return allowed
    if allowed is None:
        return frozenset({status})
    return allowed & {status}


def _require_choice(name: str, value: str, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise ValueError(f"Invalid {name} {value!r}; expected one of {choices}")


__all__ = [
    "DATE_RANGES",
    "EmailFilters",
    "SORT_KEYS",
    "SORT_ORDERS",
    "STATUS_CHOICES",
    "TIMESTAMP_SORT_KEYS",
    "category_statuses",
    "date_cutoff",
]
