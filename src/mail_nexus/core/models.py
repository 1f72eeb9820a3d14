"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal

EmailStatus = Literal["draft", "sent", "delivered", "failed", "bounced", "received"]
EmailCategory = Literal["all", "sent", "received"]

EMAIL_STATUSES: tuple[str, ...] = (
    "draft",
    "sent",
    "delivered",
    "failed",
    "bounced",
    "received",
)
EMAIL_CATEGORIES: tuple[str, ...] = ("all", "sent", "received")

# Statuses only reachable from an outbound send attempt.
OUTBOUND_STATUSES: frozenset[str] = frozenset(
    {"sent", "delivered", "failed", "bounced"}
)
TERMINAL_STATUSES: frozenset[str] = frozenset(
    {"delivered", "failed", "bounced", "received"}
)
ERROR_STATUSES: frozenset[str] = frozenset({"failed", "bounced"})

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"sent", "failed"}),
    "sent": frozenset({"delivered", "failed", "bounced"}),
}


class InvalidTransitionError(ValueError):
    """Raised when a message is moved out of a terminal status."""


@dataclass(frozen=True, slots=True)
class Attachment:
    """Reference to a file attached to an email."""

    id: str
    filename: str
    content_type: str
    size: int
    url: str | None = None

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"Attachment size must be non-negative, got {self.size}")


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class EmailMessage:
    """A stored email, outbound or received."""

    id: str
    sender: str
    recipient: str
    subject: str
    body: str
    status: EmailStatus
    created_at: datetime
    cc: tuple[str, ...] = ()
    bcc: tuple[str, ...] = ()
    html: str | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    error_message: str | None = None
    attachments: tuple[Attachment, ...] = ()

    @property
    def is_terminal(self) -> bool:
        """Whether no further status change is defined."""
        return self.status in TERMINAL_STATUSES

    def transition(
        self,
        status: EmailStatus,
        *,
        at: datetime | None = None,
        error_message: str | None = None,
    ) -> EmailMessage:
        """Return a copy moved to ``status``; terminal messages never move."""
        allowed = _ALLOWED_TRANSITIONS.get(self.status, frozenset())
        if status not in allowed:
            raise InvalidTransitionError(
                f"Cannot move email {self.id} from {self.status!r} to {status!r}"
            )
        changes: dict[str, object] = {
            "status": status,
            "error_message": error_message if status in ERROR_STATUSES else None,
        }
        if status == "sent" and at is not None:
            changes["sent_at"] = at
        elif status == "delivered" and at is not None:
            changes["delivered_at"] = at
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class EmailTemplate:
    """Reusable subject/body pair with ``{{name}}`` placeholders."""

    id: str
    name: str
    subject: str
    body: str
    created_at: datetime
    html: str | None = None
    variables: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class EmailDraft:
    """Fields supplied by the composer when sending a message."""

    sender: str
    recipient: str
    subject: str
    body: str
    cc: tuple[str, ...] = ()
    bcc: tuple[str, ...] = ()
    html: str | None = None
    attachments: tuple[Attachment, ...] = ()


@dataclass(frozen=True, slots=True)
class TemplateDraft:
    """Editable template fields, before the store assigns id and timestamp."""

    name: str
    subject: str
    body: str
    html: str | None = None
    variables: tuple[str, ...] = ()


StatsSource = Literal["aggregate", "computed", "unavailable"]


@dataclass(frozen=True, slots=True)
class EmailStats:
    """Delivery counters shown on the dashboard."""

    total_sent: int = 0
    total_received: int = 0
    total_failed: int = 0
    total_delivered: int = 0
    sent_today: int = 0
    received_today: int = 0
    failed_today: int = 0
    delivery_rate: int = 0
    source: StatsSource = field(default="computed", compare=False)

    @classmethod
    def empty(cls) -> EmailStats:
        """All-zero snapshot used when nothing could be computed."""
        return cls(source="unavailable")


@dataclass(frozen=True, slots=True)
class EmailSelection:
    """Predicates and ordering handed to an email source.

    ``statuses`` of ``None`` means no status restriction; an empty set can
    never match. ``created_since`` is inclusive.
    """

    statuses: frozenset[str] | None = None
    created_since: datetime | None = None
    search: str = ""
    order_by: str = "created_at"
    descending: bool = True


__all__ = [
    "Attachment",
    "EMAIL_CATEGORIES",
    "EMAIL_STATUSES",
    "ERROR_STATUSES",
    "EmailCategory",
    "EmailDraft",
    "EmailMessage",
    "EmailSelection",
    "EmailStats",
    "EmailStatus",
    "EmailTemplate",
    "InvalidTransitionError",
    "OUTBOUND_STATUSES",
    "StatsSource",
    "TERMINAL_STATUSES",
    "TemplateDraft",
]
