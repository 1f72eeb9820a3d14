"""Conversion between stored JSON rows and domain models."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from ..core.datetime_utils import parse_datetime, serialize_datetime
from ..core.interfaces import BackingStoreError
from ..core.models import (
    EMAIL_STATUSES,
    ERROR_STATUSES,
    Attachment,
    EmailDraft,
    EmailMessage,
    EmailTemplate,
    TemplateDraft,
)


def email_from_record(row: Mapping[str, Any]) -> EmailMessage:
    """Decode an ``emails`` row."""
    try:
        status = row["status"]
        if status not in EMAIL_STATUSES:
            raise ValueError(f"unknown status {status!r}")
        created_at = parse_datetime(row["created_at"])
        if created_at is None:
            raise ValueError("created_at is required")
        return EmailMessage(
            id=str(row["id"]),
            sender=row.get("from") or "",
            recipient=row.get("to") or "",
            subject=row.get("subject") or "",
            body=row.get("body") or "",
            status=status,
            created_at=created_at,
            cc=_address_list(row.get("cc")),
            bcc=_address_list(row.get("bcc")),
            html=row.get("html") or None,
            sent_at=parse_datetime(row.get("sent_at")),
            delivered_at=parse_datetime(row.get("delivered_at")),
            error_message=(
                row.get("error_message") if status in ERROR_STATUSES else None
            ),
            attachments=tuple(
                attachment_from_record(item) for item in row.get("attachments") or ()
            ),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise BackingStoreError(f"Malformed email record: {exc}") from exc


def attachment_from_record(row: Mapping[str, Any]) -> Attachment:
    """Decode an attachment entry nested in an email row."""
    return Attachment(
        id=str(row["id"]),
        filename=row["filename"],
        content_type=row.get("content_type") or "application/octet-stream",
        size=int(row.get("size") or 0),
        url=row.get("url"),
    )


def attachment_to_record(attachment: Attachment) -> dict[str, Any]:
    """Encode an attachment for storage."""
    record: dict[str, Any] = {
        "id": attachment.id,
        "filename": attachment.filename,
        "content_type": attachment.content_type,
        "size": attachment.size,
    }
    if attachment.url:
        record["url"] = attachment.url
    return record


def draft_to_record(
    draft: EmailDraft, *, status: str, created_at: datetime
) -> dict[str, Any]:
    """Fields inserted for a freshly composed email."""
    record: dict[str, Any] = {
        "from": draft.sender,
        "to": draft.recipient,
        "subject": draft.subject,
        "body": draft.body,
        "status": status,
        "created_at": serialize_datetime(created_at),
    }
    if draft.cc:
        record["cc"] = list(draft.cc)
    if draft.bcc:
        record["bcc"] = list(draft.bcc)
    if draft.html:
        record["html"] = draft.html
    if draft.attachments:
        record["attachments"] = [
            attachment_to_record(item) for item in draft.attachments
        ]
    return record


def email_to_record(message: EmailMessage) -> dict[str, Any]:
    """Encode a full email using the stored column names."""
    return {
        "id": message.id,
        "from": message.sender,
        "to": message.recipient,
        "cc": list(message.cc),
        "bcc": list(message.bcc),
        "subject": message.subject,
        "body": message.body,
        "html": message.html,
        "status": message.status,
        "created_at": serialize_datetime(message.created_at),
        "sent_at": serialize_datetime(message.sent_at),
        "delivered_at": serialize_datetime(message.delivered_at),
        "error_message": message.error_message,
        "attachments": [attachment_to_record(item) for item in message.attachments],
    }


def template_from_record(row: Mapping[str, Any]) -> EmailTemplate:
    """Decode an ``email_templates`` row."""
    try:
        created_at = parse_datetime(row["created_at"])
        if created_at is None:
            raise ValueError("created_at is required")
        return EmailTemplate(
            id=str(row["id"]),
            name=row.get("name") or "",
            subject=row.get("subject") or "",
            body=row.get("body") or "",
            created_at=created_at,
            html=row.get("html") or None,
            variables=tuple(row.get("variables") or ()),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise BackingStoreError(f"Malformed template record: {exc}") from exc


def template_to_record(
    draft: TemplateDraft, *, created_at: datetime | None = None
) -> dict[str, Any]:
    """Fields written when saving or updating a template."""
    record: dict[str, Any] = {
        "name": draft.name,
        "subject": draft.subject,
        "body": draft.body,
        "html": draft.html,
        "variables": list(draft.variables),
    }
    if created_at is not None:
        record["created_at"] = serialize_datetime(created_at)
    return record


def _address_list(value: str | Sequence[str] | None) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(part) for part in value if part)


__all__ = [
    "attachment_from_record",
    "attachment_to_record",
    "draft_to_record",
    "email_from_record",
    "email_to_record",
    "template_from_record",
    "template_to_record",
]
