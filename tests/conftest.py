"""Shared fixtures for the test-suite."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import pytest

from mail_nexus.core.interfaces import BackingStoreError
from mail_nexus.core.models import EmailMessage, EmailSelection, EmailTemplate
from mail_nexus.query.engine import refine
from mail_nexus.storage.records import email_from_record, template_from_record

# Wednesday noon, mid-month, so every date bucket has a distinct cutoff.
NOW = datetime(2025, 10, 15, 12, 0, tzinfo=UTC)


def make_email(
    email_id: str,
    status: str = "sent",
    created_at: datetime = NOW,
    **overrides: Any,
) -> EmailMessage:
    """Build an email with sensible defaults."""
    fields: dict[str, Any] = {
        "id": email_id,
        "sender": "admin@mailnexus.com",
        "recipient": "user@example.com",
        "subject": f"Subject {email_id}",
        "body": "Body",
        "status": status,
        "created_at": created_at,
    }
    fields.update(overrides)
    return EmailMessage(**fields)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock frozen at :data:`NOW`."""
    return lambda: NOW


class FakeStore:
    """In-memory stand-in for the remote backing store.

    ``select_emails`` ignores pushdown entirely unless ``pushdown`` is set,
    in which case it filters exactly like the remote service would.
    """

    def __init__(
        self,
        emails: list[EmailMessage] | None = None,
        *,
        templates: list[EmailTemplate] | None = None,
        aggregate: Mapping[str, Any] | None = None,
        pushdown: bool = False,
    ) -> None:
        self.emails = list(emails or [])
        self.templates = list(templates or [])
        self.aggregate = aggregate
        self.pushdown = pushdown
        self.fail_on: set[str] = set()
        self.selections: list[EmailSelection] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.invocations: list[tuple[str, dict[str, Any]]] = []
        self.deleted: list[str] = []
        self.closed = False

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise BackingStoreError(f"{operation} failed")

    async def select_emails(self, selection: EmailSelection) -> list[EmailMessage]:
        self._maybe_fail("select_emails")
        self.selections.append(selection)
        if self.pushdown:
            return refine(self.emails, selection)
        return list(self.emails)

    async def call_aggregate(self, name: str) -> Mapping[str, Any] | None:
        self._maybe_fail("call_aggregate")
        assert name == "get_email_stats"
        return self.aggregate

    async def fetch_email(self, email_id: str) -> EmailMessage | None:
        self._maybe_fail("fetch_email")
        return next((item for item in self.emails if item.id == email_id), None)

    async def insert_email(self, fields: Mapping[str, Any]) -> EmailMessage:
        self._maybe_fail("insert_email")
        stored = email_from_record({"id": f"email-{len(self.emails) + 1}", **fields})
        self.emails.append(stored)
        return stored

    async def update_email(self, email_id: str, fields: Mapping[str, Any]) -> None:
        self._maybe_fail("update_email")
        self.updates.append((email_id, dict(fields)))

    async def delete_email(self, email_id: str) -> None:
        self._maybe_fail("delete_email")
        self.deleted.append(email_id)

    async def list_templates(self) -> list[EmailTemplate]:
        self._maybe_fail("list_templates")
        return list(self.templates)

    async def insert_template(self, fields: Mapping[str, Any]) -> EmailTemplate:
        self._maybe_fail("insert_template")
        stored = template_from_record(
            {"id": f"template-{len(self.templates) + 1}", **fields}
        )
        self.templates.append(stored)
        return stored

    async def update_template(
        self, template_id: str, fields: Mapping[str, Any]
    ) -> EmailTemplate:
        self._maybe_fail("update_template")
        return template_from_record(
            {"id": template_id, "created_at": NOW.isoformat(), **fields}
        )

    async def delete_template(self, template_id: str) -> None:
        self._maybe_fail("delete_template")
        self.deleted.append(template_id)

    async def invoke(self, function: str, payload: Mapping[str, Any]) -> Any:
        self._maybe_fail("invoke")
        self.invocations.append((function, dict(payload)))
        return {"ok": True}

    async def close(self) -> None:
        self.closed = True
