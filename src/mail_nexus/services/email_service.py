"""Email operations used by the console, with demo-mode source selection."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, tzinfo

from mail_nexus.core.interfaces import BackingStore, BackingStoreError
from mail_nexus.core.models import (
    EmailDraft,
    EmailMessage,
    EmailStats,
    EmailTemplate,
    TemplateDraft,
)
from mail_nexus.query import EmailFilters, QueryEngine, StatisticsEngine
from mail_nexus.query.engine import Clock
from mail_nexus.query.statistics import DEFAULT_AGGREGATE
from mail_nexus.storage.mock import MockDataProvider
from mail_nexus.storage.records import draft_to_record, template_to_record

from .templates import RenderedTemplate, render_template, with_variables

LOGGER = logging.getLogger(__name__)

DEFAULT_SEND_FUNCTION = "send-email"


class EmailService:
    """Facade over the query and statistics engines plus write operations.

    With a ``store`` every call goes to the remote service and its failures
    propagate, statistics excepted. Without one, reads come from the mock
    dataset and writes return synthetic results that are never persisted.
    """

    def __init__(
        self,
        store: BackingStore | None,
        *,
        mock: MockDataProvider | None = None,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
        stats_function: str = DEFAULT_AGGREGATE,
        send_function: str = DEFAULT_SEND_FUNCTION,
    ) -> None:
        self._store = store
        self._mock = mock or MockDataProvider()
        self._send_function = send_function
        self._query_engine = QueryEngine(
            store if store is not None else self._mock, clock=clock, tz=tz
        )
        self._stats_engine = StatisticsEngine(
            self._query_engine, store, aggregate_name=stats_function
        )

    def is_configured(self) -> bool:
        """Whether a backing store is available."""
        return self._store is not None

    # Reads -------------------------------------------------------------------
    async def get_emails(
        self, category: str = "all", filters: EmailFilters | None = None
    ) -> list[EmailMessage]:
        """Ordered emails of ``category`` matching ``filters``."""
        return await self._query_engine.query(category, filters)

    async def get_email(self, email_id: str) -> EmailMessage | None:
        """Single email for the detail view."""
        if self._store is None:
            return await self._mock.fetch_email(email_id)
        return await self._store.fetch_email(email_id)

    async def get_email_stats(self) -> EmailStats:
        """Dashboard statistics; degrades instead of raising."""
        return await self._stats_engine.compute()

    async def get_templates(self) -> list[EmailTemplate]:
        """All templates, newest first."""
        if self._store is None:
            return await self._mock.list_templates()
        return await self._store.list_templates()

    async def render_template(
        self, template_id: str, values: Mapping[str, object]
    ) -> RenderedTemplate | None:
        """Fill a stored template for the composer; ``None`` when unknown."""
        templates = await self.get_templates()
        template = next((item for item in templates if item.id == template_id), None)
        if template is None:
            return None
        rendered = render_template(template, values)
        if rendered.missing:
            LOGGER.info(
                "Template %s rendered without values for: %s",
                template_id,
                ", ".join(rendered.missing),
            )
        return rendered

    # Writes ------------------------------------------------------------------
    async def send_email(self, draft: EmailDraft) -> EmailMessage:
        """Store ``draft`` and ask the remote service to deliver it."""
        _validate_draft(draft)
        now = self._query_engine.now()

        if self._store is None:
            pending = EmailMessage(
                id=str(uuid.uuid4()),
                sender=draft.sender,
                recipient=draft.recipient,
                subject=draft.subject,
                body=draft.body,
                status="draft",
                created_at=now,
                cc=draft.cc,
                bcc=draft.bcc,
                html=draft.html,
                attachments=draft.attachments,
            )
            LOGGER.info("Backend not configured; email to %s not sent", draft.recipient)
            return pending.transition("sent", at=now)

        stored = await self._store.insert_email(
            draft_to_record(draft, status="draft", created_at=now)
        )
        LOGGER.info("Email %s stored, invoking %s", stored.id, self._send_function)
        try:
            await self._store.invoke(self._send_function, {"email_id": stored.id})
        except BackingStoreError as exc:
            LOGGER.error("Failed to send email %s: %s", stored.id, exc)
            await self._mark_failed(stored, str(exc))
            raise
        return stored

    async def delete_email(self, email_id: str) -> None:
        """Remove an email; a no-op in demo mode."""
        if self._store is None:
            LOGGER.info("Backend not configured; delete of %s ignored", email_id)
            return
        await self._store.delete_email(email_id)

    async def save_template(self, draft: TemplateDraft) -> EmailTemplate:
        """Create a template."""
        draft = with_variables(_validate_template(draft))
        now = self._query_engine.now()
        if self._store is None:
            LOGGER.info("Backend not configured; template %r not persisted", draft.name)
            return _synthetic_template(str(uuid.uuid4()), draft, now)
        return await self._store.insert_template(
            template_to_record(draft, created_at=now)
        )

    async def update_template(
        self, template_id: str, draft: TemplateDraft
    ) -> EmailTemplate:
        """Replace the editable fields of a template."""
        draft = with_variables(_validate_template(draft))
        if self._store is None:
            LOGGER.info("Backend not configured; template %s not updated", template_id)
            return _synthetic_template(template_id, draft, self._query_engine.now())
        return await self._store.update_template(template_id, template_to_record(draft))

    async def delete_template(self, template_id: str) -> None:
        """Remove a template; a no-op in demo mode."""
        if self._store is None:
            LOGGER.info("Backend not configured; template %s not deleted", template_id)
            return
        await self._store.delete_template(template_id)

    async def _mark_failed(self, message: EmailMessage, error: str) -> None:
        assert self._store is not None
        failed = message.transition("failed", error_message=error)
        try:
            await self._store.update_email(
                message.id,
                {"status": failed.status, "error_message": failed.error_message},
            )
        except BackingStoreError as exc:
            LOGGER.error("Could not record failure of email %s: %s", message.id, exc)


def _validate_draft(draft: EmailDraft) -> None:
    if not draft.recipient.strip():
        raise ValueError("Recipient is required")
    if not draft.subject.strip():
        raise ValueError("Subject is required")


def _validate_template(draft: TemplateDraft) -> TemplateDraft:
    missing = [
        name
        for name, value in (
            ("name", draft.name),
            ("subject", draft.subject),
            ("body", draft.body),
        )
        if not value.strip()
    ]
    if missing:
        raise ValueError(f"Template fields required: {', '.join(missing)}")
    return draft


def _synthetic_template(
    template_id: str, draft: TemplateDraft, created_at: datetime
) -> EmailTemplate:
    return EmailTemplate(
        id=template_id,
        name=draft.name,
        subject=draft.subject,
        body=draft.body,
        created_at=created_at,
        html=draft.html,
        variables=draft.variables,
    )


__all__ = ["DEFAULT_SEND_FUNCTION", "EmailService"]
