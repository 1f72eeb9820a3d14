"""Static demo dataset served while no backing store is configured."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from ..core.models import EmailMessage, EmailSelection, EmailTemplate
from ..query.engine import refine

LOGGER = logging.getLogger(__name__)

_MOCK_EMAILS: tuple[EmailMessage, ...] = (
    EmailMessage(
        id="mock-email-1",
        sender="admin@mailnexus.com",
        recipient="client@example.com",
        subject="Welcome to Mail Nexus",
        body="Your gateway account is ready. Reply to this message if you need help.",
        status="delivered",
        created_at=datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
        sent_at=datetime(2024, 1, 15, 10, 30, 5, tzinfo=UTC),
        delivered_at=datetime(2024, 1, 15, 10, 31, tzinfo=UTC),
    ),
    EmailMessage(
        id="mock-email-2",
        sender="support@example.com",
        recipient="admin@mailnexus.com",
        subject="Question about SMTP settings",
        body="Which port should we use for the outbound relay?",
        status="received",
        created_at=datetime(2024, 1, 16, 9, 0, tzinfo=UTC),
    ),
)

_MOCK_TEMPLATES: tuple[EmailTemplate, ...] = (
    EmailTemplate(
        id="mock-template-2",
        name="Password reset",
        subject="Reset your password, {{name}}",
        body=(
            "Hello {{name}},\n\n"
            "Use this link to choose a new password: {{reset_link}}"
        ),
        created_at=datetime(2024, 1, 11, 8, 0, tzinfo=UTC),
        variables=("name", "reset_link"),
    ),
    EmailTemplate(
        id="mock-template-1",
        name="Welcome",
        subject="Welcome, {{name}}!",
        body="Hello {{name}},\n\nThanks for joining {{company}}.",
        created_at=datetime(2024, 1, 10, 8, 0, tzinfo=UTC),
        variables=("name", "company"),
    ),
)


class MockDataProvider:
    """Read-only email source backed by a fixed in-memory dataset.

    The dataset is made of frozen records held in tuples; every read returns
    fresh lists, so callers cannot alter what later reads see.
    """

    def __init__(
        self,
        emails: tuple[EmailMessage, ...] = _MOCK_EMAILS,
        templates: tuple[EmailTemplate, ...] = _MOCK_TEMPLATES,
    ) -> None:
        self._emails = tuple(emails)
        self._templates = tuple(templates)

    async def select_emails(self, selection: EmailSelection) -> list[EmailMessage]:
        """Evaluate ``selection`` entirely in memory."""
        LOGGER.debug("Serving emails from mock dataset")
        return refine(self._emails, selection)

    async def fetch_email(self, email_id: str) -> EmailMessage | None:
        """Look up a demo email by id."""
        return next((item for item in self._emails if item.id == email_id), None)

    async def list_templates(self) -> list[EmailTemplate]:
        """Demo templates, newest first."""
        return sorted(self._templates, key=lambda item: item.created_at, reverse=True)


__all__ = ["MockDataProvider"]
