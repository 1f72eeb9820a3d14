"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from .models import EmailMessage, EmailSelection, EmailTemplate


class BackingStoreError(RuntimeError):
    """Raised when a call to the remote data service fails."""


class EmailSource(Protocol):
    """Anything able to answer an :class:`EmailSelection`."""

    async def select_emails(self, selection: EmailSelection) -> list[EmailMessage]:
        """Return emails matching ``selection``, possibly as a superset."""
        raise NotImplementedError


class StatsAggregator(Protocol):
    """Remote procedure returning precomputed statistics."""

    async def call_aggregate(self, name: str) -> Mapping[str, Any] | None:
        """Invoke the aggregation ``name`` and return its raw payload."""
        raise NotImplementedError


class BackingStore(EmailSource, StatsAggregator, Protocol):
    """Remote data service owning the email and template collections."""

    async def fetch_email(self, email_id: str) -> EmailMessage | None:
        """Retrieve a stored email by id."""
        raise NotImplementedError

    async def insert_email(self, fields: Mapping[str, Any]) -> EmailMessage:
        """Insert a new email row and return it as stored."""
        raise NotImplementedError

    async def update_email(self, email_id: str, fields: Mapping[str, Any]) -> None:
        """Patch the stored email ``email_id`` with ``fields``."""
        raise NotImplementedError

    async def delete_email(self, email_id: str) -> None:
        """Remove an email."""
        raise NotImplementedError

    async def list_templates(self) -> list[EmailTemplate]:
        """Return all templates, newest first."""
        raise NotImplementedError

    async def insert_template(self, fields: Mapping[str, Any]) -> EmailTemplate:
        """Insert a template and return it as stored."""
        raise NotImplementedError

    async def update_template(
        self, template_id: str, fields: Mapping[str, Any]
    ) -> EmailTemplate:
        """Patch a template and return the updated record."""
        raise NotImplementedError

    async def delete_template(self, template_id: str) -> None:
        """Remove a template."""
        raise NotImplementedError

    async def invoke(self, function: str, payload: Mapping[str, Any]) -> Any:
        """Call a named remote function with a JSON payload."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release network resources."""
        raise NotImplementedError


__all__ = [
    "BackingStore",
    "BackingStoreError",
    "EmailSource",
    "StatsAggregator",
]
