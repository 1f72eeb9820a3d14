"""Backing store adapter for a Supabase (PostgREST) project."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.config import BackendSettings
from ..core.datetime_utils import serialize_datetime
from ..core.interfaces import BackingStore, BackingStoreError
from ..core.models import EmailMessage, EmailSelection, EmailTemplate
from .records import email_from_record, template_from_record

LOGGER = logging.getLogger(__name__)

EMAILS_TABLE = "emails"
TEMPLATES_TABLE = "email_templates"

# Columns matched by free-text search, using the stored column names.
SEARCH_COLUMNS: tuple[str, ...] = ("subject", "body", "from", "to")

# Terms containing quotes or backslashes are left to in-memory refinement;
# anything else is sent as a double-quoted ilike pattern.
_PUSHABLE_SEARCH = re.compile(r'^[^"\\]+$')


class SupabaseStore(BackingStore):
    """Async client for the ``emails`` and ``email_templates`` tables.

    Every failure, transport or HTTP status, surfaces as
    :class:`BackingStoreError`. No retries are attempted; the configured
    timeout is the only bound on a call.
    """

    def __init__(
        self, settings: BackendSettings, *, client: httpx.AsyncClient | None = None
    ) -> None:
        if not settings.is_configured:
            raise ValueError("Backend URL and anon key are required")
        self._settings = settings
        self._base_url = str(settings.url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    # EmailSource / StatsAggregator API ---------------------------------------
    async def select_emails(self, selection: EmailSelection) -> list[EmailMessage]:
        """Fetch emails with the selection's predicates pushed down."""
        if selection.statuses is not None and not selection.statuses:
            return []
        rows = await self._request(
            "GET", self._rest(EMAILS_TABLE), params=build_email_params(selection)
        )
        return [email_from_record(row) for row in rows or ()]

    async def call_aggregate(self, name: str) -> Mapping[str, Any] | None:
        """Invoke a Postgres function through ``/rest/v1/rpc``."""
        return await self._request("POST", self._rest(f"rpc/{name}"), json={})

    # Emails ------------------------------------------------------------------
    async def fetch_email(self, email_id: str) -> EmailMessage | None:
        """Return a single email or ``None`` when it does not exist."""
        rows = await self._request(
            "GET",
            self._rest(EMAILS_TABLE),
            params={"select": "*", "id": f"eq.{email_id}", "limit": "1"},
        )
        return email_from_record(rows[0]) if rows else None

    async def insert_email(self, fields: Mapping[str, Any]) -> EmailMessage:
        """Insert an email and return the stored representation."""
        rows = await self._request(
            "POST",
            self._rest(EMAILS_TABLE),
            json=dict(fields),
            headers={"Prefer": "return=representation"},
        )
        return email_from_record(_single(rows, EMAILS_TABLE))

    async def update_email(self, email_id: str, fields: Mapping[str, Any]) -> None:
        """Patch an email row."""
        await self._request(
            "PATCH",
            self._rest(EMAILS_TABLE),
            params={"id": f"eq.{email_id}"},
            json=dict(fields),
        )

    async def delete_email(self, email_id: str) -> None:
        """Delete an email row."""
        await self._request(
            "DELETE", self._rest(EMAILS_TABLE), params={"id": f"eq.{email_id}"}
        )

    # Templates ---------------------------------------------------------------
    async def list_templates(self) -> list[EmailTemplate]:
        """Return templates ordered newest first."""
        rows = await self._request(
            "GET",
            self._rest(TEMPLATES_TABLE),
            params={"select": "*", "order": "created_at.desc"},
        )
        return [template_from_record(row) for row in rows or ()]

    async def insert_template(self, fields: Mapping[str, Any]) -> EmailTemplate:
        """Insert a template and return it."""
        rows = await self._request(
            "POST",
            self._rest(TEMPLATES_TABLE),
            json=dict(fields),
            headers={"Prefer": "return=representation"},
        )
        return template_from_record(_single(rows, TEMPLATES_TABLE))

    async def update_template(
        self, template_id: str, fields: Mapping[str, Any]
    ) -> EmailTemplate:
        """Patch a template and return the updated row."""
        rows = await self._request(
            "PATCH",
            self._rest(TEMPLATES_TABLE),
            params={"id": f"eq.{template_id}"},
            json=dict(fields),
            headers={"Prefer": "return=representation"},
        )
        return template_from_record(_single(rows, TEMPLATES_TABLE))

    async def delete_template(self, template_id: str) -> None:
        """Delete a template row."""
        await self._request(
            "DELETE", self._rest(TEMPLATES_TABLE), params={"id": f"eq.{template_id}"}
        )

    # Functions ---------------------------------------------------------------
    async def invoke(self, function: str, payload: Mapping[str, Any]) -> Any:
        """Call an edge function under ``/functions/v1``."""
        return await self._request(
            "POST", f"{self._base_url}/functions/v1/{function}", json=dict(payload)
        )

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()

    # Internal helpers --------------------------------------------------------
    def _rest(self, path: str) -> str:
        return f"{self._base_url}/rest/v1/{path}"

    def _headers(self) -> dict[str, str]:
        key = self._settings.access_key or ""
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        merged_headers = {**self._headers(), **(headers or {})}
        LOGGER.debug("%s %s params=%s", method, url, params)
        try:
            response = await self._client.request(
                method, url, params=params, json=json, headers=merged_headers
            )
        except httpx.HTTPError as exc:
            raise BackingStoreError(f"{method} {url} failed: {exc}") from exc

        if response.is_error:
            raise BackingStoreError(
                f"{method} {url} returned {response.status_code}: "
                f"{_error_detail(response)}"
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackingStoreError(f"{method} {url} returned invalid JSON") from exc


def build_email_params(selection: EmailSelection) -> dict[str, str]:
    """Translate a selection into PostgREST query parameters."""
    params: dict[str, str] = {"select": "*"}
    if selection.statuses is not None:
        statuses = sorted(selection.statuses)
        if len(statuses) == 1:
            params["status"] = f"eq.{statuses[0]}"
        else:
            params["status"] = f"in.({','.join(statuses)})"
    if selection.created_since is not None:
        params["created_at"] = f"gte.{serialize_datetime(selection.created_since)}"
    if selection.search and _PUSHABLE_SEARCH.match(selection.search):
        pattern = f'"*{selection.search}*"'
        clauses = ",".join(f"{column}.ilike.{pattern}" for column in SEARCH_COLUMNS)
        params["or"] = f"({clauses})"
    direction = "desc" if selection.descending else "asc"
    # Missing values rank as the earliest possible value in either direction.
    nulls = "nullslast" if selection.descending else "nullsfirst"
    params["order"] = f"{selection.order_by}.{direction}.{nulls}"
    return params


def _single(rows: Any, table: str) -> Mapping[str, Any]:
    if isinstance(rows, list) and rows:
        return rows[0]
    if isinstance(rows, Mapping):
        return rows
    raise BackingStoreError(f"Write to {table} returned no row")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, Mapping):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


__all__ = ["SupabaseStore", "build_email_params"]
