"""Turn a category plus :class:`EmailFilters` into an ordered email list."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, tzinfo

from mail_nexus.core.datetime_utils import local_now
from mail_nexus.core.interfaces import EmailSource
from mail_nexus.core.models import EmailMessage, EmailSelection

from .filters import TIMESTAMP_SORT_KEYS, EmailFilters

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class QueryEngine:
    """Stateless query front-end over an :class:`EmailSource`.

    The source may push any subset of the selection down (a remote store) or
    none of it (static data). Whatever comes back is refined in memory with
    the same predicates, so both paths give identical answers.
    """

    def __init__(
        self,
        source: EmailSource,
        *,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._source = source
        self._clock = clock or (lambda: local_now(tz))

    def now(self) -> datetime:
        """Current instant used for date range cutoffs."""
        return self._clock()

    async def query(
        self, category: str = "all", filters: EmailFilters | None = None
    ) -> list[EmailMessage]:
        """Return emails in ``category`` matching ``filters``, sorted."""
        filters = filters or EmailFilters()
        selection = filters.to_selection(category, self.now())
        if selection.statuses is not None and not selection.statuses:
            LOGGER.debug(
                "Status %r is outside category %r; nothing to fetch",
                filters.status,
                category,
            )
            return []
        candidates = await self._source.select_emails(selection)
        results = refine(candidates, selection)
        LOGGER.debug(
            "Query category=%s filters=%s returned %d of %d candidate(s)",
            category,
            filters,
            len(results),
            len(candidates),
        )
        return results


def refine(
    messages: Iterable[EmailMessage], selection: EmailSelection
) -> list[EmailMessage]:
    """Filter and sort ``messages`` in memory according to ``selection``."""
    matching = [message for message in messages if matches(message, selection)]
    return sort_messages(matching, selection.order_by, descending=selection.descending)


def matches(message: EmailMessage, selection: EmailSelection) -> bool:
    """Whether ``message`` satisfies every predicate of ``selection``."""
    if selection.statuses is not None and message.status not in selection.statuses:
        return False
    if (
        selection.created_since is not None
        and message.created_at < selection.created_since
    ):
        return False
    return matches_search(message, selection.search)


def matches_search(message: EmailMessage, search: str) -> bool:
    """Case-insensitive substring match over subject, body and addresses."""
    if not search:
        return True
    needle = search.lower()
    haystacks = (message.subject, message.body, message.sender, message.recipient)
    return any(needle in (value or "").lower() for value in haystacks)


def sort_messages(
    messages: Iterable[EmailMessage], order_by: str, *, descending: bool
) -> list[EmailMessage]:
    """Stable sort; missing timestamps sort as the earliest value."""
    if order_by in TIMESTAMP_SORT_KEYS:

        def timestamp_key(message: EmailMessage) -> tuple[int, datetime]:
            value = getattr(message, order_by)
            if value is None:
                return (0, datetime.min)
            return (1, value)

        return sorted(messages, key=timestamp_key, reverse=descending)

    return sorted(
        messages,
        key=lambda message: getattr(message, order_by) or "",
        reverse=descending,
    )


__all__ = [
    "Clock",
    "QueryEngine",
    "matches",
    "matches_search",
    "refine",
    "sort_messages",
]
