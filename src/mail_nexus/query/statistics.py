"""Dashboard delivery statistics with a local recomputation fallback."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from mail_nexus.core.datetime_utils import start_of_day
from mail_nexus.core.interfaces import StatsAggregator
from mail_nexus.core.models import OUTBOUND_STATUSES, EmailMessage, EmailStats

from .engine import QueryEngine
from .filters import EmailFilters

LOGGER = logging.getLogger(__name__)

DEFAULT_AGGREGATE = "get_email_stats"

STAT_FIELDS: tuple[str, ...] = (
    "total_sent",
    "total_received",
    "total_failed",
    "total_delivered",
    "sent_today",
    "received_today",
    "failed_today",
    "delivery_rate",
)


class StatisticsEngine:
    """Compute an :class:`EmailStats` snapshot.

    The remote aggregation is used when it answers with a complete payload.
    Otherwise the full collection is fetched through the query engine and
    counted locally; the local counting rules are the reference semantics
    any remote aggregation must reproduce. When the local path fails too,
    an all-zero snapshot is returned so the dashboard still renders.
    """

    def __init__(
        self,
        query_engine: QueryEngine,
        aggregator: StatsAggregator | None = None,
        *,
        aggregate_name: str = DEFAULT_AGGREGATE,
    ) -> None:
        self._query_engine = query_engine
        self._aggregator = aggregator
        self._aggregate_name = aggregate_name

    async def compute(self) -> EmailStats:
        """Return the current statistics snapshot; never raises for I/O."""
        remote = await self._remote_stats()
        if remote is not None:
            return remote

        try:
            messages = await self._query_engine.query("all", EmailFilters())
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Unable to load emails for statistics")
            return EmailStats.empty()
        today_start = start_of_day(self._query_engine.now())
        return compute_stats(messages, today_start=today_start)

    async def _remote_stats(self) -> EmailStats | None:
        if self._aggregator is None:
            return None
        try:
            payload = await self._aggregator.call_aggregate(self._aggregate_name)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning(
                "Aggregation %s failed, recomputing locally: %s",
                self._aggregate_name,
                exc,
            )
            return None
        stats = stats_from_payload(payload)
        if stats is None:
            LOGGER.warning(
                "Aggregation %s returned an unusable payload, recomputing locally",
                self._aggregate_name,
            )
        return stats


def compute_stats(
    messages: Iterable[EmailMessage], *, today_start: datetime
) -> EmailStats:
    """Count delivery outcomes over ``messages``."""
    counts = dict.fromkeys(STAT_FIELDS, 0)
    for message in messages:
        today = message.created_at >= today_start
        if message.status in OUTBOUND_STATUSES:
            counts["total_sent"] += 1
            counts["sent_today"] += today
        if message.status == "received":
            counts["total_received"] += 1
            counts["received_today"] += today
        if message.status == "failed":
            counts["total_failed"] += 1
            counts["failed_today"] += today
        if message.status == "delivered":
            counts["total_delivered"] += 1
    counts["delivery_rate"] = delivery_rate(
        counts["total_delivered"], counts["total_sent"]
    )
    return EmailStats(**counts, source="computed")


def delivery_rate(delivered: int, sent: int) -> int:
    """Whole-percent share of sent messages that were delivered."""
    if sent <= 0:
        return 0
    return _round_half_up(Decimal(100 * delivered) / Decimal(sent))


def stats_from_payload(payload: Mapping[str, Any] | Any) -> EmailStats | None:
    """Build a snapshot from an aggregation payload; ``None`` when incomplete."""
    if isinstance(payload, list) and len(payload) == 1:
        payload = payload[0]
    if not isinstance(payload, Mapping):
        return None
    values: dict[str, int] = {}
    for name in STAT_FIELDS:
        raw = payload.get(name)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return None
        if name == "delivery_rate":
            values[name] = _round_half_up(Decimal(str(raw)))
        elif isinstance(raw, float) and not raw.is_integer():
            # A fractional counter means the aggregation is broken.
            return None
        else:
            values[name] = int(raw)
    return EmailStats(**values, source="aggregate")


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


__all__ = [
    "DEFAULT_AGGREGATE",
    "STAT_FIELDS",
    "StatisticsEngine",
    "compute_stats",
    "delivery_rate",
    "stats_from_payload",
]
