"""Tests for the email query engine."""

from __future__ import annotations

import re
from datetime import timedelta

import pytest

from mail_nexus.core.datetime_utils import parse_datetime
from mail_nexus.core.interfaces import BackingStoreError
from mail_nexus.core.models import OUTBOUND_STATUSES, EmailSelection
from mail_nexus.query import EmailFilters, QueryEngine
from mail_nexus.query.filters import DATE_RANGES, SORT_KEYS
from mail_nexus.storage.supabase import build_email_params

from conftest import NOW, FakeStore, make_email


def _collection() -> list:
    return [
        make_email("1", "draft", NOW - timedelta(days=40), subject="Quarterly plan"),
        make_email(
            "2",
            "sent",
            NOW - timedelta(days=3),
            subject="Monthly Invoice",
            body="see attached",
            sent_at=NOW - timedelta(days=3),
        ),
        make_email(
            "3",
            "delivered",
            NOW - timedelta(hours=2),
            subject="Hello",
            body="no invoice here",
            sent_at=NOW - timedelta(hours=2),
        ),
        make_email(
            "4",
            "failed",
            NOW - timedelta(days=10),
            subject="Alert",
            error_message="mailbox full",
            sent_at=NOW - timedelta(days=10),
        ),
        make_email("5", "bounced", NOW - timedelta(days=120), subject="Bounce"),
        make_email(
            "6",
            "received",
            NOW - timedelta(minutes=5),
            subject="Question",
            sender="Client@Example.org",
            recipient="admin@mailnexus.com",
        ),
    ]


def _ids(messages) -> list[str]:
    return [message.id for message in messages]


@pytest.mark.asyncio
async def test_all_with_default_filters_returns_every_message(clock) -> None:
    collection = _collection()
    engine = QueryEngine(FakeStore(collection), clock=clock)

    results = await engine.query("all", EmailFilters())

    assert sorted(_ids(results)) == sorted(_ids(collection))


@pytest.mark.asyncio
async def test_sent_category_contains_only_outbound_statuses(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    results = await engine.query("sent", EmailFilters())

    assert {message.status for message in results} == OUTBOUND_STATUSES
    assert sorted(_ids(results)) == ["2", "3", "4", "5"]


@pytest.mark.asyncio
async def test_received_category_contains_only_received(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    results = await engine.query("received", EmailFilters())

    assert _ids(results) == ["6"]


@pytest.mark.asyncio
async def test_status_filter_applies_within_category(clock) -> None:
    store = FakeStore(_collection())
    engine = QueryEngine(store, clock=clock)

    failed = await engine.query("sent", EmailFilters(status="failed"))
    drafts_in_sent = await engine.query("sent", EmailFilters(status="draft"))

    assert _ids(failed) == ["4"]
    assert drafts_in_sent == []
    # The empty intersection never reaches the store.
    assert len(store.selections) == 1


@pytest.mark.asyncio
async def test_search_matches_subject_or_body_case_insensitively(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    results = await engine.query("all", EmailFilters(search="INVOICE"))

    assert sorted(_ids(results)) == ["2", "3"]


@pytest.mark.asyncio
async def test_search_matches_addresses(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    by_sender = await engine.query("all", EmailFilters(search="client@example"))
    by_recipient = await engine.query("received", EmailFilters(search="mailnexus"))

    assert _ids(by_sender) == ["6"]
    assert _ids(by_recipient) == ["6"]


@pytest.mark.asyncio
async def test_search_without_hits_excludes_everything(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    assert await engine.query("all", EmailFilters(search="nonexistent")) == []


@pytest.mark.asyncio
async def test_date_ranges_are_nested(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)
    results = {
        date_range: set(
            _ids(await engine.query("all", EmailFilters(date_range=date_range)))
        )
        for date_range in DATE_RANGES
    }

    assert results["today"] == {"3", "6"}
    assert results["week"] == {"2", "3", "6"}
    assert results["month"] == {"2", "3", "4", "6"}
    assert results["quarter"] == {"1", "2", "3", "4", "6"}
    assert results["today"] <= results["week"] <= results["quarter"]
    assert results["today"] <= results["month"] <= results["quarter"] <= results["all"]


@pytest.mark.asyncio
async def test_default_sort_is_newest_first(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    results = await engine.query("all", EmailFilters())

    assert _ids(results) == ["6", "3", "2", "4", "1", "5"]


@pytest.mark.asyncio
async def test_subject_sort_is_lexicographic(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    filters = EmailFilters(sort_by="subject", sort_order="asc")
    results = await engine.query("all", filters)

    assert [message.subject for message in results] == [
        "Alert",
        "Bounce",
        "Hello",
        "Monthly Invoice",
        "Quarterly plan",
        "Question",
    ]


@pytest.mark.asyncio
async def test_missing_sent_at_sorts_as_earliest(clock) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)

    ascending = await engine.query(
        "all", EmailFilters(sort_by="sent_at", sort_order="asc")
    )
    descending = await engine.query("all", EmailFilters(sort_by="sent_at"))

    # Messages 1, 5 and 6 carry no sent_at; they keep their relative order.
    assert _ids(ascending) == ["1", "5", "6", "4", "2", "3"]
    assert _ids(descending)[:3] == ["3", "2", "4"]
    assert set(_ids(descending)[3:]) == {"1", "5", "6"}


@pytest.mark.asyncio
@pytest.mark.parametrize("sort_by", ["created_at", "subject"])
async def test_reversing_order_reverses_output(clock, sort_by: str) -> None:
    engine = QueryEngine(FakeStore(_collection()), clock=clock)
    filters = EmailFilters(sort_by=sort_by, sort_order="asc")

    ascending = await engine.query("all", filters)
    descending = await engine.query("all", filters.toggle_order())
    round_trip = await engine.query("all", filters.toggle_order().toggle_order())

    assert _ids(descending) == list(reversed(_ids(ascending)))
    assert _ids(round_trip) == _ids(ascending)


@pytest.mark.asyncio
@pytest.mark.parametrize("sort_by", SORT_KEYS)
@pytest.mark.parametrize("category", ["all", "sent", "received"])
async def test_pushdown_and_in_memory_agree(clock, category: str, sort_by: str) -> None:
    collection = _collection()
    filters = EmailFilters(search="e", date_range="quarter", sort_by=sort_by)
    in_memory = QueryEngine(FakeStore(collection), clock=clock)
    pushed = QueryEngine(FakeStore(collection, pushdown=True), clock=clock)

    assert await in_memory.query(category, filters) == await pushed.query(
        category, filters
    )


@pytest.mark.asyncio
async def test_selection_is_pushed_to_source(clock) -> None:
    store = FakeStore(_collection())
    engine = QueryEngine(store, clock=clock)

    await engine.query("sent", EmailFilters(search="x", date_range="week"))

    selection = store.selections[-1]
    assert selection.statuses == OUTBOUND_STATUSES
    assert selection.search == "x"
    assert selection.created_since == NOW - timedelta(days=7)


@pytest.mark.asyncio
async def test_source_failure_propagates(clock) -> None:
    store = FakeStore(_collection())
    store.fail_on.add("select_emails")
    engine = QueryEngine(store, clock=clock)

    with pytest.raises(BackingStoreError):
        await engine.query("all", EmailFilters())


_ILIKE_CLAUSE = re.compile(r'(\w+)\.ilike\."([^"]*)"')
_COLUMN_FIELDS = {
    "subject": "subject",
    "body": "body",
    "from": "sender",
    "to": "recipient",
}


def _ilike(pattern: str, value: str) -> bool:
    translated = "".join(
        ".*" if char in "*%" else "." if char == "_" else re.escape(char)
        for char in pattern
    )
    return re.fullmatch(translated, value, re.IGNORECASE | re.DOTALL) is not None


class RemoteFilteringStore(FakeStore):
    """Applies the encoded query parameters like the remote service would."""

    async def select_emails(self, selection: EmailSelection) -> list:
        self.selections.append(selection)
        params = build_email_params(selection)
        rows = []
        for message in self.emails:
            status = params.get("status", "")
            if status.startswith("eq.") and message.status != status[3:]:
                continue
            allowed = status[4:-1].split(",")
            if status.startswith("in.") and message.status not in allowed:
                continue
            since = params.get("created_at")
            if since and message.created_at < parse_datetime(since[4:]):
                continue
            clauses = _ILIKE_CLAUSE.findall(params.get("or", ""))
            if clauses and not any(
                _ilike(pattern, getattr(message, _COLUMN_FIELDS[column]))
                for column, pattern in clauses
            ):
                continue
            rows.append(message)
        # Arbitrary remote order; the engine owns the final ordering.
        return list(reversed(rows))


def _wildcard_collection() -> list:
    subjects = {
        "w1": "Save 50% today",
        "w2": "Top 50 picks",
        "w3": "file a_b.txt",
        "w4": "file axb.txt",
        "w5": "x*y formula",
        "w6": "xzzy",
        "w7": 'He said "hi"',
    }
    return [
        make_email(email_id, "sent", NOW - timedelta(hours=index), subject=subject)
        for index, (email_id, subject) in enumerate(subjects.items())
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "term, expected",
    [("50%", ["w1"]), ("a_b", ["w3"]), ("x*y", ["w5"]), ('"hi"', ["w7"])],
)
async def test_wildcard_terms_are_narrowed_after_remote_filtering(
    clock, term: str, expected: list[str]
) -> None:
    collection = _wildcard_collection()
    remote = RemoteFilteringStore(collection)
    engine = QueryEngine(remote, clock=clock)
    filters = EmailFilters(search=term)

    results = await engine.query("sent", filters)
    remote_rows = await remote.select_emails(remote.selections[-1])
    in_memory = await QueryEngine(FakeStore(collection), clock=clock).query(
        "sent", filters
    )

    assert _ids(results) == expected
    assert results == in_memory
    assert set(expected) <= set(_ids(remote_rows))


def test_wildcard_characters_widen_the_remote_pattern() -> None:
    selection = EmailFilters(search="50%").to_selection("all", NOW)

    params = build_email_params(selection)

    assert '.ilike."*50%*"' in params["or"]
    assert _ilike("*50%*", "Top 50 picks")
