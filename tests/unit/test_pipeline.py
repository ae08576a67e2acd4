"""Tests for calnotes.domain.pipeline."""

from datetime import UTC, datetime, timedelta

import pytest

from calnotes.calendar.models import CachedEvent
from calnotes.domain.pipeline import AggregationPipeline, build_relevant_list, group_by_source
from calnotes.domain.relevance import RelevanceKind

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def at(hour: int, minute: int = 0, day: int = 15) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=UTC)


def test_build_relevant_list_orders_ongoing_recent_then_by_minutes(
    make_event, now, work_source, home_source
) -> None:
    """Ongoing first, then recently-ended and upcoming interleaved by minutes."""
    work = [
        make_event(uid="later", start=at(13)),  # upcoming, 180
        make_event(uid="ongoing", start=at(9, 30), end=at(10, 30)),
        make_event(uid="stale", start=at(7), end=at(8)),  # not relevant
    ]
    home = [
        make_event(uid="ended", start=at(9), end=at(9, 45)),  # recently ended, 15
        make_event(uid="soon", start=at(10, 5)),  # upcoming, 5
        make_event(uid="next-week", start=at(9, day=22)),  # not relevant
    ]

    result = build_relevant_list([(work_source, work), (home_source, home)], now)

    assert [c.identity for c in result] == ["ongoing", "soon", "ended", "later"]
    assert all(isinstance(c, CachedEvent) for c in result)
    assert result[0].source == work_source
    assert result[1].source == home_source


def test_run_reports_relevance_alongside_events(make_event, now, work_source) -> None:
    """test_run_reports_relevance_alongside_events"""
    events = [make_event(uid="a", start=at(10, 20)), make_event(uid="b", start=at(9), end=at(11))]
    result = AggregationPipeline().run([(work_source, events)], now)

    assert [c.identity for c in result.events] == ["b", "a"]
    assert [r.kind for r in result.relevance] == [RelevanceKind.ONGOING, RelevanceKind.UPCOMING]
    assert result.events_in == 2
    assert result.occurrences == 2
    assert result.issues == []


def test_ongoing_events_keep_input_order(make_event, now, work_source, home_source) -> None:
    """Several ongoing events stay in the order their sources supplied them."""
    first = make_event(uid="first", start=at(9, 55), end=at(11))
    second = make_event(uid="second", start=at(8), end=at(12))
    result = build_relevant_list([(work_source, [first]), (home_source, [second])], now)
    assert [c.identity for c in result] == ["first", "second"]


@pytest.mark.parametrize("ended_first", [True, False])
def test_ended_and_upcoming_at_same_distance_keep_input_order(
    make_event, now, work_source, ended_first
) -> None:
    """Ended 5 minutes ago ties with starting in 5 minutes; input order decides."""
    ended = make_event(uid="ended", start=at(9), end=at(9, 55))
    soon = make_event(uid="soon", start=at(10, 5))
    events = [ended, soon] if ended_first else [soon, ended]

    result = AggregationPipeline().run([(work_source, events)], now)

    assert [c.identity for c in result.events] == [e.uid for e in events]
    assert [(r.kind, r.minutes) for r in result.relevance] == [
        ((RelevanceKind.RECENTLY_ENDED if e is ended else RelevanceKind.UPCOMING), 5) for e in events
    ]


def test_recurring_events_are_expanded_and_tagged(make_event, now, work_source) -> None:
    """test_recurring_events_are_expanded_and_tagged"""
    standup = make_event(
        uid="standup",
        start=datetime(2024, 1, 1, 9, 30, tzinfo=UTC),
        duration=timedelta(minutes=15),
        rule="FREQ=DAILY",
    )
    result = build_relevant_list([(work_source, [standup])], now)

    # 09:30 today ended 15 minutes ago; 09:30 tomorrow is 23.5h away
    assert [c.identity for c in result] == [
        "standup-2024-03-15T09:30:00Z",
        "standup-2024-03-16T09:30:00Z",
    ]
    assert all(c.source == work_source for c in result)
    assert all(c.event.recurrence_rule is None for c in result)


def test_malformed_recurring_event_is_reported_not_raised(make_event, now, work_source) -> None:
    """One bad series does not stop the others from being ranked."""
    bad = make_event(uid="bad-series", start="garbage", end=None, rule="FREQ=DAILY")
    good = make_event(uid="good", start=at(10, 10))

    result = AggregationPipeline().run([(work_source, [bad, good])], now)

    assert [c.identity for c in result.events] == ["good"]
    assert len(result.issues) == 1
    assert "bad-series" in result.issues[0]
    assert result.issues[0].startswith("[work]")


def test_duplicate_occurrences_within_a_source_are_dropped(make_event, now, work_source) -> None:
    """test_duplicate_occurrences_within_a_source_are_dropped"""
    event = make_event(uid="dup", start=at(10, 30))
    result = AggregationPipeline().run([(work_source, [event, event.model_copy()])], now)
    assert len(result.events) == 1


def test_same_event_in_two_sources_is_kept_twice(make_event, now, work_source, home_source) -> None:
    """test_same_event_in_two_sources_is_kept_twice"""
    event = make_event(uid="shared", start=at(10, 30))
    result = build_relevant_list([(work_source, [event]), (home_source, [event])], now)
    assert [c.source.name for c in result] == ["work", "home"]


def test_source_order_does_not_change_membership(make_event, now, work_source, home_source) -> None:
    """Swapping sources only affects ties, never which events are relevant."""
    work = [make_event(uid="w", start=at(11))]
    home = [make_event(uid="h", start=at(10, 30))]

    forward = build_relevant_list([(work_source, work), (home_source, home)], now)
    backward = build_relevant_list([(home_source, home), (work_source, work)], now)

    assert [c.identity for c in forward] == [c.identity for c in backward] == ["h", "w"]


def test_events_with_unresolvable_times_are_dropped(make_event, now, work_source) -> None:
    """test_events_with_unresolvable_times_are_dropped"""
    result = AggregationPipeline().run([(work_source, [make_event(uid="x", start="garbage")])], now)
    assert result.events == []
    assert result.issues == []


def test_empty_input_yields_empty_list(now) -> None:
    """test_empty_input_yields_empty_list"""
    assert build_relevant_list([], now) == []


def test_group_by_source_preserves_first_seen_order(make_event, work_source, home_source) -> None:
    """test_group_by_source_preserves_first_seen_order"""
    cached = [
        CachedEvent(source=home_source, event=make_event(uid="h1")),
        CachedEvent(source=work_source, event=make_event(uid="w1")),
        CachedEvent(source=home_source, event=make_event(uid="h2")),
    ]
    grouped = group_by_source(cached)
    assert [source.name for source, _ in grouped] == ["home", "work"]
    assert [e.uid for e in grouped[0][1]] == ["h1", "h2"]
