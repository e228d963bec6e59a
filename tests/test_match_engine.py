"""
LifecycleEngine tests

- state machine: scheduled -> live -> ended, no way back
- forced events: goal / card / foul effects
- timers: random events while live, nothing after the end
"""
import asyncio
import random
from collections import Counter

import pytest

from models import EventType, MatchStatus, TeamSide
from schemas import Score
from core.exceptions import Rejected, Rejection
from services.event_service import EventDraw, draw_event

from conftest import RecordingSink


@pytest.mark.asyncio
async def test_create_match_is_scheduled(engine, store):
    match = engine.create_match("X", "Y")

    assert match.status == MatchStatus.SCHEDULED
    assert match.score == Score(a=0, b=0)
    assert match.started_at is None and match.ended_at is None
    assert store.get(match.id) == match


@pytest.mark.asyncio
async def test_full_lifecycle_scenario(engine, hub, store):
    match = engine.create_match("X", "Y")
    sink = RecordingSink()
    hub.subscribe(match.id, sink)

    started = engine.start_match(match.id)
    assert started.status == MatchStatus.LIVE
    assert started.started_at is not None
    assert sink.types == ["match_started"]

    goal = engine.apply_event(match.id, EventDraw(EventType.GOAL, TeamSide.A, "Abebe"))
    assert goal.score == Score(a=1, b=0)
    assert goal.details == "Goal scored by Abebe!"
    assert store.get(match.id).score == Score(a=1, b=0)

    ended = engine.end_match(match.id)
    assert ended.status == MatchStatus.ENDED
    assert ended.ended_at is not None
    assert sink.types == ["match_started", "goal", "match_ended"]
    assert sink.events[-1].score == Score(a=1, b=0)
    assert sink.events[-1].details == "Match finished"

    restart = engine.start_match(match.id)
    assert isinstance(restart, Rejected)
    assert restart.reason == Rejection.ALREADY_ENDED


@pytest.mark.asyncio
async def test_start_twice_is_rejected_and_state_unchanged(engine, store):
    match = engine.create_match("X", "Y")
    first = engine.start_match(match.id)

    second = engine.start_match(match.id)

    assert isinstance(second, Rejected)
    assert second.reason == Rejection.ALREADY_LIVE
    assert store.get(match.id) == first
    assert len(store.get_events(match.id)) == 1


@pytest.mark.asyncio
async def test_start_unknown_match_is_rejected(engine):
    result = engine.start_match("missing")

    assert isinstance(result, Rejected)
    assert result.reason == Rejection.NOT_FOUND


@pytest.mark.asyncio
async def test_start_schedules_timers(engine):
    match = engine.create_match("X", "Y")

    engine.start_match(match.id)

    assert engine.active_matches() == [match.id]


@pytest.mark.asyncio
async def test_card_and_foul_do_not_change_score(engine, store):
    match = engine.create_match("X", "Y")
    engine.start_match(match.id)

    card = engine.apply_event(match.id, EventDraw(EventType.CARD, TeamSide.B, "Haile", "Red Card"))
    foul = engine.apply_event(match.id, EventDraw(EventType.FOUL, TeamSide.A, "Desta", "Offside"))

    assert card.details == "Red Card for Haile"
    assert card.team == TeamSide.B
    assert foul.details == "Offside by Desta"
    assert store.get(match.id).score == Score(a=0, b=0)


@pytest.mark.asyncio
async def test_apply_event_requires_live_match(engine, store):
    match = engine.create_match("X", "Y")
    draw = EventDraw(EventType.GOAL, TeamSide.A, "Abebe")

    assert engine.apply_event(match.id, draw) is None
    assert engine.apply_event("missing", draw) is None

    engine.start_match(match.id)
    engine.end_match(match.id)

    assert engine.apply_event(match.id, draw) is None
    assert store.get(match.id).score == Score(a=0, b=0)


@pytest.mark.asyncio
async def test_apply_event_rejects_lifecycle_kinds(engine):
    match = engine.create_match("X", "Y")
    engine.start_match(match.id)

    with pytest.raises(ValueError):
        engine.apply_event(match.id, EventDraw(EventType.MATCH_ENDED, TeamSide.A, "Abebe"))


@pytest.mark.asyncio
async def test_score_is_fold_over_goal_events(engine, store):
    match = engine.create_match("X", "Y")
    engine.start_match(match.id)
    rng = random.Random(2024)

    for _ in range(60):
        engine.apply_event(match.id, draw_event(rng))

    goals = Counter(
        event.team for event in store.get_events(match.id) if event.type == EventType.GOAL
    )
    assert store.get(match.id).score == Score(a=goals[TeamSide.A], b=goals[TeamSide.B])


@pytest.mark.asyncio
async def test_end_match_twice_is_noop(engine, store):
    match = engine.create_match("X", "Y")
    engine.start_match(match.id)
    first = engine.end_match(match.id)

    second = engine.end_match(match.id)

    assert second == first
    assert [e.type for e in store.get_events(match.id)].count(EventType.MATCH_ENDED) == 1


@pytest.mark.asyncio
async def test_end_scheduled_match_is_rejected(engine, store):
    match = engine.create_match("X", "Y")

    result = engine.end_match(match.id)

    assert isinstance(result, Rejected)
    assert result.reason == Rejection.INVALID_TRANSITION
    assert store.get(match.id).status == MatchStatus.SCHEDULED


@pytest.mark.asyncio
async def test_stop_match_ends_live_match_and_releases_timers(engine, store):
    match = engine.create_match("X", "Y")
    engine.start_match(match.id)

    engine.stop_match(match.id)
    engine.stop_match(match.id)

    assert store.get(match.id).status == MatchStatus.ENDED
    assert engine.active_matches() == []
    assert [e.type for e in store.get_events(match.id)] == [
        EventType.MATCH_STARTED,
        EventType.MATCH_ENDED,
    ]


@pytest.mark.asyncio
async def test_stop_is_noop_for_scheduled_and_unknown(engine, store):
    match = engine.create_match("X", "Y")

    engine.stop_match(match.id)
    engine.stop_match("missing")

    assert store.get(match.id).status == MatchStatus.SCHEDULED
    assert store.get_events(match.id) == []


@pytest.mark.asyncio
async def test_timers_generate_events_then_end(fast_engine, store):
    match = fast_engine.create_match("X", "Y")
    fast_engine.start_match(match.id)

    await asyncio.sleep(0.6)

    final = store.get(match.id)
    events = store.get_events(match.id)
    kinds = [e.type for e in events]
    assert final.status == MatchStatus.ENDED
    assert kinds[0] == EventType.MATCH_STARTED
    assert kinds[-1] == EventType.MATCH_ENDED
    assert kinds.count(EventType.MATCH_ENDED) == 1
    assert set(kinds[1:-1]) <= {EventType.GOAL, EventType.CARD, EventType.FOUL}
    assert len(kinds) > 2
    assert events[-1].score == final.score
    assert fast_engine.active_matches() == []


@pytest.mark.asyncio
async def test_no_event_after_end(fast_engine, store):
    match = fast_engine.create_match("X", "Y")
    fast_engine.start_match(match.id)
    await asyncio.sleep(0.05)

    fast_engine.stop_match(match.id)
    recorded = store.get_events(match.id)
    await asyncio.sleep(0.2)

    events = store.get_events(match.id)
    assert events == recorded
    assert events[-1].type == EventType.MATCH_ENDED
    assert all(e.timestamp <= events[-1].timestamp for e in events)


@pytest.mark.asyncio
async def test_timer_tolerates_deleted_match(fast_engine, store):
    match = fast_engine.create_match("X", "Y")
    fast_engine.start_match(match.id)

    store.delete(match.id)
    await asyncio.sleep(0.5)

    assert store.get(match.id) is None
    assert store.get_events(match.id) == []
    assert fast_engine.active_matches() == []


@pytest.mark.asyncio
async def test_matches_run_independently(fast_engine, store):
    first = fast_engine.create_match("A", "B")
    second = fast_engine.create_match("C", "D")
    fast_engine.start_match(first.id)
    fast_engine.start_match(second.id)

    fast_engine.stop_match(first.id)
    await asyncio.sleep(0.1)

    assert store.get(first.id).status == MatchStatus.ENDED
    assert store.get(second.id).status == MatchStatus.LIVE
    assert fast_engine.active_matches() == [second.id]
