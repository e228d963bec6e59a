"""
Event selection tests using scripted and seeded random sources.
"""
import random

import pytest

from models import EventType, TeamSide
from services.event_service import (
    CARD_TYPES,
    FOUL_TYPES,
    PLAYER_NAMES,
    draw_event,
    next_event_delay,
    pick_event_kind,
    pick_side,
)
from services.naming_service import generate_match_id

from conftest import ScriptedRandom


@pytest.mark.parametrize("roll,expected", [
    (0.0, EventType.GOAL),
    (0.39, EventType.GOAL),
    (0.4, EventType.FOUL),
    (0.69, EventType.FOUL),
    (0.7, EventType.CARD),
    (0.99, EventType.CARD),
])
def test_pick_event_kind_weights(roll, expected):
    assert pick_event_kind(ScriptedRandom([roll])) == expected


def test_pick_side():
    assert pick_side(ScriptedRandom([0.2])) == TeamSide.A
    assert pick_side(ScriptedRandom([0.7])) == TeamSide.B


def test_next_event_delay_spans_window():
    rng = ScriptedRandom([0.0, 1.0, 0.5])

    assert next_event_delay(rng, 5, 30) == 5
    assert next_event_delay(rng, 5, 30) == 30
    assert next_event_delay(rng, 5, 30) == 17.5


def test_next_event_delay_rejects_inverted_window():
    with pytest.raises(ValueError):
        next_event_delay(random.Random(1), 30, 5)


def test_draw_event_fields_match_kind():
    rng = random.Random(1234)

    for _ in range(200):
        draw = draw_event(rng)
        assert draw.player in PLAYER_NAMES
        if draw.kind == EventType.CARD:
            assert draw.detail in CARD_TYPES
        elif draw.kind == EventType.FOUL:
            assert draw.detail in FOUL_TYPES
        else:
            assert draw.kind == EventType.GOAL
            assert draw.detail is None


def test_draw_event_is_reproducible_for_same_seed():
    rng_a, rng_b = random.Random(5), random.Random(5)

    assert [draw_event(rng_a) for _ in range(20)] == [draw_event(rng_b) for _ in range(20)]


def test_generate_match_id_format():
    match_id = generate_match_id()
    prefix, millis, suffix = match_id.split("-")

    assert prefix == "match"
    assert millis.isdigit()
    assert len(suffix) == 9
    assert generate_match_id() != match_id
