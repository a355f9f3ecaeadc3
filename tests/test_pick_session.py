import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import copy
import random

import pytest

from restaurant_picker.errors import InvalidInputError, NotFoundError, SessionClosedError, ValidationError
from restaurant_picker.models.records import ConversationRecord, Restaurant
from restaurant_picker.services.sampler import WeightedSampler
from restaurant_picker.state.pick_session import EVENT_TYPE, PickSession


def make_record(n=4):
    return ConversationRecord(
        conversation_id="C1",
        ts=1,
        list=[Restaurant(id=f"r{i}", name=f"Place {i}", weight=10 + i, shown_count=i) for i in range(n)],
    )


def start(n=2, size=4):
    return PickSession.start(make_record(size), n, WeightedSampler(random.Random(11)), now=100)


def test_start_reveals_first_n_of_full_draw():
    record = make_record()
    session = PickSession.start(record, 2, WeightedSampler(random.Random(11)), now=100)
    assert session.number_of_choices == 2
    assert sorted(c.id for c in session.choices) == ["r0", "r1", "r2", "r3"]
    assert not session.is_ended and session.ended_by is None
    assert all(c.votes == [] for c in session.choices)
    by_id = {r.id: r for r in record.list}
    for c in session.revealed:
        assert c.shown_count == by_id[c.id].shown_count + 1
    for c in session.choices[2:]:
        assert c.shown_count == by_id[c.id].shown_count
    # record is left to the caller
    assert [r.shown_count for r in record.list] == [0, 1, 2, 3]


def test_start_clamps_to_available_and_rejects_non_positive():
    assert start(n=10, size=3).number_of_choices == 3
    with pytest.raises(InvalidInputError):
        start(n=0)


def test_vote_then_duplicate_needs_confirmation():
    session = start()
    a, b = session.revealed
    assert session.vote("U1", a.id, now=200) is True
    assert session.winners == [a.id]
    snapshot = copy.deepcopy(session)
    assert session.vote("U1", b.id, now=300) is False
    assert session == snapshot


def test_overwrite_moves_the_single_vote():
    session = start()
    a, b = session.revealed
    session.vote("U1", a.id, now=200)
    session.vote("U2", a.id, now=210)
    assert session.vote("U1", b.id, allow_overwrite=True, now=300) is True
    assert [v.user_id for v in a.votes] == ["U2"]
    assert [v.user_id for v in b.votes] == ["U1"]
    assert session.ts == 300
    assert sorted(session.winners) == sorted([a.id, b.id])


def test_vote_for_hidden_choice_is_rejected():
    session = start()
    hidden = session.choices[-1]
    with pytest.raises(NotFoundError):
        session.vote("U1", hidden.id)


def test_reveal_next_until_exhausted():
    session = start(n=3, size=4)
    nxt = session.choices[3]
    before = nxt.shown_count
    assert session.reveal_next(now=500) is nxt
    assert session.number_of_choices == 4
    assert nxt.shown_count == before + 1
    assert session.ts == 500

    snapshot = copy.deepcopy(session)
    assert session.reveal_next(now=600) is None
    assert session == snapshot


def test_end_is_terminal_and_idempotent():
    session = start()
    a, _ = session.revealed
    session.vote("U1", a.id, now=200)
    assert session.end("U9", now=300) is True
    assert session.is_ended and session.ended_by == "U9"
    assert session.winners == [a.id]

    assert session.end("U8", now=400) is False
    assert session.ended_by == "U9" and session.ts == 300

    with pytest.raises(SessionClosedError):
        session.vote("U2", a.id)
    with pytest.raises(SessionClosedError):
        session.reveal_next()


def test_end_without_votes_makes_every_revealed_choice_win():
    session = start(n=3)
    session.end(None)
    assert session.winners == [c.id for c in session.revealed]


def test_metadata_round_trip():
    session = start()
    session.vote("U1", session.revealed[0].id, now=200)
    meta = session.to_metadata()
    assert meta["event_type"] == EVENT_TYPE
    assert PickSession.from_metadata(meta) == session


def test_from_metadata_rejects_foreign_payloads():
    with pytest.raises(ValidationError):
        PickSession.from_metadata(None)
    with pytest.raises(ValidationError):
        PickSession.from_metadata({"event_type": "other", "event_payload": {}})
    with pytest.raises(ValidationError):
        PickSession.from_metadata({"event_type": EVENT_TYPE, "event_payload": {"choices": []}})
