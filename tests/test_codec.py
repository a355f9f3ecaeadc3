import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import pytest

from restaurant_picker.errors import ValidationError
from restaurant_picker.models.records import ConversationRecord, Restaurant
from restaurant_picker.storage import codec

NOW = 1_700_000_000_000


def make_record():
    return ConversationRecord(
        conversation_id="C1",
        ts=NOW - 10,
        list=[
            Restaurant(id="r1", name="Ramen Ya", weight=10, shown_count=3, win_count=1),
            Restaurant(id="r2", name="Taco Stand", weight=0),
        ],
    )


def test_initialized_record_is_valid():
    record = codec.initialize("C1", now=NOW)
    assert record.list == []
    assert codec.validate("C1", record, now=NOW)
    assert codec.validate("C1", codec.initialize("C1"))


def test_encode_decode_round_trip():
    record = make_record()
    decoded = ConversationRecord.from_dict(codec.decode(codec.encode(record)))
    assert decoded == record


def test_encoding_is_deterministic_and_link_has_prefix():
    a = codec.to_link("https://picker.test/", make_record())
    b = codec.to_link("https://picker.test", make_record())
    assert a == b
    assert a.startswith("https://picker.test/?conversation=C1&data=")
    assert ConversationRecord.from_dict(codec.from_link(a)) == make_record()


def test_link_survives_reserved_characters():
    record = make_record()
    record.list[0].name = "Fish & Chips + 50%"
    link = codec.to_link("https://picker.test", record)
    assert ConversationRecord.from_dict(codec.from_link(link)).list[0].name == "Fish & Chips + 50%"


@pytest.mark.parametrize(
    "candidate",
    [
        {"conversation_id": "C2", "ts": NOW, "list": []},
        {"conversation_id": "C1", "ts": NOW + 1, "list": []},
        {"conversation_id": "C1", "ts": 0, "list": []},
        {"conversation_id": "C1", "ts": True, "list": []},
        {"conversation_id": "C1", "ts": "123", "list": []},
        {"conversation_id": "C1", "ts": NOW, "list": {}},
        {"conversation_id": "C1", "ts": NOW, "list": [{"id": 3, "name": "x"}]},
        {"conversation_id": "C1", "ts": NOW, "list": [{"id": "a"}]},
        {"conversation_id": "C1", "ts": NOW, "list": ["nope"]},
        "not a record",
    ],
)
def test_validate_rejects_without_raising(candidate):
    assert codec.validate("C1", candidate, now=NOW) is False


def test_repair_regenerates_missing_id_and_keeps_other_fields():
    raw = {
        "conversation_id": "C1",
        "ts": NOW - 5,
        "list": [
            {"name": "No Id", "weight": 7, "shown_count": 2, "win_count": 1},
            {"id": "keep", "name": "Has Id", "weight": 3, "shown_count": 0, "win_count": 0},
        ],
    }
    record = codec.repair("C1", raw, now=NOW)
    assert record.ts == NOW - 5
    fixed, kept = record.list
    assert isinstance(fixed.id, str) and fixed.id and fixed.id != "keep"
    assert (fixed.name, fixed.weight, fixed.shown_count, fixed.win_count) == ("No Id", 7, 2, 1)
    assert kept == Restaurant(id="keep", name="Has Id", weight=3)
    assert codec.validate("C1", record, now=NOW)


def test_repair_drops_junk_and_fills_names():
    raw = {
        "conversation_id": "C1",
        "ts": NOW + 1000,
        "list": [None, 5, {"id": "a", "name": None}, {"id": "a", "name": "Dup"}],
    }
    record = codec.repair("C1", raw, now=NOW)
    assert record.ts == NOW
    assert [r.name for r in record.list] == [codec.UNNAMED_RESTAURANT, "Dup"]
    assert len({r.id for r in record.list}) == 2


def test_repair_raises_when_not_a_record():
    with pytest.raises(ValidationError):
        codec.repair("C1", ["a", "b"], now=NOW)
    with pytest.raises(ValidationError):
        codec.repair("C1", {"conversation_id": "C1", "ts": NOW, "list": "x"}, now=NOW)


def test_decode_rejects_garbage():
    with pytest.raises(ValidationError):
        codec.decode("{not json")
    with pytest.raises(ValidationError):
        codec.from_link("https://picker.test/?conversation=C1")


@pytest.mark.parametrize("raw_weight", ["NaN", "Infinity", "-Infinity", "1e999"])
def test_repair_treats_non_finite_weight_as_one(raw_weight):
    raw = codec.decode(
        '{"conversation_id":"C1","ts":1,"list":[{"name":"Curry Club","weight":%s}]}' % raw_weight
    )
    record = codec.repair("C1", raw, now=NOW)
    (restaurant,) = record.list
    assert restaurant.name == "Curry Club"
    assert restaurant.weight == 1
    assert restaurant.id
