from urllib.parse import quote

import pytest

from restaurant_picker.errors import ExternalCallError, ValidationError
from restaurant_picker.models.records import Restaurant
from restaurant_picker.storage import codec


def test_get_returns_none_before_first_use(store):
    assert store.get("C1") is None


def test_create_then_get(store, bookmarks, settings):
    created = store.create("C1")
    assert created.record.list == []
    (bookmark,) = bookmarks.items["C1"]
    assert bookmark["title"] == settings.app_name
    assert bookmark["link"].startswith(codec.link_prefix(settings.app_endpoint, "C1"))

    got = store.get("C1")
    assert got.handle == created.handle
    assert got.record == created.record


def test_create_fails_loudly(store, bookmarks):
    bookmarks.fail_add = True
    with pytest.raises(ExternalCallError):
        store.create("C1")


def test_get_ignores_foreign_bookmarks(store, bookmarks, settings):
    bookmarks.add_bookmark("C1", "Lunch spots", codec.link_prefix(settings.app_endpoint, "C1") + "x")
    bookmarks.add_bookmark("C1", settings.app_name, "https://elsewhere.test/?conversation=C1&data={}")
    bookmarks.add_bookmark("C1", settings.app_name, codec.link_prefix(settings.app_endpoint, "C10") + "{}")
    assert store.get("C1") is None


def test_update_stamps_ts_and_persists(store, clock):
    stored = store.create("C1")
    stored.record.list.append(Restaurant(id="r1", name="Pho House", weight=5))
    clock.tick(50)
    assert store.update("C1", stored.handle, stored.record) is True
    assert stored.record.ts == clock.now

    again = store.get("C1")
    assert again.record.ts == clock.now
    assert again.record.list == [Restaurant(id="r1", name="Pho House", weight=5)]


def test_update_reports_failure_without_raising(store, bookmarks):
    stored = store.create("C1")
    before = store.get("C1").record
    bookmarks.fail_edit = True
    stored.record.list.append(Restaurant(id="r1", name="Pho House"))
    assert store.update("C1", stored.handle, stored.record) is False
    assert store.get("C1").record == before


def test_get_repairs_invalid_record(store, bookmarks, settings, clock):
    raw = '{"conversation_id":"C1","ts":1,"list":[{"name":"Curry Club","weight":4},"junk"]}'
    bookmarks.add_bookmark("C1", settings.app_name, codec.link_prefix(settings.app_endpoint, "C1") + quote(raw, safe=""))
    stored = store.get("C1")
    (restaurant,) = stored.record.list
    assert restaurant.name == "Curry Club" and restaurant.weight == 4 and restaurant.id
    assert stored.record.ts == 1


def test_get_raises_on_unrepairable_record(store, bookmarks, settings):
    bookmarks.add_bookmark("C1", settings.app_name, codec.link_prefix(settings.app_endpoint, "C1") + "[1,2]")
    with pytest.raises(ValidationError):
        store.get("C1")
    bookmarks.items["C1"][0]["link"] = codec.link_prefix(settings.app_endpoint, "C1") + "%7Bbroken"
    with pytest.raises(ValidationError):
        store.get("C1")


def test_get_repairs_non_finite_weight(store, bookmarks, settings):
    raw = '{"conversation_id":"C1","list":[{"name":"Curry Club","weight":NaN}]}'
    bookmarks.add_bookmark("C1", settings.app_name, codec.link_prefix(settings.app_endpoint, "C1") + quote(raw, safe=""))
    (restaurant,) = store.get("C1").record.list
    assert restaurant.weight == 1
