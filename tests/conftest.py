import os
import random
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
sys.path.append(os.path.dirname(__file__))

from fakes import FakeBookmarks, FakeMessages  # noqa: E402
from restaurant_picker.config import Settings  # noqa: E402
from restaurant_picker.services.picker import PickerService  # noqa: E402
from restaurant_picker.services.sampler import WeightedSampler  # noqa: E402
from restaurant_picker.storage import RecordStore  # noqa: E402


class Clock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def tick(self, ms=1):
        self.now += ms
        return self.now


@pytest.fixture
def settings():
    return Settings(bot_token="xoxb", app_token="xapp", app_endpoint="https://picker.test")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def bookmarks():
    return FakeBookmarks()


@pytest.fixture
def messages():
    return FakeMessages()


@pytest.fixture
def store(bookmarks, settings, clock):
    return RecordStore(bookmarks, settings, clock=clock)


@pytest.fixture
def service(store, messages, settings, clock):
    return PickerService(store, messages, settings, sampler=WeightedSampler(random.Random(7)), clock=clock)
