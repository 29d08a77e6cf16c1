from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pawsistente.repos.storage import InMemoryStorage
from tests.factories import FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 10, 20, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()
