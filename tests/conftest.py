import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fakes import FakeClock, RecordingSleep, sample_deck  # noqa: E402
from quizdeck.core.services.retry import RetryPolicy  # noqa: E402
from quizdeck.store.shared_store import SharedSessionStore  # noqa: E402


@pytest.fixture
def shared():
    return SharedSessionStore()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 4, 8, 30, tzinfo=timezone.utc))


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def retry(sleep):
    return RetryPolicy(max_attempts=3, delay_seconds=1.0, sleep=sleep)


@pytest.fixture
def deck():
    return sample_deck()
