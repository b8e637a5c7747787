import datetime as dt

import pytest

from contatori.notifier.adapters.fake import FakeNotifier
from contatori.scheduling.service import SchedulingService
from contatori.store.adapters.fake import FakeAppointmentStore


@pytest.fixture
def fixed_now() -> dt.datetime:
    """Saturday 17 October 2026, 10:00 local time. The next day is a Sunday."""
    return dt.datetime(2026, 10, 17, 10, 0)


@pytest.fixture
def fake_store() -> FakeAppointmentStore:
    return FakeAppointmentStore()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def service(
    fake_store: FakeAppointmentStore, fake_notifier: FakeNotifier, fixed_now: dt.datetime
) -> SchedulingService:
    return SchedulingService(fake_store, fake_notifier, clock=lambda: fixed_now)
