"""Integration tests for the SQL store against a real PostgreSQL database.

These tests require ``DATABASE_URL`` pointing at a disposable PostgreSQL
database (in .env or the environment). Rows they create use a random
``ITEST-`` matricola prefix and are deleted afterwards.

Run explicitly with::

    pytest -m integration
"""

import asyncio
import datetime as dt
import os
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy import text

from contatori.domain.models import NewAppointment
from contatori.store.adapters.sql import SqlAppointmentStore

load_dotenv(override=True)

_URL = os.environ.get("DATABASE_URL", "").replace("postgres://", "postgresql://", 1)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.asyncio,
    pytest.mark.skipif(
        not _URL.startswith("postgresql"),
        reason="DATABASE_URL must point at a PostgreSQL database",
    ),
]

NOW = dt.datetime(2026, 10, 17, 10, 0)
# Far enough ahead that no real appointment shares the slot
TARGET_DATE = dt.date(2099, 3, 2)
TARGET_SLOT = "13:00-17:00"


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[SqlAppointmentStore]:
    s = SqlAppointmentStore(_URL)
    await s.migrate()
    yield s
    await s.close()


@pytest_asyncio.fixture
async def prefix(store: SqlAppointmentStore) -> AsyncGenerator[str]:
    value = f"ITEST-{uuid.uuid4().hex[:8]}"
    yield value
    with store._engine.begin() as conn:
        conn.execute(
            text("DELETE FROM pianificazioni WHERE matricola LIKE :p"), {"p": f"{value}%"}
        )


async def _create(store: SqlAppointmentStore, matricola: str) -> int:
    created = await store.create_appointment(
        NewAppointment(
            matricola=matricola,
            customer_name="Integrazione",
            address="Via Test 1",
            municipality="Milano",
            date=dt.date(2099, 3, 1),
            time_slot="08:00-10:00",
        )
    )
    return created.appointment_id


class TestPostgresStore:
    async def test_health_check(self, store: SqlAppointmentStore) -> None:
        assert await store.health_check() is True
        assert store.dialect == "postgresql"

    async def test_migrations_are_idempotent(self, store: SqlAppointmentStore) -> None:
        await store.migrate()

    async def test_concurrent_reschedules_respect_capacity(
        self, store: SqlAppointmentStore, prefix: str
    ) -> None:
        already_booked = await store.count_active_in_slot(TARGET_DATE, TARGET_SLOT)
        capacity = already_booked + 2
        ids = [await _create(store, f"{prefix}-{i}") for i in range(5)]

        results = await asyncio.gather(
            *(
                store.reschedule_within_capacity(
                    appointment_id, TARGET_DATE, TARGET_SLOT, "test", NOW, capacity
                )
                for appointment_id in ids
            )
        )

        assert sum(result is not None for result in results) == 2
        assert await store.count_active_in_slot(TARGET_DATE, TARGET_SLOT) == capacity
