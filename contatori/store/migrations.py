"""Versioned schema migrations, applied once at startup.

Each step runs inside the same transaction as the bookkeeping row recording it in
``schema_migrations``, so a failed step leaves the version unrecorded.
"""

import datetime as dt
from collections.abc import Callable

from loguru import logger
from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, inspect, select, text
from sqlalchemy.engine import Connection, Engine

from contatori.store.adapters.tables import SLOT_INDEX, Base

_bookkeeping = MetaData()

SCHEMA_MIGRATIONS = Table(
    "schema_migrations",
    _bookkeeping,
    Column("version", Integer, primary_key=True),
    Column("description", String(255)),
    Column("applied_at", DateTime),
)

# Columns that older deployments added lazily on request; declared here once.
_WORKFLOW_COLUMNS: tuple[tuple[str, str], ...] = (
    ("stato", "VARCHAR(50) DEFAULT 'programmato'"),
    ("note_riprogrammazione", "TEXT"),
    ("data_conferma", "TIMESTAMP"),
    ("data_modifica", "TIMESTAMP"),
    ("operatore", "VARCHAR(255)"),
)


def _create_base_tables(conn: Connection) -> None:
    Base.metadata.create_all(conn, checkfirst=True)


def _add_workflow_columns(conn: Connection) -> None:
    existing = {column["name"] for column in inspect(conn).get_columns("pianificazioni")}
    for name, ddl in _WORKFLOW_COLUMNS:
        if name in existing:
            continue
        logger.info("Adding column pianificazioni.{}", name)
        conn.execute(text(f"ALTER TABLE pianificazioni ADD COLUMN {name} {ddl}"))


def _backfill_status(conn: Connection) -> None:
    conn.execute(text("UPDATE pianificazioni SET stato = 'programmato' WHERE stato IS NULL"))


def _add_slot_index(conn: Connection) -> None:
    SLOT_INDEX.create(conn, checkfirst=True)


MIGRATIONS: tuple[tuple[int, str, Callable[[Connection], None]], ...] = (
    (1, "create base tables", _create_base_tables),
    (2, "add workflow columns", _add_workflow_columns),
    (3, "backfill appointment status", _backfill_status),
    (4, "index appointments by date and slot", _add_slot_index),
)


def apply_migrations(engine: Engine) -> list[int]:
    """Apply pending migrations in version order. Returns the versions applied."""
    applied_now: list[int] = []
    with engine.begin() as conn:
        SCHEMA_MIGRATIONS.create(conn, checkfirst=True)
        applied = set(conn.execute(select(SCHEMA_MIGRATIONS.c.version)).scalars())

        for version, description, step in MIGRATIONS:
            if version in applied:
                continue
            logger.info("Applying migration {}: {}", version, description)
            step(conn)
            conn.execute(
                SCHEMA_MIGRATIONS.insert().values(
                    version=version,
                    description=description,
                    applied_at=dt.datetime.now(dt.timezone.utc).replace(tzinfo=None),
                )
            )
            applied_now.append(version)

    if applied_now:
        logger.info("Schema migrated to version {}", applied_now[-1])
    else:
        logger.debug("Schema already up to date")
    return applied_now
