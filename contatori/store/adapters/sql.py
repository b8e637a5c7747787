import asyncio
import datetime as dt
import zlib
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy import create_engine, event, func, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, sessionmaker

from contatori.domain.exceptions import StoreUnavailableError
from contatori.domain.models import (
    Appointment,
    AppointmentStatus,
    CallLogEntry,
    NewAppointment,
    Operator,
)
from contatori.store.adapters.tables import AppointmentRow, CallLogRow, OperatorRow
from contatori.store.migrations import apply_migrations
from contatori.store.ports import AbstractAppointmentStore

T = TypeVar("T")

_JOINED = (joinedload(AppointmentRow.work_order), joinedload(AppointmentRow.operator))


def _engine_options(url: str, pool_size: int, max_overflow: int, pool_recycle: int) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # Queries run in worker threads via asyncio.to_thread
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_recycle": pool_recycle,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
    }


def _begin_immediate_on_sqlite(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first write; hold the write lock from the start
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _slot_lock_key(date: dt.date, time_slot: str) -> int:
    return zlib.crc32(f"{date.isoformat()}|{time_slot}".encode())


def _parse_status(value: str | None) -> AppointmentStatus | None:
    try:
        return AppointmentStatus(value) if value else None
    except ValueError:
        logger.warning("Unknown appointment status '{}' in store", value)
        return None


def _to_appointment(row: AppointmentRow) -> Appointment:
    operator_name = f"{row.operator.nome} {row.operator.cognome}" if row.operator else None
    return Appointment(
        appointment_id=row.id,
        matricola=row.matricola,
        customer_name=row.nome_utente,
        address=row.indirizzo,
        municipality=row.comune,
        point_id=row.pdr_pdp,
        date=row.data_appuntamento,
        time_slot=row.fascia_oraria,
        phone=row.telefono,
        activity_type=row.work_order.tipo_attivita if row.work_order else None,
        client=row.work_order.committente if row.work_order else None,
        operator_id=row.operatore_id,
        operator_display_name=row.operatore,
        operator_name=operator_name,
        status=_parse_status(row.stato),
        reschedule_notes=row.note_riprogrammazione,
        confirmed_at=row.data_conferma,
        modified_at=row.data_modifica,
    )


def _to_operator(row: OperatorRow) -> Operator:
    return Operator(
        operator_id=row.id,
        first_name=row.nome,
        last_name=row.cognome,
        phone=row.telefono,
    )


def _active_in_slot(date: dt.date, time_slot: str) -> tuple[Any, ...]:
    return (
        AppointmentRow.data_appuntamento == date,
        AppointmentRow.fascia_oraria == time_slot,
        or_(
            AppointmentRow.stato.is_(None),
            AppointmentRow.stato != AppointmentStatus.CANCELLED.value,
        ),
    )


class SqlAppointmentStore(AbstractAppointmentStore):
    """Appointment store backed by a relational database through SQLAlchemy.

    The engine is synchronous; every call runs in a worker thread inside its own
    transaction.
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_recycle: int = 300,
    ) -> None:
        self._engine = create_engine(
            url, **_engine_options(url, pool_size, max_overflow, pool_recycle)
        )
        if self._engine.dialect.name == "sqlite":
            _begin_immediate_on_sqlite(self._engine)
        self._sessions = sessionmaker(
            bind=self._engine, autoflush=False, expire_on_commit=False
        )

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    async def _call(self, description: str, operation: Callable[[Session], T]) -> T:
        def _work() -> T:
            with self._sessions() as session, session.begin():
                return operation(session)

        try:
            return await asyncio.to_thread(_work)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"{description} failed: {exc}") from exc

    async def find_latest_by_matricola(self, matricola: str) -> Appointment | None:
        def _query(session: Session) -> Appointment | None:
            row = session.scalars(
                select(AppointmentRow)
                .options(*_JOINED)
                .where(AppointmentRow.matricola == matricola)
                .order_by(AppointmentRow.data_appuntamento.desc())
                .limit(1)
            ).first()
            return _to_appointment(row) if row else None

        return await self._call("Appointment search", _query)

    async def find_by_reference(
        self, appointment_id: int | None, matricola: str | None
    ) -> Appointment | None:
        conditions = []
        if appointment_id is not None:
            conditions.append(AppointmentRow.id == appointment_id)
        if matricola:
            conditions.append(AppointmentRow.matricola == matricola)
        if not conditions:
            return None

        def _query(session: Session) -> Appointment | None:
            row = session.scalars(
                select(AppointmentRow).options(*_JOINED).where(or_(*conditions)).limit(1)
            ).first()
            return _to_appointment(row) if row else None

        return await self._call("Appointment lookup", _query)

    async def confirm(self, appointment_id: int, confirmed_at: dt.datetime) -> Appointment:
        def _update(session: Session) -> Appointment:
            row = session.get(AppointmentRow, appointment_id, options=_JOINED)
            if row is None:
                raise StoreUnavailableError(f"Appointment {appointment_id} disappeared")
            row.stato = AppointmentStatus.CONFIRMED.value
            row.data_conferma = confirmed_at
            session.flush()
            return _to_appointment(row)

        return await self._call("Appointment confirmation", _update)

    async def count_active_in_slot(self, date: dt.date, time_slot: str) -> int:
        def _count(session: Session) -> int:
            return session.scalar(
                select(func.count())
                .select_from(AppointmentRow)
                .where(*_active_in_slot(date, time_slot))
            ) or 0

        return await self._call("Slot availability check", _count)

    async def reschedule_within_capacity(
        self,
        appointment_id: int,
        new_date: dt.date,
        new_slot: str,
        reason: str,
        modified_at: dt.datetime,
        capacity: int,
    ) -> Appointment | None:
        serialise = self.dialect == "postgresql"

        def _move(session: Session) -> Appointment | None:
            if serialise:
                # Held until commit: concurrent reschedules into the same slot queue here
                session.execute(
                    text("SELECT pg_advisory_xact_lock(:key)"),
                    {"key": _slot_lock_key(new_date, new_slot)},
                )
            booked = session.scalar(
                select(func.count())
                .select_from(AppointmentRow)
                .where(*_active_in_slot(new_date, new_slot))
            ) or 0
            if booked >= capacity:
                return None

            row = session.get(AppointmentRow, appointment_id, options=_JOINED)
            if row is None:
                raise StoreUnavailableError(f"Appointment {appointment_id} disappeared")
            row.data_appuntamento = new_date
            row.fascia_oraria = new_slot
            row.stato = AppointmentStatus.RESCHEDULED.value
            row.note_riprogrammazione = reason
            row.data_modifica = modified_at
            session.flush()
            return _to_appointment(row)

        return await self._call("Appointment reschedule", _move)

    async def get_operator(self, operator_id: int) -> Operator | None:
        def _query(session: Session) -> Operator | None:
            row = session.get(OperatorRow, operator_id)
            return _to_operator(row) if row else None

        return await self._call("Operator lookup", _query)

    async def find_operator_by_name(self, first_name: str, last_name: str) -> Operator | None:
        def _query(session: Session) -> Operator | None:
            row = session.scalars(
                select(OperatorRow)
                .where(
                    func.lower(OperatorRow.nome) == first_name.lower(),
                    func.lower(OperatorRow.cognome) == last_name.lower(),
                )
                .limit(1)
            ).first()
            return _to_operator(row) if row else None

        return await self._call("Operator lookup", _query)

    async def append_call_log(self, entry: CallLogEntry) -> None:
        def _insert(session: Session) -> None:
            session.add(
                CallLogRow(
                    matricola=entry.matricola,
                    action_taken=entry.action.value,
                    details=entry.details,
                    timestamp=entry.timestamp,
                )
            )

        await self._call("Call log insert", _insert)

    async def list_recent(self, limit: int = 50) -> list[Appointment]:
        def _query(session: Session) -> list[Appointment]:
            rows = session.scalars(
                select(AppointmentRow)
                .options(*_JOINED)
                .order_by(AppointmentRow.data_appuntamento.desc())
                .limit(limit)
            ).all()
            return [_to_appointment(row) for row in rows]

        return await self._call("Appointment listing", _query)

    async def create_appointment(self, appointment: NewAppointment) -> Appointment:
        def _insert(session: Session) -> Appointment:
            row = AppointmentRow(
                nome_utente=appointment.customer_name,
                indirizzo=appointment.address,
                comune=appointment.municipality,
                matricola=appointment.matricola,
                pdr_pdp=appointment.point_id,
                data_appuntamento=appointment.date,
                fascia_oraria=appointment.time_slot,
                telefono=appointment.phone,
                commessa_id=appointment.work_order_id,
                operatore_id=appointment.operator_id,
                operatore=appointment.operator_display_name,
                stato=AppointmentStatus.SCHEDULED.value,
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return _to_appointment(row)

        return await self._call("Appointment insert", _insert)

    async def migrate(self) -> None:
        try:
            await asyncio.to_thread(apply_migrations, self._engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Schema migration failed: {exc}") from exc

    async def health_check(self) -> bool:
        try:
            await self._call("Health check", lambda session: session.execute(text("SELECT 1")))
        except StoreUnavailableError as exc:
            logger.warning("Store health check failed: {}", exc)
            return False
        return True

    async def close(self) -> None:
        await asyncio.to_thread(self._engine.dispose)
