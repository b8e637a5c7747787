import datetime as dt
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from contatori.domain.exceptions import InvalidRequestError, StoreUnavailableError
from contatori.domain.models import (
    DEFAULT_RESCHEDULE_REASON,
    Appointment,
    CallAction,
    CallLogEntry,
    CapacityExceeded,
    Confirmed,
    CurrentDateInfo,
    DateValidation,
    DeliveryResult,
    Failed,
    NewAppointment,
    NotFound,
    Rescheduled,
    SlotAlternative,
)
from contatori.notifier.messages import confirmation_message, reschedule_message
from contatori.notifier.ports import AbstractOperatorNotifier
from contatori.notifier.resolver import OperatorPhoneResolver
from contatori.scheduling import policy
from contatori.scheduling.datetime_helpers import date_to_it_long, resolve_timezone
from contatori.store.ports import AbstractAppointmentStore

T = TypeVar("T")

DEFAULT_SLOT_CAPACITY = 5

# Offered verbatim when a slot is full; availability of these is not checked.
CAPACITY_FALLBACK_SLOTS: tuple[str, ...] = ("08:00-12:00", "13:00-17:00")

CURRENT_INFO_HORIZON_DAYS = 30
CURRENT_INFO_DATES = 10


class SchedulingService:
    """Looks up, confirms and reschedules appointments.

    The only component that mutates appointment state. Operator SMS and call-log
    writes are side effects: their failures are logged and folded into the
    returned outcome, never raised.
    """

    def __init__(
        self,
        store: AbstractAppointmentStore,
        notifier: AbstractOperatorNotifier,
        *,
        timezone: str = "Europe/Rome",
        slot_capacity: int = DEFAULT_SLOT_CAPACITY,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._resolver = OperatorPhoneResolver(store)
        self._tz = resolve_timezone(timezone)
        self._capacity = slot_capacity
        self._clock = clock or (lambda: dt.datetime.now(self._tz))

    def now(self) -> dt.datetime:
        """Local wall-clock time, naive, as stored in the TIMESTAMP columns."""
        current = self._clock()
        if current.tzinfo is not None:
            current = current.astimezone(self._tz).replace(tzinfo=None)
        return current

    def today(self) -> dt.date:
        return self.now().date()

    async def _guard(self, description: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise StoreUnavailableError(f"{description} failed: {exc}") from exc

    async def find_latest_by_matricola(self, matricola: str) -> Appointment | NotFound:
        """Return the most recent appointment for a meter serial."""
        matricola = (matricola or "").strip()
        if not matricola:
            raise InvalidRequestError("matricola", "is required")

        logger.info("Searching appointment for matricola {}", matricola)
        appointment = await self._guard(
            "Appointment search", self._store.find_latest_by_matricola(matricola)
        )
        if appointment is None:
            logger.info("No appointment for matricola {}", matricola)
            return NotFound(matricola=matricola)
        return appointment

    async def _resolve_target(
        self, appointment_id: int | None, matricola: str | None
    ) -> Appointment | None:
        matricola = (matricola or "").strip() or None
        if appointment_id is None and matricola is None:
            raise InvalidRequestError("appointment_id", "appointment_id or matricola is required")
        return await self._guard(
            "Appointment lookup", self._store.find_by_reference(appointment_id, matricola)
        )

    async def confirm_appointment(
        self, appointment_id: int | None = None, matricola: str | None = None
    ) -> Confirmed | NotFound:
        """Confirm an appointment found by id or matricola, then tell its operator."""
        target = await self._resolve_target(appointment_id, matricola)
        if target is None:
            logger.info("Confirm: no appointment for id={} matricola={}", appointment_id, matricola)
            return NotFound(appointment_id=appointment_id, matricola=matricola)

        now = self.now()
        appointment = await self._guard(
            "Appointment confirmation", self._store.confirm(target.appointment_id, now)
        )
        logger.info("Appointment {} confirmed", appointment.appointment_id)

        notification = await self._notify_operator(appointment, confirmation_message(appointment))
        await self._audit(
            CallLogEntry(
                matricola=appointment.matricola,
                action=CallAction.CONFIRM,
                details="Appuntamento confermato telefonicamente",
                timestamp=now,
            )
        )
        return Confirmed(appointment=appointment, notification=notification)

    async def reschedule_appointment(
        self,
        new_date: dt.date,
        new_slot: str,
        *,
        appointment_id: int | None = None,
        matricola: str | None = None,
        reason: str | None = None,
    ) -> Rescheduled | CapacityExceeded | NotFound:
        """Move an appointment to ``(new_date, new_slot)`` if the slot has room.

        The requested date is not checked against the date policy here.
        """
        if not new_slot:
            raise InvalidRequestError("new_time_slot", "is required")

        target = await self._resolve_target(appointment_id, matricola)
        if target is None:
            logger.info(
                "Reschedule: no appointment for id={} matricola={}", appointment_id, matricola
            )
            return NotFound(appointment_id=appointment_id, matricola=matricola)

        now = self.now()
        moved = await self._guard(
            "Appointment reschedule",
            self._store.reschedule_within_capacity(
                target.appointment_id,
                new_date,
                new_slot,
                (reason or "").strip() or DEFAULT_RESCHEDULE_REASON,
                now,
                self._capacity,
            ),
        )
        if moved is None:
            logger.info("Slot {} {} is full, offering alternatives", new_date, new_slot)
            return CapacityExceeded(
                date=new_date,
                time_slot=new_slot,
                alternatives=tuple(
                    SlotAlternative(date=new_date, time=slot) for slot in CAPACITY_FALLBACK_SLOTS
                ),
            )

        logger.info(
            "Appointment {} moved from {} {} to {} {}",
            moved.appointment_id,
            target.date,
            target.time_slot,
            moved.date,
            moved.time_slot,
        )
        notification = await self._notify_operator(
            moved, reschedule_message(moved, target.date, target.time_slot)
        )
        await self._audit(
            CallLogEntry(
                matricola=moved.matricola,
                action=CallAction.RESCHEDULE,
                details=f"Spostato a {new_date.isoformat()} {new_slot}",
                timestamp=now,
            )
        )
        return Rescheduled(
            appointment=moved,
            previous_date=target.date,
            previous_slot=target.time_slot,
            notification=notification,
        )

    def get_current_date_info(self) -> CurrentDateInfo:
        today = self.today()
        dates = policy.enumerate_available_dates(today, CURRENT_INFO_HORIZON_DAYS).take(
            CURRENT_INFO_DATES
        )
        return CurrentDateInfo(
            current_date=today,
            display=date_to_it_long(today),
            available_dates=tuple(dates),
            time_slots=policy.TIME_SLOTS,
        )

    def validate_proposed_date(self, date: dt.date, time_slot: str | None = None) -> DateValidation:
        if time_slot and time_slot not in policy.TIME_SLOTS:
            logger.debug("Time slot '{}' is not in the catalog", time_slot)
        return policy.validate_proposed_date(date, self.today())

    async def list_recent_appointments(self, limit: int = 50) -> list[Appointment]:
        return await self._guard("Appointment listing", self._store.list_recent(limit))

    async def create_appointment(self, appointment: NewAppointment) -> Appointment:
        created = await self._guard(
            "Appointment insert", self._store.create_appointment(appointment)
        )
        logger.info("Appointment {} created for matricola {}", created.appointment_id, created.matricola)
        return created

    async def _notify_operator(self, appointment: Appointment, message: str) -> DeliveryResult:
        try:
            phone = await self._resolver.resolve(appointment.operator_ref)
        except Exception as exc:
            logger.warning(
                "Operator lookup failed for appointment {}: {}", appointment.appointment_id, exc
            )
            return Failed(reason=f"operator lookup failed: {exc}")

        if phone is None:
            logger.info("No operator phone for appointment {}, SMS skipped", appointment.appointment_id)
            return Failed(reason="operator phone unresolved")

        try:
            result = await self._notifier.notify(phone, message)
        except Exception as exc:
            logger.warning("Notifier raised for appointment {}: {}", appointment.appointment_id, exc)
            return Failed(reason=str(exc))

        if isinstance(result, Failed):
            logger.warning(
                "Operator notification failed for appointment {}: {}",
                appointment.appointment_id,
                result.reason,
            )
        return result

    async def _audit(self, entry: CallLogEntry) -> None:
        try:
            await self._store.append_call_log(entry)
        except Exception as exc:
            logger.warning("Call log entry '{}' not written: {}", entry.action.value, exc)

    async def health_check(self) -> bool:
        return await self._store.health_check()

    async def close(self) -> None:
        await self._notifier.close()
        await self._store.close()
