import datetime as dt
import itertools

from contatori.domain.models import (
    Appointment,
    AppointmentStatus,
    CallLogEntry,
    NewAppointment,
    Operator,
)
from contatori.store.ports import AbstractAppointmentStore


class FakeAppointmentStore(AbstractAppointmentStore):
    """In-memory test double for the AbstractAppointmentStore port.

    Pre-load ``appointments`` and ``operators`` (or use ``add``) to control what
    the store returns. Set ``lookup_error``, ``write_error`` or
    ``call_log_error`` to make the corresponding calls raise.

    After calls, inspect ``call_logs`` and ``appointments`` to verify what the
    service wrote.
    """

    def __init__(self) -> None:
        self.appointments: dict[int, Appointment] = {}
        self.operators: dict[int, Operator] = {}
        self.call_logs: list[CallLogEntry] = []
        self.operator_name_lookups: list[tuple[str, str]] = []
        self.migrated: bool = False
        self.closed: bool = False

        self.lookup_error: Exception | None = None
        self.write_error: Exception | None = None
        self.call_log_error: Exception | None = None

        self._ids = itertools.count(1)

    def add(self, **fields: object) -> Appointment:
        fields.setdefault("appointment_id", next(self._ids))
        appointment = Appointment.model_validate(fields)
        self.appointments[appointment.appointment_id] = appointment
        return appointment

    def _joined(self, appointment: Appointment) -> Appointment:
        """Fill ``operator_name`` from ``operators``, like the SQL join on ``operatori``."""
        operator = self.operators.get(appointment.operator_id) if appointment.operator_id else None
        return appointment.model_copy(
            update={"operator_name": operator.full_name if operator else None}
        )

    async def find_latest_by_matricola(self, matricola: str) -> Appointment | None:
        if self.lookup_error:
            raise self.lookup_error
        matches = [a for a in self.appointments.values() if a.matricola == matricola]
        latest = max(matches, key=lambda a: a.date, default=None)
        return self._joined(latest) if latest else None

    async def find_by_reference(
        self, appointment_id: int | None, matricola: str | None
    ) -> Appointment | None:
        if self.lookup_error:
            raise self.lookup_error
        for appointment in self.appointments.values():
            if appointment.appointment_id == appointment_id or (
                matricola is not None and appointment.matricola == matricola
            ):
                return self._joined(appointment)
        return None

    async def confirm(self, appointment_id: int, confirmed_at: dt.datetime) -> Appointment:
        if self.write_error:
            raise self.write_error
        updated = self.appointments[appointment_id].model_copy(
            update={"status": AppointmentStatus.CONFIRMED, "confirmed_at": confirmed_at}
        )
        self.appointments[appointment_id] = updated
        return self._joined(updated)

    async def count_active_in_slot(self, date: dt.date, time_slot: str) -> int:
        if self.lookup_error:
            raise self.lookup_error
        return sum(
            1
            for a in self.appointments.values()
            if a.date == date
            and a.time_slot == time_slot
            and a.status != AppointmentStatus.CANCELLED
        )

    async def reschedule_within_capacity(
        self,
        appointment_id: int,
        new_date: dt.date,
        new_slot: str,
        reason: str,
        modified_at: dt.datetime,
        capacity: int,
    ) -> Appointment | None:
        if self.write_error:
            raise self.write_error
        if await self.count_active_in_slot(new_date, new_slot) >= capacity:
            return None
        updated = self.appointments[appointment_id].model_copy(
            update={
                "date": new_date,
                "time_slot": new_slot,
                "status": AppointmentStatus.RESCHEDULED,
                "reschedule_notes": reason,
                "modified_at": modified_at,
            }
        )
        self.appointments[appointment_id] = updated
        return self._joined(updated)

    async def get_operator(self, operator_id: int) -> Operator | None:
        return self.operators.get(operator_id)

    async def find_operator_by_name(self, first_name: str, last_name: str) -> Operator | None:
        self.operator_name_lookups.append((first_name, last_name))
        for operator in self.operators.values():
            if (
                operator.first_name.lower() == first_name.lower()
                and operator.last_name.lower() == last_name.lower()
            ):
                return operator
        return None

    async def append_call_log(self, entry: CallLogEntry) -> None:
        if self.call_log_error:
            raise self.call_log_error
        self.call_logs.append(entry)

    async def list_recent(self, limit: int = 50) -> list[Appointment]:
        ordered = sorted(self.appointments.values(), key=lambda a: a.date, reverse=True)
        return [self._joined(a) for a in ordered[:limit]]

    async def create_appointment(self, appointment: NewAppointment) -> Appointment:
        if self.write_error:
            raise self.write_error
        fields = appointment.model_dump(exclude={"work_order_id"})
        return self._joined(self.add(**fields))

    async def migrate(self) -> None:
        self.migrated = True

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True
