import datetime as dt
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AppointmentStatus(str, Enum):
    """Lifecycle states persisted in ``pianificazioni.stato``."""

    SCHEDULED = "programmato"
    CONFIRMED = "confermato"
    RESCHEDULED = "riprogrammato"
    CANCELLED = "cancellato"


class CallAction(str, Enum):
    CONFIRM = "conferma"
    RESCHEDULE = "riprogrammazione"


DEFAULT_RESCHEDULE_REASON = "Riprogrammato su richiesta cliente"


class ById(BaseModel):
    """Operator referenced through the ``operatore_id`` foreign key."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["by_id"] = "by_id"
    operator_id: int


class ByDisplayName(BaseModel):
    """Operator referenced through the denormalised ``"Nome Cognome"`` text column."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["by_display_name"] = "by_display_name"
    display_name: str


OperatorRef = ById | ByDisplayName


class Operator(BaseModel):
    """A field technician who carries out the meter replacement."""

    model_config = ConfigDict(frozen=True)

    operator_id: int
    first_name: str
    last_name: str
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Appointment(BaseModel):
    """A meter replacement appointment, joined with its work order and operator."""

    model_config = ConfigDict(frozen=True)

    appointment_id: int
    matricola: str
    customer_name: str | None = None
    address: str | None = None
    municipality: str | None = None
    point_id: str | None = None
    date: dt.date
    time_slot: str
    phone: str | None = None
    activity_type: str | None = None
    client: str | None = None
    operator_id: int | None = None
    operator_display_name: str | None = None
    operator_name: str | None = None
    status: AppointmentStatus | None = AppointmentStatus.SCHEDULED
    reschedule_notes: str | None = None
    confirmed_at: dt.datetime | None = None
    modified_at: dt.datetime | None = None

    @property
    def operator_ref(self) -> OperatorRef | None:
        if self.operator_id is not None:
            return ById(operator_id=self.operator_id)
        if self.operator_display_name:
            return ByDisplayName(display_name=self.operator_display_name)
        return None


class NewAppointment(BaseModel):
    """Fields required to insert an appointment row."""

    model_config = ConfigDict(frozen=True)

    matricola: str
    customer_name: str
    address: str
    municipality: str
    point_id: str | None = None
    date: dt.date
    time_slot: str
    phone: str | None = None
    work_order_id: int | None = None
    operator_id: int | None = None
    operator_display_name: str | None = None


class CallLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    matricola: str | None
    action: CallAction
    details: str
    timestamp: dt.datetime


class AvailableDate(BaseModel):
    """A calendar date that can be offered to the caller."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    display: str
    weekday: str


class ValidDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["valid"] = "valid"
    date: dt.date
    time_slots: tuple[str, ...]


class InvalidDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["invalid"] = "invalid"
    date: dt.date
    reason: Literal["past_date", "sunday"]
    suggested_dates: tuple[AvailableDate, ...] = Field(max_length=5)


DateValidation = ValidDate | InvalidDate


class Sent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["sent"] = "sent"
    provider_id: str | None = None


class Failed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["failed"] = "failed"
    reason: str


DeliveryResult = Sent | Failed


class NotFound(BaseModel):
    """No appointment matched the caller's reference. A normal outcome, not a fault."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["not_found"] = "not_found"
    appointment_id: int | None = None
    matricola: str | None = None


class Confirmed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["confirmed"] = "confirmed"
    appointment: Appointment
    notification: DeliveryResult


class SlotAlternative(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    time: str


class CapacityExceeded(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["capacity_exceeded"] = "capacity_exceeded"
    date: dt.date
    time_slot: str
    alternatives: tuple[SlotAlternative, ...]


class Rescheduled(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["rescheduled"] = "rescheduled"
    appointment: Appointment
    previous_date: dt.date
    previous_slot: str
    notification: DeliveryResult


class CurrentDateInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_date: dt.date
    display: str
    available_dates: tuple[AvailableDate, ...]
    time_slots: tuple[str, ...]
