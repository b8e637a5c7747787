import datetime as dt
from abc import ABC, abstractmethod

from contatori.domain.models import Appointment, CallLogEntry, NewAppointment, Operator


class AbstractAppointmentStore(ABC):
    """Abstract base class for the durable appointment store."""

    @abstractmethod
    async def find_latest_by_matricola(self, matricola: str) -> Appointment | None:
        """Return the appointment with the most recent date for a meter serial.

        Args:
            matricola: The meter serial number.

        Returns:
            The joined appointment, or None if the serial has no appointment.

        Raises:
            StoreUnavailableError: If the store cannot be queried.
        """

    @abstractmethod
    async def find_by_reference(
        self, appointment_id: int | None, matricola: str | None
    ) -> Appointment | None:
        """Return one appointment whose id OR matricola matches.

        When both references match different rows the pick is arbitrary.
        """

    @abstractmethod
    async def confirm(self, appointment_id: int, confirmed_at: dt.datetime) -> Appointment:
        """Mark an appointment ``confermato`` and stamp the confirmation time.

        Returns:
            The updated appointment.

        Raises:
            StoreUnavailableError: If the update fails or the row disappeared.
        """

    @abstractmethod
    async def count_active_in_slot(self, date: dt.date, time_slot: str) -> int:
        """Count non-cancelled appointments booked on ``(date, time_slot)``.

        Read-only inspection of slot occupancy. ``reschedule_within_capacity``
        runs its own count inside its transaction and does not call this.
        """

    @abstractmethod
    async def reschedule_within_capacity(
        self,
        appointment_id: int,
        new_date: dt.date,
        new_slot: str,
        reason: str,
        modified_at: dt.datetime,
        capacity: int,
    ) -> Appointment | None:
        """Move an appointment if the target slot holds fewer than ``capacity`` bookings.

        The count and the update happen in one transaction.

        Returns:
            The updated appointment, or None when the slot is full.

        Raises:
            StoreUnavailableError: If the transaction fails.
        """

    @abstractmethod
    async def get_operator(self, operator_id: int) -> Operator | None:
        """Look up an operator by primary key."""

    @abstractmethod
    async def find_operator_by_name(self, first_name: str, last_name: str) -> Operator | None:
        """Case-insensitive lookup of an operator by first and last name."""

    @abstractmethod
    async def append_call_log(self, entry: CallLogEntry) -> None:
        """Append an audit entry to ``call_logs``."""

    @abstractmethod
    async def list_recent(self, limit: int = 50) -> list[Appointment]:
        """Return the most recent appointments by date, newest first."""

    @abstractmethod
    async def create_appointment(self, appointment: NewAppointment) -> Appointment:
        """Insert an appointment in status ``programmato``."""

    @abstractmethod
    async def migrate(self) -> None:
        """Bring the schema up to date. Called once at startup."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the store answers a trivial query."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by this store."""
