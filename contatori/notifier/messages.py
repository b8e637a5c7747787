import datetime as dt

from contatori.domain.models import Appointment
from contatori.scheduling.datetime_helpers import date_to_it_short


def _customer_block(appointment: Appointment) -> str:
    return (
        f"Cliente: {appointment.customer_name or '-'}\n"
        f"Indirizzo: {appointment.address or '-'}, {appointment.municipality or '-'}\n"
        f"Matricola: {appointment.matricola}"
    )


def confirmation_message(appointment: Appointment) -> str:
    return (
        "APPUNTAMENTO CONFERMATO\n"
        f"{_customer_block(appointment)}\n"
        f"Data: {date_to_it_short(appointment.date)}\n"
        f"Fascia: {appointment.time_slot}"
    )


def reschedule_message(
    appointment: Appointment, previous_date: dt.date, previous_slot: str
) -> str:
    return (
        "APPUNTAMENTO RIPROGRAMMATO\n"
        f"{_customer_block(appointment)}\n"
        f"Prima: {date_to_it_short(previous_date)} {previous_slot}\n"
        f"Ora: {date_to_it_short(appointment.date)} {appointment.time_slot}\n"
        f"Motivo: {appointment.reschedule_notes or '-'}"
    )
