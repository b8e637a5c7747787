"""Request bodies sent by the voice platform's webhook tools.

Field names are the contract configured on the voice platform side.
"""

import datetime as dt
from typing import Annotated

from pydantic import BaseModel, BeforeValidator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _number_to_text(value: object) -> object:
    # Speech-to-text tools send all-digit serials as JSON numbers
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


OptionalId = Annotated[int | None, BeforeValidator(_blank_to_none)]
OptionalText = Annotated[str | None, BeforeValidator(_blank_to_none)]
Matricola = Annotated[
    str | None, BeforeValidator(_blank_to_none), BeforeValidator(_number_to_text)
]


class SearchRequest(BaseModel):
    matricola: Matricola = None


class ConfirmRequest(BaseModel):
    appointment_id: OptionalId = None
    matricola: Matricola = None


class RescheduleRequest(BaseModel):
    appointment_id: OptionalId = None
    matricola: Matricola = None
    new_date: dt.date
    new_time_slot: str
    reason: OptionalText = None


class ValidateDateRequest(BaseModel):
    proposed_date: dt.date
    time_slot: OptionalText = None


class InfoRequest(BaseModel):
    topic: str | None = None
