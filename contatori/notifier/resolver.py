from loguru import logger

from contatori.domain.models import ByDisplayName, ById, OperatorRef
from contatori.store.ports import AbstractAppointmentStore


def split_display_name(display_name: str) -> tuple[str, str] | None:
    """Split ``"Mario De Rossi"`` into ``("Mario", "De Rossi")``.

    Returns None when there are fewer than two whitespace-separated tokens.
    """
    parts = display_name.split()
    if len(parts) < 2:
        return None
    return parts[0], " ".join(parts[1:])


class OperatorPhoneResolver:
    """Resolves an appointment's operator reference to a phone number."""

    def __init__(self, store: AbstractAppointmentStore) -> None:
        self._store = store

    async def resolve(self, ref: OperatorRef | None) -> str | None:
        if ref is None:
            return None

        if isinstance(ref, ById):
            operator = await self._store.get_operator(ref.operator_id)
        elif isinstance(ref, ByDisplayName):
            name = split_display_name(ref.display_name)
            if name is None:
                logger.debug("Operator name '{}' has no surname, not resolvable", ref.display_name)
                return None
            operator = await self._store.find_operator_by_name(*name)
        else:
            raise TypeError(f"Unsupported operator reference: {ref!r}")

        if operator is None or not operator.phone:
            return None
        return operator.phone
