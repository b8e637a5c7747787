from contatori.domain.models import DeliveryResult, Failed, Sent
from contatori.notifier.ports import AbstractOperatorNotifier


class FakeNotifier(AbstractOperatorNotifier):
    """In-memory test double for the AbstractOperatorNotifier port.

    Set ``failure`` to make every delivery come back as ``Failed`` or
    ``error`` to make ``notify`` raise (to check callers still cope). Inspect
    ``sent`` for ``(phone, message)`` pairs.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failure: str | None = None
        self.error: Exception | None = None
        self.closed: bool = False

    async def notify(self, phone: str, message: str) -> DeliveryResult:
        if self.error:
            raise self.error
        if self.failure:
            return Failed(reason=self.failure)
        self.sent.append((phone, message))
        return Sent(provider_id=f"fake-{len(self.sent)}")

    async def close(self) -> None:
        self.closed = True
