from abc import ABC, abstractmethod

from contatori.domain.models import DeliveryResult


class AbstractOperatorNotifier(ABC):
    """Abstract base class for sending text notifications to operators."""

    @abstractmethod
    async def notify(self, phone: str, message: str) -> DeliveryResult:
        """Deliver ``message`` to ``phone``.

        Args:
            phone: Operator phone number as stored in ``operatori.telefono``.
            message: Plain-text body.

        Returns:
            ``Sent`` on acceptance by the gateway, ``Failed`` otherwise. Never
            raises: transport errors are reported as ``Failed``.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by this notifier."""
