from loguru import logger

from contatori.domain.models import DeliveryResult, Failed
from contatori.notifier.ports import AbstractOperatorNotifier


class LogOnlyNotifier(AbstractOperatorNotifier):
    """Notifier for deployments without SMS credentials.

    Writes the message to the log and reports it as not delivered, so callers
    word their responses as if the operator was not reached.
    """

    async def notify(self, phone: str, message: str) -> DeliveryResult:
        logger.info("SMS disabled, operator message not sent:\n{}", message)
        return Failed(reason="notifications disabled")

    async def close(self) -> None:
        return None
