from typing import Callable

from loguru import logger

from contatori.config import SmsAdapter, SmsConfig
from contatori.notifier.adapters.gatewayapi import GatewayApiNotifier
from contatori.notifier.adapters.log_only import LogOnlyNotifier
from contatori.notifier.ports import AbstractOperatorNotifier


def _build_gatewayapi(config: SmsConfig) -> AbstractOperatorNotifier:
    if not config.api_token:
        logger.warning("SMS_API_TOKEN is empty; falling back to log-only notifications")
        return LogOnlyNotifier()
    return GatewayApiNotifier(
        config.api_token,
        sender=config.sender,
        api_url=config.api_url,
        timeout_seconds=config.timeout_seconds,
    )


def _build_log(config: SmsConfig) -> AbstractOperatorNotifier:
    return LogOnlyNotifier()


_BUILDERS: dict[SmsAdapter, Callable[[SmsConfig], AbstractOperatorNotifier]] = {
    SmsAdapter.GATEWAYAPI: _build_gatewayapi,
    SmsAdapter.LOG: _build_log,
}


def build_notifier(config: SmsConfig) -> AbstractOperatorNotifier:
    """Build the operator notifier selected by config."""
    logger.info("Building operator notifier with adapter: {}", config.adapter.value)
    return _BUILDERS[config.adapter](config)
