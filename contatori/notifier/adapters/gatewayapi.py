from typing import Any

import httpx
from loguru import logger

from contatori.domain.models import DeliveryResult, Failed, Sent
from contatori.notifier.ports import AbstractOperatorNotifier


def to_msisdn(phone: str) -> str:
    """Normalise a stored phone number to GatewayAPI's MSISDN form.

    ``+39 333 123 4567`` → ``393331234567``; bare Italian mobiles get the
    ``39`` country code.
    """
    digits = "".join(ch for ch in phone if ch.isdigit())
    if phone.strip().startswith("00"):
        digits = digits[2:]
    elif not phone.strip().startswith("+") and len(digits) == 10 and digits.startswith("3"):
        digits = f"39{digits}"
    return digits


class GatewayApiNotifier(AbstractOperatorNotifier):
    """SMS notifier via the GatewayAPI REST endpoint."""

    def __init__(
        self,
        api_token: str,
        *,
        sender: str,
        api_url: str = "https://gatewayapi.com/rest/mtsms",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._api_token = api_token
        self._sender = sender
        self._api_url = api_url
        self._client = httpx.AsyncClient(timeout=timeout_seconds)

    async def notify(self, phone: str, message: str) -> DeliveryResult:
        msisdn = to_msisdn(phone)
        if not msisdn:
            return Failed(reason=f"Invalid phone number '{phone}'")

        try:
            resp = await self._client.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_token}"},
                json={
                    "sender": self._sender,
                    "message": message,
                    "recipients": [{"msisdn": msisdn}],
                },
            )
            resp.raise_for_status()
            data: dict[str, Any] = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("GatewayAPI rejected SMS: status={}", exc.response.status_code)
            return Failed(reason=f"GatewayAPI returned {exc.response.status_code}")
        except Exception as exc:
            logger.warning("GatewayAPI request failed: {}", exc)
            return Failed(reason=f"GatewayAPI request failed: {exc}")

        ids: list[Any] = data.get("ids") or []
        logger.info("SMS accepted by GatewayAPI: ids={}", ids)
        return Sent(provider_id=str(ids[0]) if ids else None)

    async def close(self) -> None:
        await self._client.aclose()
