"""
WhatsApp Cloud API provider - posts rendered replies to the Graph API.

Includes retry with exponential backoff on transient failures and a circuit
breaker. Without an access token the provider runs in simulation mode and
only logs what it would have sent, which keeps local development and the chat
simulator usable without Meta credentials.
"""
from __future__ import annotations

import asyncio
from typing import Any

import httpx

from constituent_bot.core.circuit_breaker import CircuitBreaker
from constituent_bot.core.config import settings
from constituent_bot.core.exceptions import WhatsAppError
from constituent_bot.core.logging import get_logger
from constituent_bot.core.validation import PhoneNumberValidator
from constituent_bot.domain.services.whatsapp.base_provider import BaseWhatsAppProvider
from constituent_bot.state_machine.messages import OutboundMessage
from constituent_bot.state_machine.renderer import to_whatsapp_payload

logger = get_logger(__name__)


class CloudApiProvider(BaseWhatsAppProvider):
    """Graph API /{phone-number-id}/messages sender"""

    def __init__(self, circuit_breaker: CircuitBreaker) -> None:
        self._circuit_breaker = circuit_breaker
        self._token = settings.WHATSAPP_CLOUD_API_TOKEN
        self._phone_id = settings.WHATSAPP_CLOUD_API_PHONE_ID
        self._timeout = settings.WHATSAPP_REQUEST_TIMEOUT_SECONDS
        self._max_retries = settings.WHATSAPP_MAX_RETRIES
        self._transient_status_codes = {
            int(code.strip())
            for code in settings.WHATSAPP_TRANSIENT_STATUS_CODES.split(",")
            if code.strip()
        }
        self._messages_url = (
            f"{settings.WHATSAPP_CLOUD_API_BASE_URL.rstrip('/')}/"
            f"{settings.WHATSAPP_CLOUD_API_VERSION}/{self._phone_id}/messages"
        )

    @property
    def provider_name(self) -> str:
        return "cloud_api"

    @property
    def is_simulated(self) -> bool:
        return not (self._token and self._phone_id)

    def normalize_phone(self, phone: str) -> str:
        return PhoneNumberValidator.normalize(phone)

    async def send_message(self, to: str, message: OutboundMessage) -> None:
        recipient = self.normalize_phone(to)
        payload = to_whatsapp_payload(message, recipient)

        if self.is_simulated:
            logger.info(
                "WhatsApp send simulated, no Cloud API credentials",
                extra_data={
                    "phone": PhoneNumberValidator.mask(recipient),
                    "message_type": payload.get("type"),
                },
            )
            return

        async def _send() -> None:
            await self._request_with_retry(payload, f"send_{payload['type']}")

        await self._circuit_breaker.execute(_send)

    async def _request_with_retry(self, payload: dict[str, Any], operation_name: str) -> None:
        """POST with retry and exponential backoff; raises WhatsAppError when all attempts fail"""
        phone_masked = PhoneNumberValidator.mask(payload.get("to", ""))
        headers = {"Authorization": f"Bearer {self._token}"}

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            for attempt in range(self._max_retries):
                is_last = attempt >= self._max_retries - 1
                backoff = 2 ** attempt
                try:
                    response = await client.post(self._messages_url, json=payload, headers=headers)
                except httpx.TimeoutException:
                    if not is_last:
                        logger.warning(
                            f"{operation_name} timeout, retrying",
                            extra_data={"phone": phone_masked, "attempt": attempt + 1, "backoff_seconds": backoff},
                        )
                        await asyncio.sleep(backoff)
                        continue
                    raise WhatsAppError(
                        message=f"{operation_name} timeout after retries",
                        details={"timeout": True, "attempts": self._max_retries},
                    )
                except httpx.RequestError as exc:
                    if not is_last:
                        logger.warning(
                            f"Network error in {operation_name}, retrying",
                            extra_data={
                                "phone": phone_masked,
                                "error": str(exc),
                                "attempt": attempt + 1,
                                "backoff_seconds": backoff,
                            },
                        )
                        await asyncio.sleep(backoff)
                        continue
                    raise WhatsAppError(
                        message=f"{operation_name} network error: {str(exc)}",
                        details={"network_error": True, "attempts": self._max_retries},
                    )

                if response.status_code == 200:
                    logger.info(
                        "WhatsApp message sent",
                        extra_data={"phone": phone_masked, "operation": operation_name},
                    )
                    return

                if response.status_code in self._transient_status_codes and not is_last:
                    logger.warning(
                        f"Transient error in {operation_name}, retrying",
                        extra_data={
                            "phone": phone_masked,
                            "status_code": response.status_code,
                            "attempt": attempt + 1,
                            "max_retries": self._max_retries,
                            "backoff_seconds": backoff,
                        },
                    )
                    await asyncio.sleep(backoff)
                    continue

                raise WhatsAppError.from_response(operation_name, response)
