"""
Provider Factory - lazily created WhatsApp provider singleton.
"""
from __future__ import annotations

import threading

from constituent_bot.core.circuit_breaker import get_whatsapp_circuit_breaker
from constituent_bot.core.logging import get_logger
from constituent_bot.domain.services.whatsapp.base_provider import BaseWhatsAppProvider

logger = get_logger(__name__)

_provider: BaseWhatsAppProvider | None = None
_lock = threading.Lock()


def get_whatsapp_provider() -> BaseWhatsAppProvider:
    global _provider
    if _provider is None:
        with _lock:
            if _provider is None:
                from constituent_bot.domain.services.whatsapp.cloud_api_provider import CloudApiProvider

                _provider = CloudApiProvider(circuit_breaker=get_whatsapp_circuit_breaker())
                logger.info(
                    "WhatsApp provider initialized",
                    extra_data={"provider": _provider.provider_name},
                )
    return _provider


def reset_providers() -> None:
    """Drop the cached provider; tests only."""
    global _provider
    with _lock:
        _provider = None
