"""
WhatsApp Provider Abstraction Layer

Lets the rest of the application send replies without knowing the transport.
"""
from constituent_bot.domain.services.whatsapp.base_provider import BaseWhatsAppProvider
from constituent_bot.domain.services.whatsapp.provider_factory import (
    get_whatsapp_provider,
    reset_providers,
)

__all__ = [
    "BaseWhatsAppProvider",
    "get_whatsapp_provider",
    "reset_providers",
]
