"""
Base interface for a WhatsApp provider.

Business logic depends only on this interface, not on a concrete transport.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from constituent_bot.state_machine.messages import OutboundMessage


class BaseWhatsAppProvider(ABC):
    """
    Uniform interface for delivering bot replies over WhatsApp.

    Every implementation is responsible for:
    - rendering the outbound descriptor into its wire format
    - retry and circuit breaking
    - normalizing phone numbers to what the transport expects
    """

    @abstractmethod
    async def send_message(self, to: str, message: OutboundMessage) -> None:
        """
        Deliver one reply descriptor.

        Args:
            to: Recipient phone number (any format; normalized by the provider).
            message: Text, image, list or buttons descriptor.

        Raises:
            WhatsAppError: when delivery fails after retries.
            CircuitBreakerOpenError: when the provider is being skipped.
        """

    async def send_text(self, to: str, text: str) -> None:
        """Convenience wrapper for a plain text message"""
        from constituent_bot.state_machine.messages import TextMessage

        await self.send_message(to, TextMessage(text))

    @abstractmethod
    def normalize_phone(self, phone: str) -> str:
        """
        Normalize a phone number to the provider's recipient format.

        Args:
            phone: Phone number in any format.

        Returns:
            Normalized recipient id.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider name for logs and diagnostics."""
