"""
Message types at the edges of the dialogue engine

Inbound: what a channel adapter hands the engine (text or a shared location).
Outbound: channel-neutral reply descriptors; ``renderer`` turns them into
WhatsApp payloads or the plain contract dict.
"""
from dataclasses import dataclass, field
from typing import Optional, Union


# ── Inbound ──

@dataclass(frozen=True)
class TextInput:
    """Typed text, or the id of a tapped button / list row"""
    text: str


@dataclass(frozen=True)
class LocationInput:
    """A location pin shared from the chat"""
    latitude: float
    longitude: float
    name: Optional[str] = None
    address: Optional[str] = None


InboundMessage = Union[TextInput, LocationInput]


# ── Outbound ──

@dataclass(frozen=True)
class TextMessage:
    body: str


@dataclass(frozen=True)
class ImageMessage:
    url: str
    caption: str


@dataclass(frozen=True)
class ListRow:
    id: str
    title: str
    description: Optional[str] = None


@dataclass(frozen=True)
class ListSection:
    title: str
    rows: tuple[ListRow, ...]


@dataclass(frozen=True)
class ListMessage:
    """Interactive single-select list"""
    header: Optional[str]
    body: str
    footer: Optional[str]
    button: str
    sections: tuple[ListSection, ...]


@dataclass(frozen=True)
class ReplyButton:
    id: str
    title: str


@dataclass(frozen=True)
class ButtonsMessage:
    """Body text with up to three quick-reply buttons"""
    body: str
    buttons: tuple[ReplyButton, ...] = field(default_factory=tuple)


OutboundMessage = Union[TextMessage, ImageMessage, ListMessage, ButtonsMessage]
