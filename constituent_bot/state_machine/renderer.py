"""
Reply Renderer - outbound descriptors to channel payloads

Pure functions, no I/O:
- ``to_contract``: the channel-neutral dict the chat simulator returns
- ``to_whatsapp_payload``: the JSON body for the Cloud API /messages endpoint

WhatsApp rejects interactive messages whose fields exceed its limits, so the
WhatsApp payload truncates instead of letting a long voter name or category
drop the whole reply.
"""
from typing import Any

from constituent_bot.state_machine.messages import (
    ButtonsMessage,
    ImageMessage,
    ListMessage,
    OutboundMessage,
    TextMessage,
)

# Cloud API field limits
TEXT_BODY_MAX = 4096
CAPTION_MAX = 1024
INTERACTIVE_BODY_MAX = 1024
HEADER_MAX = 60
FOOTER_MAX = 60
LIST_BUTTON_MAX = 20
SECTION_TITLE_MAX = 24
ROW_ID_MAX = 200
ROW_TITLE_MAX = 24
ROW_DESCRIPTION_MAX = 72
LIST_ROWS_MAX = 10
BUTTON_TITLE_MAX = 20
BUTTONS_MAX = 3


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def to_contract(message: OutboundMessage) -> dict[str, Any]:
    if isinstance(message, TextMessage):
        return {"kind": "text", "body": message.body}

    if isinstance(message, ImageMessage):
        return {"kind": "image", "url": message.url, "caption": message.caption}

    if isinstance(message, ListMessage):
        return {
            "kind": "list",
            "header": message.header,
            "body": message.body,
            "footer": message.footer,
            "button": message.button,
            "sections": [
                {
                    "title": section.title,
                    "rows": [
                        _contract_row(row.id, row.title, row.description)
                        for row in section.rows
                    ],
                }
                for section in message.sections
            ],
        }

    if isinstance(message, ButtonsMessage):
        return {
            "kind": "buttons",
            "body": message.body,
            "buttons": [{"id": b.id, "title": b.title} for b in message.buttons],
        }

    raise TypeError(f"Unsupported outbound message: {type(message).__name__}")


def _contract_row(row_id: str, title: str, description: str | None) -> dict[str, str]:
    row = {"id": row_id, "title": title}
    if description:
        row["description"] = description
    return row


def to_whatsapp_payload(message: OutboundMessage, to: str) -> dict[str, Any]:
    """Cloud API message body for recipient ``to`` (digits-only wa_id)"""
    payload: dict[str, Any] = {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
    }

    if isinstance(message, TextMessage):
        payload["type"] = "text"
        payload["text"] = {"preview_url": False, "body": truncate(message.body, TEXT_BODY_MAX)}
        return payload

    if isinstance(message, ImageMessage):
        payload["type"] = "image"
        payload["image"] = {
            "link": message.url,
            "caption": truncate(message.caption, CAPTION_MAX),
        }
        return payload

    if isinstance(message, ListMessage):
        payload["type"] = "interactive"
        payload["interactive"] = _render_list(message)
        return payload

    if isinstance(message, ButtonsMessage):
        payload["type"] = "interactive"
        payload["interactive"] = _render_buttons(message)
        return payload

    raise TypeError(f"Unsupported outbound message: {type(message).__name__}")


def _render_list(message: ListMessage) -> dict[str, Any]:
    sections = []
    remaining = LIST_ROWS_MAX
    for section in message.sections:
        if remaining <= 0:
            break
        rows = []
        for row in section.rows[:remaining]:
            rendered = {
                "id": truncate(row.id, ROW_ID_MAX),
                "title": truncate(row.title, ROW_TITLE_MAX),
            }
            if row.description:
                rendered["description"] = truncate(row.description, ROW_DESCRIPTION_MAX)
            rows.append(rendered)
        remaining -= len(rows)
        sections.append({"title": truncate(section.title, SECTION_TITLE_MAX), "rows": rows})

    interactive: dict[str, Any] = {
        "type": "list",
        "body": {"text": truncate(message.body, INTERACTIVE_BODY_MAX)},
        "action": {
            "button": truncate(message.button, LIST_BUTTON_MAX),
            "sections": sections,
        },
    }
    if message.header:
        interactive["header"] = {"type": "text", "text": truncate(message.header, HEADER_MAX)}
    if message.footer:
        interactive["footer"] = {"text": truncate(message.footer, FOOTER_MAX)}
    return interactive


def _render_buttons(message: ButtonsMessage) -> dict[str, Any]:
    return {
        "type": "button",
        "body": {"text": truncate(message.body, INTERACTIVE_BODY_MAX)},
        "action": {
            "buttons": [
                {
                    "type": "reply",
                    "reply": {"id": button.id, "title": truncate(button.title, BUTTON_TITLE_MAX)},
                }
                for button in message.buttons[:BUTTONS_MAX]
            ],
        },
    }
