"""
Fixtures and helpers for end-to-end scenario tests.

Provides:
- Cloud API payload builders (text, list/button replies, location), signed
- Concise send helpers for the webhook and the chat simulator
- DB assertions on submissions and the audit log
"""
import hashlib
import hmac
import json
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from constituent_bot.core.config import settings
from constituent_bot.db.models import AuditAction, AuditLog
from constituent_bot.domain.services.reference_codes import SubmissionKind


# ============================================================================
# Payload builders - WhatsApp Cloud API
# ============================================================================

_wa_msg_counter = 0


def _next_message_id() -> str:
    """Unique wamid per message"""
    global _wa_msg_counter
    _wa_msg_counter += 1
    return f"wamid.SCENARIO{_wa_msg_counter}"


def _envelope(phone: str, message: dict) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA_ID",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"phone_number_id": "PNID"},
                    "messages": [{
                        "from": phone,
                        "id": _next_message_id(),
                        "timestamp": "1700000000",
                        **message,
                    }],
                },
            }],
        }],
    }


def build_wa_text(phone: str, text: str) -> dict:
    return _envelope(phone, {"type": "text", "text": {"body": text}})


def build_wa_list_reply(phone: str, row_id: str, title: str = "") -> dict:
    return _envelope(phone, {
        "type": "interactive",
        "interactive": {"type": "list_reply", "list_reply": {"id": row_id, "title": title or row_id}},
    })


def build_wa_button_reply(phone: str, button_id: str) -> dict:
    return _envelope(phone, {
        "type": "interactive",
        "interactive": {"type": "button_reply", "button_reply": {"id": button_id, "title": button_id}},
    })


def build_wa_location(
    phone: str,
    latitude: float,
    longitude: float,
    *,
    name: Optional[str] = None,
) -> dict:
    location = {"latitude": latitude, "longitude": longitude}
    if name:
        location["name"] = name
    return _envelope(phone, {"type": "location", "location": location})


# ============================================================================
# Send helpers
# ============================================================================

async def send_wa(client, payload: dict) -> dict:
    """Post a signed payload to the Cloud API webhook, assert 200 and return the JSON"""
    body = json.dumps(payload).encode()
    signature = hmac.new(
        settings.WHATSAPP_CLOUD_API_APP_SECRET.encode(), body, hashlib.sha256
    ).hexdigest()
    resp = await client.post(
        "/api/webhook/whatsapp",
        content=body,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={signature}"},
    )
    assert resp.status_code == 200, f"WhatsApp webhook returned {resp.status_code}: {resp.text}"
    return resp.json()


async def send_chat(client, phone: str, message: str = "", **location) -> dict:
    """One message through the chat simulator"""
    resp = await client.post("/api/chat", json={"phone_number": phone, "message": message, **location})
    assert resp.status_code == 200, f"Chat simulator returned {resp.status_code}: {resp.text}"
    return resp.json()


def last_reply(provider):
    """Outbound message of the most recent send_message call"""
    return provider.send_message.call_args[0][1]


# ============================================================================
# DB assertions
# ============================================================================

async def fetch_submission(db: AsyncSession, kind: SubmissionKind, reference_code: str):
    result = await db.execute(
        select(kind.model).where(kind.model.reference_code == reference_code)
    )
    record = result.scalar_one_or_none()
    assert record is not None, f"No {kind.value} record {reference_code}"
    return record


async def assert_submission_count(db: AsyncSession, kind: SubmissionKind, expected: int) -> None:
    count = (await db.execute(select(func.count(kind.model.id)))).scalar()
    assert count == expected, f"{kind.value}: expected {expected}, found {count}"


async def audit_actions(db: AsyncSession, phone: str) -> list[AuditAction]:
    """Audit actions for ``phone`` in insertion order"""
    result = await db.execute(
        select(AuditLog.action).where(AuditLog.phone_number == phone).order_by(AuditLog.id)
    )
    return list(result.scalars().all())
