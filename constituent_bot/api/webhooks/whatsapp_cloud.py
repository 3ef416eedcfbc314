"""
WhatsApp Cloud API Webhook Handler

Receives messages from Meta, turns each one into an inbound message for the
dialogue engine and sends the reply in the background. Supports webhook
verification, payload signature checks, interactive list/button replies and
shared locations.
"""
from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from constituent_bot.api.dependencies.engine import get_dialogue_engine
from constituent_bot.core.config import settings
from constituent_bot.core.exceptions import AppException
from constituent_bot.core.logging import get_logger
from constituent_bot.core.validation import PhoneNumberValidator
from constituent_bot.domain.services.whatsapp import get_whatsapp_provider
from constituent_bot.state_machine.handlers import DialogueEngine
from constituent_bot.state_machine.messages import (
    InboundMessage,
    LocationInput,
    OutboundMessage,
    TextInput,
)

logger = get_logger(__name__)

router = APIRouter()


# ──────────────────────────────────────────────
#  Meta verification & signature
# ──────────────────────────────────────────────


@router.get(
    "",
    summary="Cloud API Webhook Verification",
    description="Meta subscription handshake, echoes hub.challenge.",
    tags=["Webhooks"],
)
async def cloud_api_verify(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
) -> int:
    """Return hub.challenge when the verify token matches."""
    if (
        hub_mode == "subscribe"
        and hub_challenge
        and hub_verify_token
        and settings.WHATSAPP_CLOUD_API_VERIFY_TOKEN
        and hmac.compare_digest(hub_verify_token, settings.WHATSAPP_CLOUD_API_VERIFY_TOKEN)
    ):
        logger.info("Cloud API webhook verified successfully")
        try:
            return int(hub_challenge)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid hub.challenge")
    logger.warning(
        "Cloud API webhook verification failed",
        extra_data={"hub_mode": hub_mode},
    )
    raise HTTPException(status_code=403, detail="Verification failed")


def _verify_signature(body: bytes, signature_header: str) -> bool:
    """Check Meta's HMAC-SHA256 signature of the raw payload."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(
        settings.WHATSAPP_CLOUD_API_APP_SECRET.encode(),
        body,
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(signature_header[7:], expected)


# ──────────────────────────────────────────────
#  Cloud API message extraction
# ──────────────────────────────────────────────


def extract_inbound_message(msg: dict) -> InboundMessage:
    """Map one Cloud API message object onto an inbound message.

    List and button replies carry the row/button id as their text. Anything
    the bot does not understand (stickers, media, reactions) becomes empty
    text, which every step treats as an invalid answer.
    """
    msg_type = msg.get("type", "")

    if msg_type == "text":
        return TextInput(msg.get("text", {}).get("body", ""))

    if msg_type == "interactive":
        interactive = msg.get("interactive", {})
        interactive_type = interactive.get("type", "")
        if interactive_type == "button_reply":
            return TextInput(interactive.get("button_reply", {}).get("id", ""))
        if interactive_type == "list_reply":
            return TextInput(interactive.get("list_reply", {}).get("id", ""))

    # Template quick-reply button
    if msg_type == "button":
        return TextInput(msg.get("button", {}).get("text", ""))

    if msg_type == "location":
        location = msg.get("location", {})
        latitude = location.get("latitude")
        longitude = location.get("longitude")
        if latitude is not None and longitude is not None:
            return LocationInput(
                latitude=float(latitude),
                longitude=float(longitude),
                name=location.get("name"),
                address=location.get("address"),
            )

    return TextInput("")


# ──────────────────────────────────────────────
#  Main webhook handler
# ──────────────────────────────────────────────


@router.post(
    "",
    summary="Cloud API Webhook",
    description="Incoming messages from the WhatsApp Cloud API (Meta).",
    responses={
        200: {"description": "Payload accepted"},
        403: {"description": "Invalid signature"},
    },
    tags=["Webhooks"],
)
async def cloud_api_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    engine: DialogueEngine = Depends(get_dialogue_engine),
) -> dict:
    """
    Receive and process WhatsApp Cloud API messages.

    1. Verify Meta's signature (X-Hub-Signature-256)
    2. Extract messages from entry[] → changes[] → value.messages[]
    3. Run each through the dialogue engine
    4. Queue the reply for sending after the response is returned

    Status callbacks (delivered/read) have no messages and are acknowledged.
    """
    body = await request.body()
    signature = request.headers.get("X-Hub-Signature-256", "")

    if not settings.WHATSAPP_CLOUD_API_APP_SECRET:
        if not settings.DEBUG:
            logger.error("Cloud API webhook: WHATSAPP_CLOUD_API_APP_SECRET is not set, rejecting")
            raise HTTPException(status_code=403, detail="Signature cannot be verified")
        logger.warning("Cloud API webhook: signature check skipped in DEBUG")
    elif not _verify_signature(body, signature):
        logger.warning("Cloud API webhook: invalid signature")
        raise HTTPException(status_code=403, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    processed = 0
    for entry in payload.get("entry", []):
        for change in entry.get("changes", []):
            value = change.get("value", {})
            if value.get("messaging_product") != "whatsapp":
                continue

            for msg in value.get("messages", []):
                if await _process_cloud_message(engine, msg, background_tasks):
                    processed += 1

    return {"status": "ok", "processed": processed}


async def _process_cloud_message(
    engine: DialogueEngine,
    msg: dict[str, Any],
    background_tasks: BackgroundTasks,
) -> bool:
    """Handle a single Cloud API message; returns False when it was ignored."""
    from_phone = msg.get("from", "")
    if not from_phone:
        return False

    phone_masked = PhoneNumberValidator.mask(from_phone)
    inbound = extract_inbound_message(msg)

    logger.debug(
        "Cloud API message received",
        extra_data={
            "from": phone_masked,
            "message_id": msg.get("id", ""),
            "type": msg.get("type", ""),
        },
    )

    reply = await engine.handle_message(from_phone, inbound)
    background_tasks.add_task(send_reply, from_phone, reply)
    return True


async def send_reply(to: str, message: OutboundMessage) -> bool:
    """Send a reply after the webhook has answered Meta; failures are logged only."""
    try:
        await get_whatsapp_provider().send_message(to, message)
    except AppException as exc:
        logger.error(
            "Failed to send WhatsApp reply",
            extra_data={
                "phone": PhoneNumberValidator.mask(to),
                "error_code": exc.error_code.value,
                "error": exc.message,
            },
        )
        return False
    return True
