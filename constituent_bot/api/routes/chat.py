"""
Chat simulator - drive the bot over HTTP without WhatsApp

Shares the dialogue engine and session store with the webhook, so a
conversation can be started here and continued there.
"""
from fastapi import APIRouter, Depends

from constituent_bot.api.dependencies.engine import get_dialogue_engine
from constituent_bot.api.routes.schemas import ChatRequest, ChatResponse
from constituent_bot.core.validation import PhoneNumberValidator
from constituent_bot.state_machine.handlers import DialogueEngine
from constituent_bot.state_machine.messages import LocationInput, TextInput
from constituent_bot.state_machine.renderer import to_contract

router = APIRouter()


@router.post(
    "",
    response_model=ChatResponse,
    summary="Simulate an inbound message",
    description=(
        "Runs one message through the dialogue engine and returns the reply. "
        "When both latitude and longitude are given the message is a shared location."
    ),
    tags=["Chat"],
)
async def simulate_message(
    data: ChatRequest,
    engine: DialogueEngine = Depends(get_dialogue_engine),
) -> ChatResponse:
    user_id = PhoneNumberValidator.normalize(data.phone_number) or data.phone_number.strip()

    if data.latitude is not None and data.longitude is not None:
        inbound = LocationInput(latitude=data.latitude, longitude=data.longitude)
    else:
        inbound = TextInput(data.message)

    reply = await engine.handle_message(user_id, inbound)

    async with engine.sessions.lock(user_id):
        session = engine.sessions.peek(user_id)
    return ChatResponse(
        reply=to_contract(reply),
        state=session.state.value if session else None,
    )
