"""
Access to the process-wide conversation objects built at startup.
"""
from fastapi import Request

from constituent_bot.domain.services.record_store import RecordStore
from constituent_bot.state_machine.handlers import DialogueEngine


def get_dialogue_engine(request: Request) -> DialogueEngine:
    return request.app.state.dialogue_engine


def get_record_store(request: Request) -> RecordStore:
    return request.app.state.record_store
