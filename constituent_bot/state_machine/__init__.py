"""
State Machine Module for the voter conversation
"""
from constituent_bot.state_machine.states import DialogueState
from constituent_bot.state_machine.session_store import SessionStore
from constituent_bot.state_machine.handlers import DialogueEngine

__all__ = ["DialogueState", "SessionStore", "DialogueEngine"]
