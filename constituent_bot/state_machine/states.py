"""
Dialogue states and the per-state step values

A session holds exactly one step. Each step class belongs to one state and
carries only the draft fields collected before reaching it, so a handler can
never read a field the voter has not supplied yet.
"""
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from constituent_bot.domain.services.record_store import VoterIdentity


class DialogueState(str, Enum):
    """States of the voter conversation"""

    AWAITING_ID = "AWAITING_ID"
    VERIFIED_MENU = "VERIFIED_MENU"

    # Report local issue
    ISSUE_CATEGORY = "ISSUE.CATEGORY"
    ISSUE_DESCRIPTION = "ISSUE.DESCRIPTION"
    ISSUE_LOCATION = "ISSUE.LOCATION"

    # Ideas & improvements
    SUGGESTION_TEXT = "SUGGESTION.TEXT"
    SUGGESTION_LOCATION = "SUGGESTION.LOCATION"

    # Participate
    PARTICIPATION_TYPE = "VOLUNTEER.PARTICIPATION_TYPE"
    VOLUNTEER_LOCATION = "VOLUNTEER.LOCATION"

    # Stay informed
    UPDATES_LOCATION = "UPDATES.LOCATION"


# Location steps end the flow: the record is written and the session removed,
# so they have no outgoing edge.
TRANSITIONS = {
    DialogueState.AWAITING_ID: [DialogueState.VERIFIED_MENU],
    DialogueState.VERIFIED_MENU: [
        DialogueState.ISSUE_CATEGORY,
        DialogueState.SUGGESTION_TEXT,
        DialogueState.PARTICIPATION_TYPE,
        DialogueState.UPDATES_LOCATION,
    ],
    DialogueState.ISSUE_CATEGORY: [DialogueState.ISSUE_DESCRIPTION],
    DialogueState.ISSUE_DESCRIPTION: [DialogueState.ISSUE_LOCATION],
    DialogueState.ISSUE_LOCATION: [],
    DialogueState.SUGGESTION_TEXT: [DialogueState.SUGGESTION_LOCATION],
    DialogueState.SUGGESTION_LOCATION: [],
    DialogueState.PARTICIPATION_TYPE: [DialogueState.VOLUNTEER_LOCATION],
    DialogueState.VOLUNTEER_LOCATION: [],
    DialogueState.UPDATES_LOCATION: [],
}


def is_valid_transition(current: DialogueState, target: DialogueState) -> bool:
    """Staying put (a re-prompt) and restarting are always allowed"""
    if current == target or target == DialogueState.AWAITING_ID:
        return True
    return target in TRANSITIONS.get(current, [])


# ── Steps ──

@dataclass(frozen=True)
class AwaitingId:
    state: ClassVar[DialogueState] = DialogueState.AWAITING_ID


@dataclass(frozen=True)
class VerifiedMenu:
    state: ClassVar[DialogueState] = DialogueState.VERIFIED_MENU
    identity: VoterIdentity


@dataclass(frozen=True)
class IssueCategory:
    state: ClassVar[DialogueState] = DialogueState.ISSUE_CATEGORY
    identity: VoterIdentity


@dataclass(frozen=True)
class IssueDescription:
    state: ClassVar[DialogueState] = DialogueState.ISSUE_DESCRIPTION
    identity: VoterIdentity
    category: str


@dataclass(frozen=True)
class IssueLocation:
    state: ClassVar[DialogueState] = DialogueState.ISSUE_LOCATION
    identity: VoterIdentity
    category: str
    description: str


@dataclass(frozen=True)
class SuggestionText:
    state: ClassVar[DialogueState] = DialogueState.SUGGESTION_TEXT
    identity: VoterIdentity


@dataclass(frozen=True)
class SuggestionLocation:
    state: ClassVar[DialogueState] = DialogueState.SUGGESTION_LOCATION
    identity: VoterIdentity
    suggestion: str


@dataclass(frozen=True)
class ParticipationType:
    state: ClassVar[DialogueState] = DialogueState.PARTICIPATION_TYPE
    identity: VoterIdentity


@dataclass(frozen=True)
class VolunteerLocation:
    state: ClassVar[DialogueState] = DialogueState.VOLUNTEER_LOCATION
    identity: VoterIdentity
    participation_type: str


@dataclass(frozen=True)
class UpdatesLocation:
    state: ClassVar[DialogueState] = DialogueState.UPDATES_LOCATION
    identity: VoterIdentity


Step = Union[
    AwaitingId,
    VerifiedMenu,
    IssueCategory,
    IssueDescription,
    IssueLocation,
    SuggestionText,
    SuggestionLocation,
    ParticipationType,
    VolunteerLocation,
    UpdatesLocation,
]


def step_identity(step: Step) -> Optional[VoterIdentity]:
    return getattr(step, "identity", None)


def step_draft(step: Step) -> dict[str, Any]:
    """Draft fields carried by ``step`` (everything except the identity)"""
    return {
        f.name: getattr(step, f.name)
        for f in fields(step)
        if f.name != "identity"
    }
