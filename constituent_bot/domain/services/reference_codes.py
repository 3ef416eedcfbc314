"""
Submission kinds and their public reference codes

A reference code is the kind's 3-letter prefix followed by five random digits
(10000-99999), e.g. GRV48213. The prefix alone is enough to know which table a
code belongs to.
"""
import enum
import secrets
from typing import Type

from constituent_bot.db.models import (
    AuditAction,
    Grievance,
    GrievanceStatus,
    Subscriber,
    SubscriberStatus,
    Suggestion,
    SuggestionStatus,
    Volunteer,
    VolunteerStatus,
)

REFERENCE_SUFFIX_MIN = 10000
REFERENCE_SUFFIX_MAX = 99999


class SubmissionKind(str, enum.Enum):
    GRIEVANCE = "grievances"
    SUGGESTION = "suggestions"
    VOLUNTEER = "volunteers"
    SUBSCRIBER = "subscribers"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]

    @property
    def model(self) -> Type:
        return _MODELS[self]

    @property
    def status_enum(self) -> Type[enum.Enum]:
        return _STATUSES[self]

    @property
    def initial_status(self) -> str:
        return next(iter(self.status_enum)).value

    @property
    def allowed_statuses(self) -> list[str]:
        return [s.value for s in self.status_enum]

    @property
    def created_action(self) -> AuditAction:
        return _CREATED_ACTIONS[self]

    @classmethod
    def from_reference_code(cls, code: str) -> "SubmissionKind | None":
        """Kind owning ``code``, or None when the prefix is unknown"""
        prefix = (code or "").strip().upper()[:3]
        for kind, kind_prefix in _PREFIXES.items():
            if kind_prefix == prefix:
                return kind
        return None


_PREFIXES = {
    SubmissionKind.GRIEVANCE: "GRV",
    SubmissionKind.SUGGESTION: "SUG",
    SubmissionKind.VOLUNTEER: "VOL",
    SubmissionKind.SUBSCRIBER: "SUB",
}

_MODELS = {
    SubmissionKind.GRIEVANCE: Grievance,
    SubmissionKind.SUGGESTION: Suggestion,
    SubmissionKind.VOLUNTEER: Volunteer,
    SubmissionKind.SUBSCRIBER: Subscriber,
}

# First member of each enum is the status a new record starts in
_STATUSES = {
    SubmissionKind.GRIEVANCE: GrievanceStatus,
    SubmissionKind.SUGGESTION: SuggestionStatus,
    SubmissionKind.VOLUNTEER: VolunteerStatus,
    SubmissionKind.SUBSCRIBER: SubscriberStatus,
}

_CREATED_ACTIONS = {
    SubmissionKind.GRIEVANCE: AuditAction.GRIEVANCE_CREATED,
    SubmissionKind.SUGGESTION: AuditAction.SUGGESTION_CREATED,
    SubmissionKind.VOLUNTEER: AuditAction.VOLUNTEER_REGISTERED,
    SubmissionKind.SUBSCRIBER: AuditAction.SUBSCRIBER_REGISTERED,
}


def generate_reference_code(kind: SubmissionKind) -> str:
    suffix = REFERENCE_SUFFIX_MIN + secrets.randbelow(REFERENCE_SUFFIX_MAX - REFERENCE_SUFFIX_MIN + 1)
    return f"{kind.prefix}{suffix}"
