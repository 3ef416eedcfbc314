"""
Dialogue Engine - processes one inbound message against the user's session

Each state has a handler returning ``(reply, next_step)``. ``next_step`` is the
step to store, the same step to re-prompt, or None once a flow has written its
record and the session should be removed.
"""
from typing import Any, Awaitable, Callable, Optional

from constituent_bot.core.exceptions import InvalidStateTransitionError
from constituent_bot.core.logging import get_logger
from constituent_bot.core.validation import (
    EpicNumberValidator,
    PhoneNumberValidator,
    TextSanitizer,
)
from constituent_bot.db.models import AuditAction
from constituent_bot.domain.services.geocoder import ReverseGeocoder, build_map_link
from constituent_bot.domain.services.record_store import (
    RecordStore,
    StoreError,
    VoterIdentity,
)
from constituent_bot.domain.services.reference_codes import SubmissionKind
from constituent_bot.state_machine import replies
from constituent_bot.state_machine.messages import (
    InboundMessage,
    LocationInput,
    OutboundMessage,
    TextInput,
)
from constituent_bot.state_machine.session_store import SessionStore
from constituent_bot.state_machine.states import (
    AwaitingId,
    DialogueState,
    IssueCategory,
    IssueDescription,
    IssueLocation,
    ParticipationType,
    Step,
    SuggestionLocation,
    SuggestionText,
    UpdatesLocation,
    VerifiedMenu,
    VolunteerLocation,
    is_valid_transition,
)

logger = get_logger(__name__)

RESET_KEYWORDS = frozenset({"hi", "hello", "start", "menu", "reset", "vanakkam"})

HandlerResult = tuple[OutboundMessage, Optional[Step]]
Handler = Callable[[Any, InboundMessage, str], Awaitable[HandlerResult]]


def _text_of(message: InboundMessage) -> Optional[str]:
    """Sanitized text, or None for a location"""
    if isinstance(message, TextInput):
        return TextSanitizer.sanitize(message.text)
    return None


def _is_skip(message: InboundMessage) -> bool:
    text = _text_of(message)
    return text is not None and text.upper() == replies.SKIP_KEYWORD


class DialogueEngine:
    """Drives the voter conversation for every WhatsApp number"""

    def __init__(
        self,
        record_store: RecordStore,
        geocoder: ReverseGeocoder,
        sessions: SessionStore,
    ):
        self.record_store = record_store
        self.geocoder = geocoder
        self.sessions = sessions

    async def handle_message(self, user_id: str, message: InboundMessage) -> OutboundMessage:
        """Apply ``message`` to the user's session and return the reply.

        Messages from the same user are processed one at a time. Any failure
        inside a step becomes the system-error reply and leaves the session as
        it was, so the next message retries the same step.
        """
        await self._audit_incoming(user_id, message)

        async with self.sessions.lock(user_id):
            text = _text_of(message)
            if text is not None and text.lower() in RESET_KEYWORDS:
                self.sessions.create(user_id)
                return replies.welcome()

            session = self.sessions.get(user_id)
            if session is None:
                self.sessions.create(user_id)
                return replies.welcome()

            current_state = session.state
            handler = self._get_handler(current_state)

            try:
                reply, next_step = await handler(session.step, message, user_id)
                if next_step is not None and not is_valid_transition(current_state, next_step.state):
                    raise InvalidStateTransitionError(current_state.value, next_step.state.value)
            except Exception as e:
                logger.error(
                    "Dialogue step failed",
                    extra_data={
                        "phone": PhoneNumberValidator.mask(user_id),
                        "state": current_state.value,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    },
                    exc_info=True,
                )
                return replies.system_error()

            if next_step is None:
                self.sessions.delete(user_id)
            else:
                self.sessions.save(user_id, next_step)

            if next_step is None or next_step.state != current_state:
                logger.info(
                    "Dialogue transition",
                    extra_data={
                        "phone": PhoneNumberValidator.mask(user_id),
                        "from_state": current_state.value,
                        "to_state": next_step.state.value if next_step else None,
                    },
                )
            return reply

    def _get_handler(self, state: DialogueState) -> Handler:
        handlers = {
            DialogueState.AWAITING_ID: self._handle_awaiting_id,
            DialogueState.VERIFIED_MENU: self._handle_menu,

            # Report local issue
            DialogueState.ISSUE_CATEGORY: self._handle_issue_category,
            DialogueState.ISSUE_DESCRIPTION: self._handle_issue_description,
            DialogueState.ISSUE_LOCATION: self._handle_issue_location,

            # Ideas & improvements
            DialogueState.SUGGESTION_TEXT: self._handle_suggestion_text,
            DialogueState.SUGGESTION_LOCATION: self._handle_suggestion_location,

            # Participate
            DialogueState.PARTICIPATION_TYPE: self._handle_participation_type,
            DialogueState.VOLUNTEER_LOCATION: self._handle_volunteer_location,

            # Stay informed
            DialogueState.UPDATES_LOCATION: self._handle_updates_location,
        }
        return handlers.get(state, self._handle_unknown)

    # ==================== Verification ====================

    async def _handle_awaiting_id(self, step: AwaitingId, message: InboundMessage, user_id: str) -> HandlerResult:
        text = _text_of(message)
        if text is None or not EpicNumberValidator.validate(text):
            return replies.invalid_epic_format(), step

        voter_id = EpicNumberValidator.normalize(text)
        result = await self.record_store.find_voter(voter_id)
        if isinstance(result, StoreError):
            return replies.system_error(), step

        identity = result.value
        await self.record_store.append_audit_log(
            AuditAction.EPIC_VERIFICATION,
            user_id,
            {"voter_id": voter_id, "found": identity is not None},
        )

        if identity is None:
            return replies.voter_not_found(), step

        return replies.verified_menu(identity), VerifiedMenu(identity=identity)

    # ==================== Main Menu ====================

    async def _handle_menu(self, step: VerifiedMenu, message: InboundMessage, user_id: str) -> HandlerResult:
        choice = _text_of(message)
        identity = step.identity

        if choice == "1":
            return replies.issue_categories(identity), IssueCategory(identity=identity)

        if choice == "2":
            return replies.ask_suggestion(), SuggestionText(identity=identity)

        if choice == "3":
            return replies.participation_options(identity), ParticipationType(identity=identity)

        if choice == "4":
            result = await self.record_store.find_subscriber_by_phone(user_id)
            if isinstance(result, StoreError):
                return replies.system_error(), step
            if result.value is not None:
                logger.info(
                    "Voter already subscribed",
                    extra_data={"phone": PhoneNumberValidator.mask(user_id), "reference_code": result.value},
                )
                return replies.already_subscribed(), None
            return replies.ask_location("updates"), UpdatesLocation(identity=identity)

        return replies.menu_help(), step

    # ==================== Report local issue ====================

    async def _handle_issue_category(self, step: IssueCategory, message: InboundMessage, user_id: str) -> HandlerResult:
        category = replies.ISSUE_CATEGORIES.get(_text_of(message) or "")
        if category is None:
            return replies.invalid_category(), step

        return replies.describe_issue(), IssueDescription(identity=step.identity, category=category)

    async def _handle_issue_description(self, step: IssueDescription, message: InboundMessage, user_id: str) -> HandlerResult:
        text = _text_of(message)
        if text is None:
            return replies.describe_issue(), step

        if text.upper() == replies.SKIP_KEYWORD:
            description = replies.SKIPPED_SENTINEL
        elif len(text) < replies.MIN_DESCRIPTION_LENGTH:
            return replies.description_too_short(), step
        elif len(text) > replies.MAX_TEXT_LENGTH:
            return replies.text_too_long(len(text)), step
        else:
            description = text

        next_step = IssueLocation(identity=step.identity, category=step.category, description=description)
        return replies.ask_location("issue"), next_step

    async def _handle_issue_location(self, step: IssueLocation, message: InboundMessage, user_id: str) -> HandlerResult:
        return await self._complete_submission(
            SubmissionKind.GRIEVANCE,
            step,
            message,
            user_id,
            extra_fields={"category": step.category, "message": step.description},
            confirmation=replies.grievance_recorded,
        )

    # ==================== Ideas & improvements ====================

    async def _handle_suggestion_text(self, step: SuggestionText, message: InboundMessage, user_id: str) -> HandlerResult:
        text = _text_of(message)
        if text is None:
            return replies.ask_suggestion(), step

        if len(text) < replies.MIN_SUGGESTION_LENGTH:
            return replies.suggestion_too_short(), step
        if len(text) > replies.MAX_TEXT_LENGTH:
            return replies.text_too_long(len(text)), step

        return replies.ask_location("suggestion"), SuggestionLocation(identity=step.identity, suggestion=text)

    async def _handle_suggestion_location(self, step: SuggestionLocation, message: InboundMessage, user_id: str) -> HandlerResult:
        return await self._complete_submission(
            SubmissionKind.SUGGESTION,
            step,
            message,
            user_id,
            extra_fields={"message": step.suggestion},
            confirmation=replies.suggestion_recorded,
        )

    # ==================== Participate ====================

    async def _handle_participation_type(self, step: ParticipationType, message: InboundMessage, user_id: str) -> HandlerResult:
        text = _text_of(message)
        if not text:
            return replies.invalid_participation(), step

        # Anything other than a menu number is kept as the voter's own description
        participation = replies.PARTICIPATION_OPTIONS.get(text, text[:replies.MAX_TEXT_LENGTH])
        return replies.ask_location("volunteer"), VolunteerLocation(
            identity=step.identity, participation_type=participation
        )

    async def _handle_volunteer_location(self, step: VolunteerLocation, message: InboundMessage, user_id: str) -> HandlerResult:
        return await self._complete_submission(
            SubmissionKind.VOLUNTEER,
            step,
            message,
            user_id,
            extra_fields={
                "participation_type": step.participation_type,
                "parliament_name": step.identity.parliament_name,
            },
            confirmation=replies.volunteer_recorded,
        )

    # ==================== Stay informed ====================

    async def _handle_updates_location(self, step: UpdatesLocation, message: InboundMessage, user_id: str) -> HandlerResult:
        return await self._complete_submission(
            SubmissionKind.SUBSCRIBER,
            step,
            message,
            user_id,
            extra_fields={},
            confirmation=replies.subscription_recorded,
        )

    # ==================== Fallback ====================

    async def _handle_unknown(self, step: Any, message: InboundMessage, user_id: str) -> HandlerResult:
        logger.warning(
            "Session in unknown state, restarting",
            extra_data={
                "phone": PhoneNumberValidator.mask(user_id),
                "state": str(getattr(step, "state", None)),
            },
        )
        return replies.welcome(), AwaitingId()

    # ==================== Submission ====================

    async def _complete_submission(
        self,
        kind: SubmissionKind,
        step: Step,
        message: InboundMessage,
        user_id: str,
        *,
        extra_fields: dict[str, Any],
        confirmation: Callable[[VoterIdentity, str, bool], OutboundMessage],
    ) -> HandlerResult:
        """Terminal step shared by the four location states"""
        if isinstance(message, LocationInput):
            location: Optional[LocationInput] = message
        elif _is_skip(message):
            location = None
        else:
            return replies.location_required(), step

        identity: VoterIdentity = step.identity
        fields = {
            **identity.submission_fields(),
            "phone_number": user_id,
            **extra_fields,
            **await self._location_fields(location),
        }

        result = await self.record_store.insert_submission(kind, fields)
        if isinstance(result, StoreError):
            return replies.system_error(), step

        reference_code = result.value
        await self.record_store.append_audit_log(
            kind.created_action,
            user_id,
            {
                "voter_id": identity.voter_id,
                "reference_code": reference_code,
                "has_location": location is not None,
                **{k: v for k, v in extra_fields.items() if k in ("category", "participation_type")},
            },
        )

        return confirmation(identity, reference_code, location is not None), None

    async def _location_fields(self, location: Optional[LocationInput]) -> dict[str, Any]:
        if location is None:
            return {}

        return {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "map_link": build_map_link(location.latitude, location.longitude),
            "actual_address": await self._resolve_address(location),
        }

    async def _resolve_address(self, location: LocationInput) -> Optional[str]:
        try:
            return await self.geocoder.reverse_geocode(location.latitude, location.longitude)
        except Exception as e:
            logger.warning(
                "Geocoder raised, storing submission without address",
                extra_data={"error_type": type(e).__name__, "error": str(e)},
            )
            return None

    async def _audit_incoming(self, user_id: str, message: InboundMessage) -> None:
        if isinstance(message, LocationInput):
            details = {"type": "location", "latitude": message.latitude, "longitude": message.longitude}
        else:
            details = {"type": "text", "text": message.text[:replies.MAX_TEXT_LENGTH]}
        await self.record_store.append_audit_log(AuditAction.INCOMING_MESSAGE, user_id, details)
