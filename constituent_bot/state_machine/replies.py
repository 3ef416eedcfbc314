"""
Bot copy - builds the outbound message for every prompt and confirmation

Text uses WhatsApp formatting (*bold*, _italic_). Campaign-specific names come
from settings so a deployment only needs environment changes.
"""
from typing import Optional

from constituent_bot.core.config import settings
from constituent_bot.domain.services.record_store import VoterIdentity
from constituent_bot.state_machine.messages import (
    ButtonsMessage,
    ImageMessage,
    ListMessage,
    ListRow,
    ListSection,
    ReplyButton,
    TextMessage,
)

SKIP_KEYWORD = "SKIP"
SKIPPED_SENTINEL = "SKIPPED"

MAX_TEXT_LENGTH = 250
MIN_DESCRIPTION_LENGTH = 3
MIN_SUGGESTION_LENGTH = 5

ISSUE_CATEGORIES = {
    "1": "Water & Drainage",
    "2": "Roads & Infra",
    "3": "Electricity",
    "4": "Public Transport",
    "5": "Education",
    "6": "Healthcare",
    "7": "Women Safety",
    "8": "Employment",
    "9": "Others",
}

PARTICIPATION_OPTIONS = {
    "1": "Volunteer @ Booth",
    "2": "Organise Meetings",
    "3": "Spread Information",
    "4": "Future Coordination",
}

_NUMBER_EMOJI = ["1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣"]

_START_AGAIN = "_Send *Hi* anytime to start again._"

_SKIP_BUTTON = (ReplyButton(id=SKIP_KEYWORD, title=SKIP_KEYWORD),)


def _or_na(value: Optional[str]) -> str:
    return value or "N/A"


# ── Entry ──

def welcome() -> ImageMessage:
    caption = (
        "Vanakkam 🙏\n\n"
        f"This is the official WhatsApp of *{settings.CANDIDATE_NAME}* – *{settings.CONSTITUENCY_NAME}*.\n\n"
        "We are building a structured, booth-level understanding of issues in this constituency "
        "so that future priorities are based on real voter input.\n\n"
        "To continue, please enter your *EPIC number* (Voter ID number).\n\n"
        "Example: *ABC1234567*"
    )
    return ImageMessage(url=settings.welcome_image_url, caption=caption)


def invalid_epic_format() -> TextMessage:
    return TextMessage(
        "Please enter a valid EPIC number in the correct format "
        "(6 to 15 letters and digits).\nExample: *ABC1234567*"
    )


def voter_not_found() -> TextMessage:
    return TextMessage(
        "We could not locate this EPIC number in our constituency records.\n\n"
        "Please verify and enter again.\n"
        "If you believe this is an error, you may contact your booth-level representative."
    )


def system_error() -> TextMessage:
    return TextMessage("⚠️ *System Error*\n\nPlease try again in a moment.")


# ── Menu ──

def verified_menu(identity: VoterIdentity) -> ListMessage:
    body = (
        f"Thank you, *{identity.name}*.\n\n"
        "We have identified you as a voter from:\n\n"
        f"📍 *Booth:* {_or_na(identity.part_number)}\n"
        f"🏛️ *Assembly:* {_or_na(identity.assembly_name)}\n"
        f"🏛️ *Parliament:* {_or_na(identity.parliament_name)}\n\n"
        "We are documenting concerns booth-wise so that real priorities are shaped by people like you.\n\n"
        "How would you like to engage today?"
    )
    return ListMessage(
        header="Voter Engagement",
        body=body,
        footer=settings.support_footer,
        button="Select Option",
        sections=(
            ListSection(
                title="Main Menu",
                rows=(
                    ListRow("1", "🔴 Report local issue", "Report civic or local problems"),
                    ListRow("2", "💡 Ideas & Improvements", "Give your ideas"),
                    ListRow("3", "🤝 Participate", "Collaborate with us"),
                    ListRow("4", "📢 Stay informed", "Get campaign updates"),
                ),
            ),
        ),
    )


def menu_help() -> TextMessage:
    return TextMessage(
        "❓ Please reply with a valid option:\n\n"
        "1️⃣ Report a local issue\n"
        "2️⃣ Share an idea\n"
        "3️⃣ Participate with us\n"
        "4️⃣ Stay informed\n\n"
        "_Reply with 1, 2, 3, or 4_"
    )


# ── Issue flow ──

def issue_categories(identity: VoterIdentity) -> ListMessage:
    return ListMessage(
        header="📝 Report an Issue",
        body=f"Thank you, *{identity.name}*.\n\nPlease select the area where you are facing a concern:",
        footer=settings.support_footer,
        button="Select Category",
        sections=(
            ListSection(
                title="Common Categories",
                rows=tuple(
                    ListRow(key, f"{key}. {title}", f"Report issues related to {title}")
                    for key, title in ISSUE_CATEGORIES.items()
                ),
            ),
        ),
    )


def invalid_category() -> TextMessage:
    options = "\n".join(
        f"{_NUMBER_EMOJI[int(key) - 1]} {title}" for key, title in ISSUE_CATEGORIES.items()
    )
    return TextMessage(f"❌ Invalid selection. Please reply with a number (1-9):\n\n{options}")


def describe_issue() -> ButtonsMessage:
    return ButtonsMessage(
        body=(
            f"Please describe the situation briefly (up to {MAX_TEXT_LENGTH} characters).\n\n"
            "Specific details help us understand recurring patterns in your booth.\n\n"
            "You may also type *SKIP*."
        ),
        buttons=_SKIP_BUTTON,
    )


def description_too_short() -> TextMessage:
    return TextMessage(
        f"⚠️ Please provide more detail (at least {MIN_DESCRIPTION_LENGTH} characters) or type *SKIP*."
    )


def text_too_long(length: int) -> TextMessage:
    return TextMessage(
        f"⚠️ Your message is too long ({length} characters). "
        f"Please keep it under {MAX_TEXT_LENGTH} characters."
    )


# ── Suggestion flow ──

def ask_suggestion() -> TextMessage:
    return TextMessage(
        "We believe strong constituencies are built not just by solving issues, "
        "but by listening to constructive ideas.\n\n"
        f"Please share your suggestion in up to {MAX_TEXT_LENGTH} characters."
    )


def suggestion_too_short() -> TextMessage:
    return TextMessage(
        f"⚠️ Please provide more detail (at least {MIN_SUGGESTION_LENGTH} characters)."
    )


# ── Volunteer flow ──

def participation_options(identity: VoterIdentity) -> ListMessage:
    return ListMessage(
        header="🤝 Participate",
        body=f"That’s encouraging to hear, *{identity.name}*.\n\nHow would you like to participate?",
        footer=settings.support_footer,
        button="Select Mode",
        sections=(
            ListSection(
                title="Options",
                rows=tuple(ListRow(key, title) for key, title in PARTICIPATION_OPTIONS.items()),
            ),
        ),
    )


def invalid_participation() -> TextMessage:
    return TextMessage("Please choose an option from the list (1-4) or tell us how you would like to help.")


# ── Location ──

_LOCATION_REASONS = {
    "issue": "To help us identify the exact spot and resolve it faster, please share the location of the issue",
    "suggestion": "To help us see where your idea would make a difference, please share the location",
    "volunteer": "To connect you with the nearest booth team, please share your location",
    "updates": "To send you updates for your neighbourhood, please share your location",
}


def ask_location(flow: str) -> ButtonsMessage:
    return ButtonsMessage(
        body=(
            f"{_LOCATION_REASONS[flow]} (Pin or Live Location).\n\n"
            "You may also type *SKIP* or use the button below."
        ),
        buttons=_SKIP_BUTTON,
    )


def location_required() -> TextMessage:
    return TextMessage("Please share your location (Pin or Live Location) or type *SKIP*.")


def _location_line(has_location: bool) -> str:
    if has_location:
        return "*Our team will visit the spot soon.*"
    return "Our ward organiser will connect with you shortly."


def _reference_line(reference_code: str) -> str:
    return f"Your reference number is *{reference_code}*."


# ── Confirmations ──

def grievance_recorded(identity: VoterIdentity, reference_code: str, has_location: bool) -> TextMessage:
    received = " Your location has been received." if has_location else ""
    return TextMessage(
        f"Thank you, *{identity.name}*.{received}\n\n"
        f"Your concern from Booth {_or_na(identity.part_number)} has been recorded. "
        f"{_reference_line(reference_code)}\n\n"
        "We are analysing inputs booth-wise to identify recurring problems and priority areas.\n"
        f"{_location_line(has_location)}\n\n"
        f"Your participation helps shape structured change in {_or_na(identity.assembly_name)}.\n\n"
        f"{_START_AGAIN}"
    )


def suggestion_recorded(identity: VoterIdentity, reference_code: str, has_location: bool) -> TextMessage:
    received = " Your location has been received." if has_location else ""
    return TextMessage(
        f"Thank you, *{identity.name}*.{received}\n\n"
        f"Your suggestion from Booth {_or_na(identity.part_number)} has been noted. "
        f"{_reference_line(reference_code)}\n\n"
        "All ideas are reviewed collectively to guide long-term planning for "
        f"{_or_na(identity.assembly_name)}.\n"
        f"{_location_line(has_location)}\n\n"
        f"{_START_AGAIN}"
    )


def volunteer_recorded(identity: VoterIdentity, reference_code: str, has_location: bool) -> TextMessage:
    received = " Your location has been received." if has_location else ""
    return TextMessage(
        f"Thank you, *{identity.name}*.{received}\n\n"
        f"Your registration is confirmed. {_reference_line(reference_code)}\n\n"
        f"Our organiser from Booth {_or_na(identity.part_number)} will contact you with next steps.\n"
        f"{_location_line(has_location)}\n\n"
        f"{_START_AGAIN}"
    )


def subscription_recorded(identity: VoterIdentity, reference_code: str, has_location: bool) -> TextMessage:
    received = " Your location has been received." if has_location else ""
    return TextMessage(
        f"Thank you, *{identity.name}*.{received}\n\n"
        f"You will receive updates relevant to Booth {_or_na(identity.part_number)} "
        f"and {_or_na(identity.assembly_name)}. {_reference_line(reference_code)}\n\n"
        "We aim to keep communication transparent and focused on constituency priorities.\n"
        f"{_location_line(has_location)}\n\n"
        f"{_START_AGAIN}"
    )


def already_subscribed() -> TextMessage:
    return TextMessage(
        "✅ You are already subscribed to campaign updates!\n\n"
        "Our booth or ward organiser will get in touch with you shortly.\n\n"
        f"{_START_AGAIN}"
    )
