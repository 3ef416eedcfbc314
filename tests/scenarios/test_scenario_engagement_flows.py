"""
Scenario 2 - ideas, participation and updates

Covers:
- Suggestion with a location
- Volunteer with a free-text participation mode
- Subscription, then the already-subscribed short cut on a second attempt
- Conversation started on the chat simulator and finished over WhatsApp
"""
import pytest

from constituent_bot.domain.services.reference_codes import SubmissionKind
from constituent_bot.state_machine.states import DialogueState

from tests.conftest import TEST_EPIC, TEST_PHONE
from tests.scenarios.conftest import (
    assert_submission_count,
    build_wa_button_reply,
    build_wa_location,
    build_wa_text,
    fetch_submission,
    last_reply,
    send_chat,
    send_wa,
)


def _code(body: str) -> str:
    return body.split("reference number is *")[1].split("*")[0]


@pytest.mark.scenario
class TestEngagementFlows:

    async def test_suggestion_with_location(self, test_client, db_session, voter_factory):
        await voter_factory()
        await send_chat(test_client, TEST_PHONE, "Hi")
        await send_chat(test_client, TEST_PHONE, TEST_EPIC)
        await send_chat(test_client, TEST_PHONE, "2")

        short = await send_chat(test_client, TEST_PHONE, "bus")
        assert short["state"] == DialogueState.SUGGESTION_TEXT.value

        await send_chat(test_client, TEST_PHONE, "Add a bus shelter at Luz corner")
        done = await send_chat(test_client, TEST_PHONE, latitude=13.0339, longitude=80.2619)

        code = _code(done["reply"]["body"])
        assert code.startswith("SUG")
        suggestion = await fetch_submission(db_session, SubmissionKind.SUGGESTION, code)
        assert suggestion.message == "Add a bus shelter at Luz corner"
        assert suggestion.status == "Pending"
        assert suggestion.latitude == 13.0339

    async def test_volunteer_with_own_words(self, test_client, db_session, voter_factory):
        await voter_factory()
        await send_chat(test_client, TEST_PHONE, "Hi")
        await send_chat(test_client, TEST_PHONE, TEST_EPIC)
        await send_chat(test_client, TEST_PHONE, "3")
        await send_chat(test_client, TEST_PHONE, "I can drive voters to the booth")
        done = await send_chat(test_client, TEST_PHONE, "SKIP")

        volunteer = await fetch_submission(db_session, SubmissionKind.VOLUNTEER, _code(done["reply"]["body"]))
        assert volunteer.participation_type == "I can drive voters to the booth"
        assert volunteer.parliament_name == "Chennai South"
        assert volunteer.status == "Pending"

    async def test_subscribe_once(self, test_client, db_session, voter_factory, mock_whatsapp_provider):
        await voter_factory()
        await send_wa(test_client, build_wa_text(TEST_PHONE, "Hi"))
        await send_wa(test_client, build_wa_text(TEST_PHONE, TEST_EPIC))
        await send_wa(test_client, build_wa_text(TEST_PHONE, "4"))
        await send_wa(test_client, build_wa_button_reply(TEST_PHONE, "SKIP"))
        assert "*SUB" in last_reply(mock_whatsapp_provider).body

        await send_wa(test_client, build_wa_text(TEST_PHONE, "Hi"))
        await send_wa(test_client, build_wa_text(TEST_PHONE, TEST_EPIC))
        await send_wa(test_client, build_wa_text(TEST_PHONE, "4"))

        assert "already subscribed" in last_reply(mock_whatsapp_provider).body
        await assert_submission_count(db_session, SubmissionKind.SUBSCRIBER, 1)

    async def test_chat_then_whatsapp(self, test_client, db_session, voter_factory, mock_whatsapp_provider):
        await voter_factory()
        await send_chat(test_client, "98765 43210", "Hi")
        await send_chat(test_client, "98765 43210", TEST_EPIC)
        await send_chat(test_client, "98765 43210", "4")

        await send_wa(test_client, build_wa_location(TEST_PHONE, 13.04, 80.27))

        code = _code(last_reply(mock_whatsapp_provider).body)
        subscriber = await fetch_submission(db_session, SubmissionKind.SUBSCRIBER, code)
        assert subscriber.phone_number == TEST_PHONE
