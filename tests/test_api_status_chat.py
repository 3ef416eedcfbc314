"""
Tests for the public status lookup, the chat simulator and the health probes
"""
import pytest
from httpx import AsyncClient
from unittest.mock import AsyncMock, patch

from constituent_bot.core.circuit_breaker import get_geocoder_circuit_breaker, get_whatsapp_circuit_breaker
from constituent_bot.core.exceptions import RecordStoreError
from constituent_bot.domain.services.record_store import StoreError
from constituent_bot.domain.services.reference_codes import SubmissionKind
from constituent_bot.state_machine.states import DialogueState

from tests.conftest import TEST_EPIC, TEST_PHONE


async def chat(client: AsyncClient, message: str = "", **extra) -> dict:
    response = await client.post("/api/chat", json={"phone_number": TEST_PHONE, "message": message, **extra})
    assert response.status_code == 200
    return response.json()


class TestStatusLookup:

    @pytest.mark.unit
    async def test_found(self, test_client: AsyncClient, submission_factory):
        code = await submission_factory(SubmissionKind.GRIEVANCE, category="Women Safety", message="Dark lane")

        response = await test_client.get(f"/api/status/{code}")

        assert response.status_code == 200
        data = response.json()
        assert data["found"] is True
        assert data["kind"] == "grievances"
        assert data["record"]["reference_code"] == code
        assert data["record"]["category"] == "Women Safety"

    @pytest.mark.unit
    async def test_lowercase_and_padded_code(self, test_client: AsyncClient, submission_factory):
        code = await submission_factory(SubmissionKind.SUBSCRIBER)

        response = await test_client.get(f"/api/status/%20{code.lower()}")

        assert response.status_code == 200
        assert response.json()["kind"] == "subscribers"

    @pytest.mark.unit
    async def test_not_found(self, test_client: AsyncClient):
        response = await test_client.get("/api/status/vol12345")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "ERR_2001"
        assert error["details"]["identifier"] == "VOL12345"

    @pytest.mark.unit
    async def test_unknown_prefix(self, test_client: AsyncClient):
        response = await test_client.get("/api/status/ABC12345")
        assert response.status_code == 404

    @pytest.mark.unit
    async def test_database_down_is_503(self, test_client: AsyncClient, dialogue_engine):
        failure = StoreError(RecordStoreError("find_by_reference", "connection refused"))
        dialogue_engine.record_store.find_by_reference = AsyncMock(return_value=failure)

        response = await test_client.get("/api/status/GRV12345")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "ERR_4001"
        dialogue_engine.record_store.find_by_reference.assert_awaited_once_with("GRV12345")

    @pytest.mark.unit
    async def test_malformed_code_skips_the_store(self, test_client: AsyncClient, dialogue_engine):
        dialogue_engine.record_store.find_by_reference = AsyncMock()

        response = await test_client.get("/api/status/not-a-code")

        assert response.status_code == 404
        dialogue_engine.record_store.find_by_reference.assert_not_awaited()


class TestChatSimulator:

    @pytest.mark.unit
    async def test_first_message_is_welcome(self, test_client: AsyncClient):
        data = await chat(test_client, "Hello")

        assert data["reply"]["kind"] == "image"
        assert "EPIC" in data["reply"]["caption"]
        assert data["state"] == DialogueState.AWAITING_ID.value

    @pytest.mark.unit
    async def test_verification_returns_menu(self, test_client: AsyncClient, voter_factory):
        await voter_factory()
        await chat(test_client, "Hi")

        data = await chat(test_client, TEST_EPIC.lower())

        assert data["reply"]["kind"] == "list"
        assert "Lakshmi R" in data["reply"]["body"]
        assert data["state"] == DialogueState.VERIFIED_MENU.value

    @pytest.mark.unit
    async def test_location_completes_subscription(self, test_client: AsyncClient, voter_factory,
                                                   fake_geocoder):
        await voter_factory()
        await chat(test_client, "Hi")
        await chat(test_client, TEST_EPIC)
        data = await chat(test_client, "4")
        assert data["state"] == DialogueState.UPDATES_LOCATION.value

        data = await chat(test_client, latitude=13.0418, longitude=80.2341)

        assert data["state"] is None
        assert "SUB" in data["reply"]["body"]
        assert fake_geocoder.calls == [(13.0418, 80.2341)]

    @pytest.mark.unit
    async def test_local_number_shares_session_with_wa_id(self, test_client: AsyncClient, dialogue_engine):
        response = await test_client.post("/api/chat", json={"phone_number": "98765 43210", "message": "Hi"})

        assert response.status_code == 200
        assert dialogue_engine.sessions.get(TEST_PHONE) is not None

    @pytest.mark.unit
    async def test_latitude_out_of_range(self, test_client: AsyncClient):
        response = await test_client.post(
            "/api/chat", json={"phone_number": TEST_PHONE, "latitude": 91, "longitude": 80}
        )
        assert response.status_code == 422


class TestHealth:

    @pytest.mark.unit
    async def test_liveness(self, test_client: AsyncClient):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.unit
    async def test_ready(self, test_client: AsyncClient):
        response = await test_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "db": "ok", "whatsapp": "ok", "geocoder": "ok"}

    @pytest.mark.unit
    async def test_open_whatsapp_circuit_degrades(self, test_client: AsyncClient):
        breaker = get_whatsapp_circuit_breaker()
        for _ in range(breaker.config.failure_threshold):
            await breaker.record_failure()

        response = await test_client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["whatsapp"] == "error: circuit_open"

    @pytest.mark.unit
    async def test_open_geocoder_circuit_is_reported_only(self, test_client: AsyncClient):
        breaker = get_geocoder_circuit_breaker()
        for _ in range(breaker.config.failure_threshold):
            await breaker.record_failure()

        response = await test_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["geocoder"] == "error: circuit_open"

    @pytest.mark.unit
    async def test_database_failure_degrades(self, test_client: AsyncClient):
        with patch(
            "constituent_bot.domain.services.health_service._check_db",
            return_value="error: db_unavailable",
        ):
            response = await test_client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["db"] == "error: db_unavailable"
