"""
Health checks - dependency checks for the readiness probe.

Two levels:
- liveness: the process is up (no dependency checks)
- readiness: database reachable and no outbound circuit held open
"""
from typing import Any

from sqlalchemy import text

from constituent_bot.core.circuit_breaker import (
    get_geocoder_circuit_breaker,
    get_whatsapp_circuit_breaker,
)
from constituent_bot.core.logging import get_logger
from constituent_bot.db.database import AsyncSessionLocal

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"

# Filtered error strings, no infrastructure details
_ERROR_DB = "error: db_unavailable"
_ERROR_CIRCUIT_OPEN = "error: circuit_open"


async def _check_db() -> str:
    """Run a trivial query against the database."""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return _CHECK_OK
    except Exception as e:
        logger.warning("Database health check failed", extra_data={"error": str(e)})
        return _ERROR_DB


def _check_circuit(breaker) -> str:
    return _ERROR_CIRCUIT_OPEN if breaker.is_open else _CHECK_OK


async def check_readiness() -> dict[str, Any]:
    """
    Readiness across every dependency.

    Returns:
    - status: "healthy" when everything is ok, otherwise "degraded"
    - db / whatsapp / geocoder: "ok" or "error: ..."

    The geocoder is optional, so its circuit is reported but does not
    degrade the overall status.
    """
    whatsapp, geocoder = get_whatsapp_circuit_breaker(), get_geocoder_circuit_breaker()
    checks = {
        "db": await _check_db(),
        "whatsapp": _check_circuit(whatsapp),
        "geocoder": _check_circuit(geocoder),
    }

    all_ok = checks["db"] == _CHECK_OK and checks["whatsapp"] == _CHECK_OK
    overall_status = _STATUS_HEALTHY if all_ok else _STATUS_DEGRADED

    if not all_ok:
        logger.warning(
            "Readiness check degraded",
            extra_data={**checks, "circuits": [whatsapp.snapshot(), geocoder.snapshot()]},
        )

    return {"status": overall_status, **checks}
