"""
Reverse Geocoder - coordinates to a human-readable address

Backed by the Google Geocoding API. The address is a nice-to-have on a
submission, so ``reverse_geocode`` never raises: a missing API key, timeout,
HTTP error, empty result or open circuit all come back as None.
"""
from typing import Optional

import httpx

from constituent_bot.core.circuit_breaker import get_geocoder_circuit_breaker
from constituent_bot.core.config import settings
from constituent_bot.core.exceptions import GeocoderError, ServiceTimeoutError
from constituent_bot.core.logging import get_logger, log_async_operation

logger = get_logger(__name__)


def build_map_link(latitude: float, longitude: float) -> str:
    return f"https://www.google.com/maps?q={latitude},{longitude}"


class ReverseGeocoder:
    """Google reverse geocoding with a timeout and a circuit breaker"""

    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.api_key = settings.GOOGLE_MAPS_API_KEY if api_key is None else api_key
        self.url = url or settings.GEOCODER_URL
        self.timeout_seconds = timeout_seconds or settings.GEOCODER_TIMEOUT_SECONDS
        self.circuit_breaker = get_geocoder_circuit_breaker()

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[str]:
        if not self.api_key:
            logger.debug("Reverse geocoding skipped, no API key configured")
            return None

        try:
            return await self.circuit_breaker.execute(self._lookup, latitude, longitude)
        except Exception as e:
            logger.warning(
                "Reverse geocoding failed, continuing without address",
                extra_data={
                    "latitude": latitude,
                    "longitude": longitude,
                    "error_type": type(e).__name__,
                    "error": str(e),
                }
            )
            return None

    @log_async_operation("reverse_geocode")
    async def _lookup(self, latitude: float, longitude: float) -> Optional[str]:
        params = {"latlng": f"{latitude},{longitude}", "key": self.api_key}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(self.url, params=params)
        except httpx.TimeoutException as e:
            raise ServiceTimeoutError("geocoder", self.timeout_seconds) from e
        except httpx.RequestError as e:
            raise GeocoderError(f"request failed: {e}") from e

        if response.status_code != 200:
            raise GeocoderError(
                f"HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        payload = response.json()
        status = payload.get("status")
        if status == "ZERO_RESULTS":
            return None
        if status != "OK":
            raise GeocoderError(
                f"API status {status}",
                details={"status": status, "error_message": payload.get("error_message")},
            )

        results = payload.get("results") or []
        if not results:
            return None
        return results[0].get("formatted_address") or None
