# SPDX-License-Identifier: Apache-2.0

"""
Geocoding client for the Google Geocoding HTTP API.

Turns an address into the provider's status code and ranked candidates.
Transport problems are raised as GeocodingTransportError; provider-level
outcomes (no results, quota, denied) are returned as statuses for the
domain layer to interpret.
"""

import os
import logging
from typing import Any, Dict, List, Optional

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain.location import GeocodingResponse
from ..models.entities import Coordinates

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_GEOCODING_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingTransportError(Exception):
    """Raised when no usable response came back from the provider."""
    pass


class GeocodingClient:
    """Async client for the Google Geocoding API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key if api_key is not None else os.getenv("GOOGLE_MAPS_API_KEY", "")
        self.base_url = base_url or os.getenv("GEOCODING_URL", DEFAULT_GEOCODING_URL)
        self.client = client or httpx.AsyncClient(timeout=timeout)

        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY is not set; geocoding requests will be denied")

    async def close(self):
        await self.client.aclose()
        logger.debug(f"Closed {self.__class__.__name__}")

    async def geocode(self, address: str) -> GeocodingResponse:
        """
        Geocode an address.

        Args:
            address: Free-text address

        Returns:
            GeocodingResponse with status and candidates in relevance order

        Raises:
            GeocodingTransportError: Network failure, HTTP error or unreadable body
        """
        with tracer.start_as_current_span("geocoding.geocode") as span:
            span.set_attribute("geocoding.address_length", len(address))

            try:
                response = await self.client.get(
                    self.base_url,
                    params={"address": address, "key": self.api_key}
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPError as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(f"Error during geocoding API call: {e}")
                raise GeocodingTransportError(str(e)) from e
            except ValueError as e:
                span.set_status(Status(StatusCode.ERROR, "invalid JSON"))
                logger.error(f"Geocoding API returned an unreadable body: {e}")
                raise GeocodingTransportError("Invalid JSON in geocoding response") from e

            if not isinstance(data, dict):
                raise GeocodingTransportError("Unexpected geocoding response shape")

            status = str(data.get("status", "UNKNOWN_ERROR"))
            candidates = self._parse_candidates(data.get("results") or [])
            span.set_attributes({
                "geocoding.status": status,
                "geocoding.candidates": len(candidates)
            })

            if status != "OK":
                logger.warning(f"Geocoding failed for \"{address}\": {status}")

            return GeocodingResponse(
                status=status,
                candidates=candidates,
                error_message=data.get("error_message")
            )

    def _parse_candidates(self, results: List[Dict[str, Any]]) -> List[Coordinates]:
        """Extract coordinates from result entries, skipping malformed ones."""
        candidates = []
        for result in results:
            try:
                location = result["geometry"]["location"]
                candidates.append(Coordinates(latitude=location["lat"], longitude=location["lng"]))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed geocoding result: {e}")
        return candidates
