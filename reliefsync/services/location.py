# SPDX-License-Identifier: Apache-2.0

"""
Location resolver: free text or device coordinates to canonical coordinates.
"""

import logging
from typing import Optional

from opentelemetry import trace

from ..domain.location import map_geocoding_response, missing_location, unreachable
from ..domain.results import ResolutionResult
from ..models.entities import Coordinates
from .geocoding import GeocodingClient, GeocodingTransportError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class LocationResolver:
    """
    Resolves locations through the geocoding collaborator.

    Stateless and reentrant; never retries on its own.
    """

    def __init__(self, geocoder: GeocodingClient):
        self.geocoder = geocoder

    async def resolve(
        self,
        location: Optional[str] = None,
        coordinates: Optional[Coordinates] = None
    ) -> ResolutionResult:
        """
        Resolve a location.

        Explicit coordinates are trusted and returned unchanged without a
        network call. Otherwise the text is geocoded and the first candidate
        wins.
        """
        if coordinates is not None:
            return ResolutionResult.resolved(coordinates)

        if location is None or not location.strip():
            return missing_location()

        with tracer.start_as_current_span("location.resolve") as span:
            try:
                response = await self.geocoder.geocode(location.strip())
            except GeocodingTransportError as e:
                span.set_attribute("location.result", "unreachable")
                return unreachable(str(e))

            result = map_geocoding_response(response)
            span.set_attribute(
                "location.result",
                "resolved" if result.success else result.failure.kind.value
            )
            if not result.success:
                logger.info(f"Could not resolve location \"{location}\": {result.failure.kind.value}")
            return result
