# SPDX-License-Identifier: Apache-2.0

"""
Location resolution domain logic.

Pure mapping from geocoding provider responses to resolution results. The
network call itself lives in the geocoding service.
"""

from typing import List, Optional
from dataclasses import dataclass, field

from ..models.entities import Coordinates
from .results import FailureKind, RejectionDetail, ResolutionResult

# Provider status codes
STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"
STATUS_OVER_QUERY_LIMIT = "OVER_QUERY_LIMIT"
STATUS_REQUEST_DENIED = "REQUEST_DENIED"
STATUS_INVALID_REQUEST = "INVALID_REQUEST"
STATUS_UNKNOWN_ERROR = "UNKNOWN_ERROR"

UNRESOLVED_PREFIX = "Could not determine coordinates for the provided location."

MISSING_LOCATION_MESSAGE = "Please enter a location or use your current location."
NO_MATCH_MESSAGE = (
    f"{UNRESOLVED_PREFIX} Try being more general (e.g., \"Secunderabad\" instead of a "
    "specific building name) or check for typos."
)
QUOTA_MESSAGE = (
    f"{UNRESOLVED_PREFIX} API query limit exceeded. Please try again later or check "
    "your Google Maps API key settings."
)
DENIED_MESSAGE = (
    f"{UNRESOLVED_PREFIX} Geocoding API access denied. Check your API key and "
    "project settings."
)
UNREACHABLE_MESSAGE = (
    f"{UNRESOLVED_PREFIX} The geocoding service could not be reached. Check your "
    "connection and try again."
)


@dataclass
class GeocodingResponse:
    """Provider answer: a status code and candidates ordered by relevance."""
    status: str
    candidates: List[Coordinates] = field(default_factory=list)
    error_message: Optional[str] = None


def missing_location() -> ResolutionResult:
    return ResolutionResult.failed(FailureKind.MISSING_LOCATION, MISSING_LOCATION_MESSAGE)


def unreachable(reason: Optional[str] = None) -> ResolutionResult:
    return ResolutionResult.failed(FailureKind.UNREACHABLE, UNREACHABLE_MESSAGE, reason)


def map_geocoding_response(response: GeocodingResponse) -> ResolutionResult:
    """
    Map a provider response to a resolution result.

    Args:
        response: Geocoding provider response

    Returns:
        ResolutionResult with the first candidate or a structured failure
    """
    status = response.status

    if status == STATUS_OK:
        if response.candidates:
            return ResolutionResult.resolved(response.candidates[0])
        return ResolutionResult.failed(FailureKind.NO_MATCH, NO_MATCH_MESSAGE)

    if status in (STATUS_ZERO_RESULTS, STATUS_INVALID_REQUEST):
        return ResolutionResult.failed(FailureKind.NO_MATCH, NO_MATCH_MESSAGE)

    if status == STATUS_OVER_QUERY_LIMIT:
        return ResolutionResult.failed(
            FailureKind.PROVIDER_REJECTED, QUOTA_MESSAGE, RejectionDetail.QUOTA.value
        )

    if status == STATUS_REQUEST_DENIED:
        return ResolutionResult.failed(
            FailureKind.PROVIDER_REJECTED, DENIED_MESSAGE, RejectionDetail.DENIED.value
        )

    # UNKNOWN_ERROR and anything the provider adds later
    return unreachable(f"Provider status {status}")
