# SPDX-License-Identifier: Apache-2.0

"""
List views over entity snapshots.

Pure filtering, search and map projections used by consumers of the sync
channel to render dashboards, lists and the incident map.
"""

from typing import Iterable, List, Optional
from dataclasses import dataclass

from ..models.entities import Broadcast, Report, ResourceRequest, VolunteerTask

ALL = "all"


@dataclass
class ReportFilters:
    """Filters for report lists."""
    search_term: Optional[str] = None
    report_type: Optional[str] = None


@dataclass
class RequestFilters:
    """Filters for resource request lists."""
    search_term: Optional[str] = None
    status: Optional[str] = None
    request_type: Optional[str] = None


@dataclass
class TaskFilters:
    """Filters for volunteer task lists."""
    search_term: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class MapMarker:
    """A point to draw on the incident map."""
    kind: str
    entity_id: Optional[str]
    latitude: float
    longitude: float
    title: str


def _matches(value: Optional[str], wanted: Optional[str]) -> bool:
    wanted = getattr(wanted, "value", wanted)
    return not wanted or wanted == ALL or value == wanted


def _contains(term: str, *fields: Optional[str]) -> bool:
    return any(term in (value or "").lower() for value in fields)


def _search_term(term: Optional[str]) -> str:
    return (term or "").strip().lower()


def filter_reports(reports: Iterable[Report], filters: ReportFilters) -> List[Report]:
    """Filter reports by type and by a search over details and location."""
    term = _search_term(filters.search_term)
    return [
        report for report in reports
        if _matches(report.report_type, filters.report_type)
        and (not term or _contains(term, report.details, report.location))
    ]


def filter_resource_requests(requests: Iterable[ResourceRequest], filters: RequestFilters) -> List[ResourceRequest]:
    """Filter requests by status and type and by a search over description and location."""
    term = _search_term(filters.search_term)
    return [
        request for request in requests
        if _matches(request.status, filters.status)
        and _matches(request.request_type, filters.request_type)
        and (not term or _contains(term, request.description, request.location))
    ]


def filter_volunteer_tasks(tasks: Iterable[VolunteerTask], filters: TaskFilters) -> List[VolunteerTask]:
    """Filter tasks by status and by a search over text fields and skills."""
    term = _search_term(filters.search_term)
    return [
        task for task in tasks
        if _matches(task.status, filters.status)
        and (not term or _contains(term, task.title, task.description, task.location, *task.required_skills))
    ]


def latest_broadcasts(broadcasts: Iterable[Broadcast], limit: int = 3) -> List[Broadcast]:
    """Most recent broadcasts first, as shown on the dashboard."""
    ordered = sorted(broadcasts, key=lambda broadcast: broadcast.timestamp, reverse=True)
    return ordered[:limit]


def build_map_markers(reports: Iterable[Report], requests: Iterable[ResourceRequest]) -> List[MapMarker]:
    """
    Project reports and requests with coordinates into map markers.

    Entities without coordinates are skipped.
    """
    markers = []

    for report in reports:
        if report.latitude is None or report.longitude is None:
            continue
        markers.append(MapMarker(
            kind="report",
            entity_id=report.id,
            latitude=report.latitude,
            longitude=report.longitude,
            title=f"Report: {report.report_type} - {report.details}"
        ))

    for request in requests:
        markers.append(MapMarker(
            kind="request",
            entity_id=request.id,
            latitude=request.latitude,
            longitude=request.longitude,
            title=f"Request: {request.request_type} - {request.description}"
        ))

    return markers
