# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for list filters and map projections.
"""

from datetime import datetime, timedelta, timezone

from reliefsync.domain.filters import (
    ReportFilters,
    RequestFilters,
    TaskFilters,
    build_map_markers,
    filter_reports,
    filter_resource_requests,
    filter_volunteer_tasks,
    latest_broadcasts,
)
from reliefsync.models.entities import Broadcast, Report, ResourceRequest, VolunteerTask
from reliefsync.models.enums import RequestStatus

START = datetime(2024, 8, 1, 9, 0, tzinfo=timezone.utc)


class TestListFilters:
    """Test search and category filters."""

    def setup_method(self):
        self.reports = [
            Report(id="r1", user_id="v1", report_type="damage", details="Bridge collapsed",
                   location="Secunderabad", latitude=17.4, longitude=78.5, timestamp=START),
            Report(id="r2", user_id="v2", report_type="injury", details="Broken arm",
                   location="Hyderabad", timestamp=START),
        ]
        self.requests = [
            ResourceRequest(id="q1", user_id="v1", request_type="water", description="Drinking water",
                            location="Camp A", latitude=17.0, longitude=78.0, timestamp=START),
            ResourceRequest(id="q2", user_id="v2", request_type="food", description="Rice bags",
                            location="Camp B", latitude=17.1, longitude=78.1, status="fulfilled",
                            fulfilled_by="n1", fulfilled_at=START, timestamp=START),
        ]
        self.tasks = [
            VolunteerTask(id="t1", created_by="n1", user_role="ngo", title="Medical camp",
                          description="Staff tents", location="Camp A", latitude=17.0, longitude=78.0,
                          required_skills="First Aid", created_at=START),
            VolunteerTask(id="t2", created_by="n1", user_role="ngo", title="Deliveries",
                          description="Move supplies", location="Camp B", latitude=17.0, longitude=78.0,
                          required_skills="Driving", status="assigned", assigned_to="v1",
                          assigned_at=START, created_at=START),
        ]

    def test_reports_by_type(self):
        assert [r.id for r in filter_reports(self.reports, ReportFilters(report_type="injury"))] == ["r2"]

    def test_reports_all_type(self):
        assert len(filter_reports(self.reports, ReportFilters(report_type="all"))) == 2

    def test_report_search_is_case_insensitive(self):
        found = filter_reports(self.reports, ReportFilters(search_term="  SECUNDERABAD "))
        assert [r.id for r in found] == ["r1"]

    def test_requests_by_status_and_type(self):
        pending = filter_resource_requests(self.requests, RequestFilters(status=RequestStatus.PENDING))
        assert [r.id for r in pending] == ["q1"]

        food = filter_resource_requests(self.requests, RequestFilters(request_type="food", status="all"))
        assert [r.id for r in food] == ["q2"]

    def test_request_search(self):
        found = filter_resource_requests(self.requests, RequestFilters(search_term="rice"))
        assert [r.id for r in found] == ["q2"]

    def test_task_search_includes_skills(self):
        found = filter_volunteer_tasks(self.tasks, TaskFilters(search_term="first aid"))
        assert [t.id for t in found] == ["t1"]

    def test_tasks_by_status(self):
        found = filter_volunteer_tasks(self.tasks, TaskFilters(status="assigned"))
        assert [t.id for t in found] == ["t2"]

    def test_no_filters(self):
        assert len(filter_volunteer_tasks(self.tasks, TaskFilters())) == 2

    def test_map_markers_skip_reports_without_coordinates(self):
        markers = build_map_markers(self.reports, self.requests)

        assert [(m.kind, m.entity_id) for m in markers] == [("report", "r1"), ("request", "q1"), ("request", "q2")]
        assert markers[0].title == "Report: damage - Bridge collapsed"
        assert markers[1].title == "Request: water - Drinking water"


def test_latest_broadcasts():
    broadcasts = [
        Broadcast(user_id="a1", user_role="admin", title=f"B{i}", message="m",
                  timestamp=START + timedelta(minutes=i))
        for i in (2, 0, 4, 1, 3)
    ]

    assert [b.title for b in latest_broadcasts(broadcasts)] == ["B4", "B3", "B2"]
    assert len(latest_broadcasts(broadcasts, limit=10)) == 5
