"""
Unit tests for the status projector and dashboard statistics.

Tests cover:
- Current status from an event sequence, including out-of-order arrival
- One-pass status map over many requests
- Request views and audit log rendering
- Folio formatting and parsing
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from dpt_shared.projection import (
    build_audit_log,
    current_status,
    format_folio,
    latest_status_map,
    parse_folio,
    project_requests,
)
from dpt_shared.schemas.common import RequestStatus
from dpt_shared.stats import advisor_breakdown, dashboard_stats

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _event(request_id, status, seconds, event_id, note=None, user_id=None):
    return SimpleNamespace(
        id=event_id,
        request_id=request_id,
        status=status.value if isinstance(status, RequestStatus) else status,
        timestamp=T0 + timedelta(seconds=seconds),
        note=note,
        user_id=user_id,
    )


def _request(folio, advisor_id=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        folio=folio,
        client="Cliente",
        product="Lona",
        type="Nueva solicitud",
        priority="Media",
        description="",
        brief="",
        downloadable_links=[],
        attachments=[],
        final_design=None,
        advisor_id=advisor_id,
        created_by_user_id=None,
        created_at=T0,
        completed_at=None,
        is_deleted=False,
        deleted_at=None,
        deleted_by=None,
    )


# ---------------------------------------------------------------------------
# current_status
# ---------------------------------------------------------------------------


class TestCurrentStatus:
    def test_no_events_is_pending(self):
        assert current_status([]) is RequestStatus.PENDING

    def test_latest_timestamp_wins(self):
        rid = uuid.uuid4()
        events = [
            _event(rid, RequestStatus.PENDING, 0, 1),
            _event(rid, RequestStatus.IN_PRODUCTION, 10, 2),
            _event(rid, RequestStatus.READY, 20, 3),
        ]
        assert current_status(events) is RequestStatus.READY

    def test_delayed_event_with_older_timestamp_does_not_win(self):
        """A skewed event that arrives last but is stamped earlier stays in the past."""
        rid = uuid.uuid4()
        events = [
            _event(rid, RequestStatus.IN_PRODUCTION, 1, 1),
            _event(rid, RequestStatus.CORRECTION, 2, 2),
            _event(rid, RequestStatus.DELIVERED, 1.5, 3),
        ]
        assert current_status(events) is RequestStatus.CORRECTION

    def test_equal_timestamps_fall_back_to_insertion_order(self):
        rid = uuid.uuid4()
        events = [
            _event(rid, RequestStatus.READY, 5, 8),
            _event(rid, RequestStatus.CORRECTION, 5, 7),
        ]
        assert current_status(events) is RequestStatus.READY

    def test_input_order_is_irrelevant(self):
        rid = uuid.uuid4()
        events = [
            _event(rid, RequestStatus.DELIVERED, 30, 4),
            _event(rid, RequestStatus.PENDING, 0, 1),
            _event(rid, RequestStatus.READY, 20, 3),
        ]
        assert current_status(events) is RequestStatus.DELIVERED
        assert current_status(list(reversed(events))) is RequestStatus.DELIVERED

    def test_naive_and_aware_timestamps_compare(self):
        rid = uuid.uuid4()
        naive = _event(rid, RequestStatus.READY, 10, 2)
        naive.timestamp = naive.timestamp.replace(tzinfo=None)
        aware = _event(rid, RequestStatus.PENDING, 0, 1)
        assert current_status([aware, naive]) is RequestStatus.READY


class TestLatestStatusMap:
    def test_map_covers_every_request_with_events(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        events = [
            _event(a, RequestStatus.PENDING, 0, 1),
            _event(b, RequestStatus.PENDING, 1, 2),
            _event(a, RequestStatus.IN_PRODUCTION, 2, 3),
            _event(b, RequestStatus.CORRECTION, 3, 4),
            _event(a, RequestStatus.READY, 1, 5),  # late arrival, older stamp
        ]
        assert latest_status_map(events) == {
            a: RequestStatus.IN_PRODUCTION,
            b: RequestStatus.CORRECTION,
        }

    def test_accepts_a_generator(self):
        rid = uuid.uuid4()
        gen = (_event(rid, s, i, i) for i, s in enumerate(RequestStatus))
        assert latest_status_map(gen) == {rid: RequestStatus.DELIVERED}


# ---------------------------------------------------------------------------
# Views and audit log
# ---------------------------------------------------------------------------


class TestProjectRequests:
    def test_views_carry_projected_status_and_names(self):
        advisor = SimpleNamespace(id=uuid.uuid4(), name="Ana")
        with_events = _request(1, advisor_id=advisor.id)
        without_events = _request(2)
        events = [
            _event(with_events.id, RequestStatus.PENDING, 0, 1),
            _event(with_events.id, RequestStatus.IN_PRODUCTION, 5, 2),
        ]

        views = project_requests([with_events, without_events], events, [advisor])

        assert [v.folio_display for v in views] == ["#REQ-1", "#REQ-2"]
        assert views[0].status is RequestStatus.IN_PRODUCTION
        assert views[0].advisor_name == "Ana"
        assert views[1].status is RequestStatus.PENDING
        assert views[1].advisor_name == "Sin Asignar"

    def test_inputs_are_not_mutated(self):
        req = _request(3)
        events = [_event(req.id, RequestStatus.READY, 0, 1)]
        project_requests([req], events)
        assert not hasattr(req, "status")
        assert events[0].status == "Listo"


class TestAuditLog:
    def test_newest_first_with_display_names(self):
        user = SimpleNamespace(id=uuid.uuid4(), name="Pablo")
        req = _request(7)
        events = [
            _event(req.id, RequestStatus.PENDING, 0, 1, user_id=user.id),
            _event(req.id, RequestStatus.IN_PRODUCTION, 10, 2, user_id=user.id),
        ]

        log = build_audit_log(events, [req], [user])

        assert [e.event_id for e in log] == [2, 1]
        assert log[0].action == "Cambio de estado: En Producción"
        assert log[1].action == "Solicitud creada"
        assert log[0].folio == "#REQ-7"
        assert log[0].user == "Pablo"

    def test_unknown_references_use_fallbacks(self):
        orphan = _event(uuid.uuid4(), RequestStatus.READY, 0, 1, user_id=uuid.uuid4())
        entry = build_audit_log([orphan], [], [])[0]
        assert entry.folio == "Desconocido"
        assert entry.user == "Usuario"

    def test_pending_with_note_is_a_status_change(self):
        req = _request(8)
        events = [_event(req.id, RequestStatus.PENDING, 0, 1, note="reabierta")]
        assert build_audit_log(events, [req])[0].action == "Cambio de estado: Pendiente"


# ---------------------------------------------------------------------------
# Folios
# ---------------------------------------------------------------------------


class TestFolio:
    def test_format(self):
        assert format_folio(42) == "#REQ-42"

    @pytest.mark.parametrize("ref", ["42", "REQ-42", "#REQ-42", "#req-42", " 42 ", 42])
    def test_parse(self, ref):
        assert parse_folio(ref) == 42

    @pytest.mark.parametrize("ref", ["", "abc", "#REQ-", "REQ-4a"])
    def test_parse_rejects_garbage(self, ref):
        assert parse_folio(ref) is None


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class TestStats:
    def _views(self):
        ana = SimpleNamespace(id=uuid.uuid4(), name="Ana")
        reqs = [_request(i, advisor_id=ana.id if i % 2 else None) for i in range(1, 6)]
        statuses = [
            RequestStatus.PENDING,
            RequestStatus.IN_PRODUCTION,
            RequestStatus.CORRECTION,
            RequestStatus.DELIVERED,
            RequestStatus.READY,
        ]
        events = [_event(r.id, s, 0, i) for i, (r, s) in enumerate(zip(reqs, statuses), start=1)]
        return project_requests(reqs, events, [ana])

    def test_dashboard_counts_correction_as_production(self):
        stats = dashboard_stats(self._views())
        assert (stats.total, stats.pending, stats.production, stats.completed) == (5, 1, 2, 1)

    def test_advisor_breakdown_sorted_by_count(self):
        breakdown = advisor_breakdown(self._views())
        assert [(a.name, a.count, a.percent) for a in breakdown] == [
            ("Ana", 3, 60.0),
            ("Sin Asignar", 2, 40.0),
        ]

    def test_empty(self):
        assert dashboard_stats([]).total == 0
        assert advisor_breakdown([]) == []
