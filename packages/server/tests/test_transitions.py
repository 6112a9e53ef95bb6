"""
Status transition and request creation tests.

Tests cover:
- No-op transitions write nothing and notify nobody
- Delivered: completed_at stamp and advisor notification, per settings
- Correction/Delivered: cross-project call, failures swallowed
- Append failure reported as ok=False with no side effects
- Creation: initial Pendiente event and production notifications
"""

from __future__ import annotations

import uuid

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from dpt_server.models.notification import Notification
from dpt_server.services.event_store import count_events_for, list_events_for
from dpt_server.services.settings_store import UserSettingsStore
from dpt_server.services.transitions import create_request, transition_request
from dpt_shared.projection import current_status
from dpt_shared.schemas.common import RequestStatus
from dpt_shared.schemas.notifications import SettingsUpdate
from dpt_shared.schemas.requests import RequestCreate


async def _notifications(session, user_id=None):
    stmt = select(Notification)
    if user_id is not None:
        stmt = stmt.where(Notification.user_id == user_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _new_request(session, users, dispatcher, **kwargs):
    data = RequestCreate(client="Panaderia Luna", product="Logo", advisor_id=users["advisor"].id, **kwargs)
    return await create_request(session, data, users["director"], dispatcher)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateRequest:
    async def test_request_starts_pending_with_one_event(self, session, users, dispatcher):
        req = await _new_request(session, users, dispatcher)
        events = await list_events_for(session, req.id)
        assert len(events) == 1
        assert events[0].status == RequestStatus.PENDING.value
        assert events[0].user_id == users["director"].id
        assert events[0].note is None

    async def test_folios_are_sequential(self, session, users, dispatcher):
        first = await _new_request(session, users, dispatcher)
        second = await _new_request(session, users, dispatcher)
        assert second.folio == first.folio + 1

    async def test_production_staff_are_notified(self, session, users, dispatcher):
        req = await _new_request(session, users, dispatcher)
        notes = await _notifications(session)
        recipients = {n.user_id for n in notes}
        assert recipients == {users["director"].id, users["producer"].id}
        assert all(n.title == "Nueva solicitud" for n in notes)
        assert notes[0].message == f"#REQ-{req.folio} — Panaderia Luna — Logo"
        assert notes[0].category == "solicitud_creada"

    async def test_production_notification_can_be_disabled(self, session, users, dispatcher):
        await UserSettingsStore(session).update_notification_settings(
            users["director"].id, SettingsUpdate(notify_production=False)
        )
        await _new_request(session, users, dispatcher)
        assert await _notifications(session) == []

    async def test_unknown_advisor_is_rejected(self, session, users, dispatcher):
        data = RequestCreate(client="X", product="Y", advisor_id=uuid.uuid4())
        with pytest.raises(HTTPException) as exc:
            await create_request(session, data, users["director"], dispatcher)
        assert exc.value.status_code == 422


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransition:
    async def test_applied_transition_appends_one_event(self, session, users, dispatcher):
        req = await _new_request(session, users, dispatcher)
        result = await transition_request(
            session, str(req.folio), RequestStatus.IN_PRODUCTION, users["producer"], dispatcher
        )
        assert result.ok and result.applied
        assert result.status is RequestStatus.IN_PRODUCTION
        assert result.event_id is not None
        events = await list_events_for(session, req.id)
        assert current_status(events) is RequestStatus.IN_PRODUCTION
        assert len(events) == 2

    async def test_same_status_is_a_silent_noop(self, session, users, dispatcher, notifier):
        req = await _new_request(session, users, dispatcher)
        before = await _notifications(session)

        result = await transition_request(session, req.id.hex, RequestStatus.PENDING, users["producer"], dispatcher)

        assert result.ok is True
        assert result.applied is False
        assert result.event_id is None
        assert await count_events_for(session, req.id) == 1
        assert len(await _notifications(session)) == len(before)
        assert notifier.sent == []

    async def test_display_folio_is_accepted(self, session, users, dispatcher):
        req = await _new_request(session, users, dispatcher)
        result = await transition_request(
            session, f"#REQ-{req.folio}", RequestStatus.READY, users["producer"], dispatcher
        )
        assert result.applied

    async def test_unknown_request_is_404(self, session, users, dispatcher):
        with pytest.raises(HTTPException) as exc:
            await transition_request(session, "#REQ-999", RequestStatus.READY, users["producer"], dispatcher)
        assert exc.value.status_code == 404

    async def test_delivered_stamps_completion_and_notifies_advisor(self, session, users, dispatcher):
        req = await _new_request(session, users, dispatcher)
        advisor_id = users["advisor"].id

        await transition_request(session, str(req.id), RequestStatus.DELIVERED, users["producer"], dispatcher)

        await session.refresh(req)
        assert req.completed_at is not None
        notes = await _notifications(session, advisor_id)
        assert len(notes) == 1
        assert notes[0].title == "Solicitud entregada"
        assert notes[0].message == f"#REQ-{req.folio} ha sido entregada."
        assert notes[0].category == "solicitud_entregada"
        assert notes[0].request_id == req.id

    async def test_delivered_without_advisor_notification_setting(self, session, users, dispatcher):
        req = await _new_request(session, users, dispatcher)
        await UserSettingsStore(session).update_notification_settings(
            users["producer"].id, SettingsUpdate(notify_advisor=False)
        )

        result = await transition_request(session, str(req.id), RequestStatus.DELIVERED, users["producer"], dispatcher)

        assert result.applied
        assert await _notifications(session, users["advisor"].id) == []

    async def test_delivered_without_advisor_creates_nothing(self, session, users, dispatcher):
        data = RequestCreate(client="Sin asesor", product="Flyer")
        req = await create_request(session, data, users["designer"], dispatcher)
        count_before = len(await _notifications(session))

        await transition_request(session, str(req.id), RequestStatus.DELIVERED, users["producer"], dispatcher)

        assert len(await _notifications(session)) == count_before

    async def test_non_terminal_status_leaves_completed_at_empty(self, session, users, dispatcher):
        req = await _new_request(session, users, dispatcher)
        await transition_request(session, str(req.id), RequestStatus.READY, users["producer"], dispatcher)
        await session.refresh(req)
        assert req.completed_at is None

    async def test_repeated_delivery_notifies_again(self, session, users, dispatcher):
        """Notifications are not deduplicated across separate transitions."""
        req = await _new_request(session, users, dispatcher)
        producer = users["producer"]
        advisor_id = users["advisor"].id
        for status in (RequestStatus.DELIVERED, RequestStatus.CORRECTION, RequestStatus.DELIVERED):
            await transition_request(session, str(req.id), status, producer, dispatcher)
        assert len(await _notifications(session, advisor_id)) == 2


class TestCrossProject:
    async def test_correction_and_delivery_reach_the_collaborator(self, session, users, dispatcher, notifier):
        req = await _new_request(session, users, dispatcher, created_by_user_id=users["external"].id)

        await transition_request(session, str(req.id), RequestStatus.CORRECTION, users["producer"], dispatcher)
        await transition_request(session, str(req.id), RequestStatus.DELIVERED, users["producer"], dispatcher)

        assert [p.type for p in notifier.sent] == ["correction", "ready"]
        payload = notifier.sent[0]
        assert payload.user_email == "externo@example.com"
        assert payload.request_id == f"#REQ-{req.folio}"
        assert payload.request_uuid == str(req.id)
        assert payload.product_name == "Logo"
        assert payload.dashboard_source == "design"

    async def test_other_statuses_do_not_call_out(self, session, users, dispatcher, notifier):
        req = await _new_request(session, users, dispatcher, created_by_user_id=users["external"].id)
        await transition_request(session, str(req.id), RequestStatus.IN_PRODUCTION, users["producer"], dispatcher)
        await transition_request(session, str(req.id), RequestStatus.READY, users["producer"], dispatcher)
        assert notifier.sent == []

    async def test_collaborator_failure_is_swallowed(self, session, users, dispatcher, notifier):
        notifier.fail = True
        req = await _new_request(session, users, dispatcher, created_by_user_id=users["external"].id)

        result = await transition_request(session, str(req.id), RequestStatus.DELIVERED, users["producer"], dispatcher)

        assert result.ok and result.applied
        assert current_status(await list_events_for(session, req.id)) is RequestStatus.DELIVERED
        assert len(await _notifications(session, users["advisor"].id)) == 1


class TestAppendFailure:
    async def test_failed_append_reports_failure_without_side_effects(
        self, session, users, dispatcher, notifier, monkeypatch
    ):
        req = await _new_request(session, users, dispatcher, created_by_user_id=users["external"].id)
        request_id, advisor_id = req.id, users["advisor"].id
        producer = users["producer"]
        real_commit = session.commit

        async def broken_commit():
            raise OperationalError("INSERT INTO status_events", {}, Exception("backend unavailable"))

        monkeypatch.setattr(session, "commit", broken_commit)
        result = await transition_request(session, str(request_id), RequestStatus.DELIVERED, producer, dispatcher)
        monkeypatch.setattr(session, "commit", real_commit)

        assert result.ok is False
        assert result.applied is False
        assert result.status is RequestStatus.PENDING
        assert await count_events_for(session, request_id) == 1
        assert await _notifications(session, advisor_id) == []
        assert notifier.sent == []


class TestStampFailure:
    async def test_failed_completion_stamp_still_notifies(self, session, users, dispatcher, notifier, monkeypatch):
        req = await _new_request(session, users, dispatcher, created_by_user_id=users["external"].id)
        request_id, folio, advisor_id = req.id, req.folio, users["advisor"].id

        async def broken_stamp(session, req, when):
            raise OperationalError("UPDATE design_requests", {}, Exception("backend unavailable"))

        monkeypatch.setattr("dpt_server.services.transitions.stamp_completed", broken_stamp)
        result = await transition_request(
            session, str(request_id), RequestStatus.DELIVERED, users["producer"], dispatcher
        )

        assert result.ok and result.applied
        notes = await _notifications(session, advisor_id)
        assert [n.message for n in notes] == [f"#REQ-{folio} ha sido entregada."]
        assert [p.type for p in notifier.sent] == ["ready"]
        assert current_status(await list_events_for(session, request_id)) is RequestStatus.DELIVERED
