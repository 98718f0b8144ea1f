"""Tests for request timeouts and registry callback resumption."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from meetapp_api.enums import RefStatus, RequestStatus, TaskStatus
from meetapp_api.generation.resume import CallbackPayload, GenerationResumer
from meetapp_api.models import GenerationTask, MeetingApplication, MessageRequest
from meetapp_api.registry.ledger import RequestLedger


@pytest.fixture
def scheduler():
    return MagicMock()


@pytest.fixture
def resumer(db, scheduler, settings):
    return GenerationResumer(db, RequestLedger(db), scheduler, settings)


@pytest.fixture
def waiting_application(db, make_application):
    application = make_application(messages=[{"id": 11, "status": "generating"}, {"id": 12, "status": "generating"}])
    db.add(
        GenerationTask(
            meeting_application_id=application.id,
            user_id=9,
            status=TaskStatus.GENERATING,
            started_at=datetime.utcnow() - timedelta(minutes=10),
        )
    )
    db.commit()
    return application


def _request(db, application_id, message_id, minutes_ago, status=RequestStatus.PENDING):
    entry = MessageRequest(
        meeting_application_id=application_id,
        message_id=message_id,
        requested_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
        status=status,
    )
    db.add(entry)
    db.commit()
    return entry


class TestCheckTimeouts:
    def test_expired_requests_resume_generation(self, db, resumer, scheduler, waiting_application):
        _request(db, waiting_application.id, 11, minutes_ago=10)
        _request(db, waiting_application.id, 12, minutes_ago=6)

        assert resumer.check_timeouts(waiting_application.id) is True

        entries = db.query(MessageRequest).all()
        assert {entry.status for entry in entries} == {RequestStatus.TIMEOUT}
        assert entries[0].error == "Timed out waiting for the message text (5 minutes)"

        application = db.get(MeetingApplication, waiting_application.id)
        ref = application.registry_messages.find(11)
        assert ref.status == RefStatus.ERROR
        assert ref.error == "Timed out waiting for the message text (5 minutes)"
        scheduler.resume_generation.assert_called_once_with(waiting_application.id, user_id=9)

    def test_recent_requests_are_left_pending(self, db, resumer, scheduler, waiting_application):
        _request(db, waiting_application.id, 11, minutes_ago=1)

        assert resumer.check_timeouts(waiting_application.id) is False
        assert db.query(MessageRequest).one().status == RequestStatus.PENDING
        scheduler.resume_generation.assert_not_called()

    def test_partial_expiry_keeps_waiting(self, db, resumer, scheduler, waiting_application):
        _request(db, waiting_application.id, 11, minutes_ago=10)
        _request(db, waiting_application.id, 12, minutes_ago=1)

        assert resumer.check_timeouts(waiting_application.id) is False
        assert RequestLedger(db).pending_message_ids(waiting_application.id) == [12]
        scheduler.resume_generation.assert_not_called()


class TestHandleCallback:
    def test_success_completes_request_and_resumes(self, db, resumer, scheduler, waiting_application):
        _request(db, waiting_application.id, 11, minutes_ago=1)

        result = resumer.handle_callback(CallbackPayload(message_id=11, message_uuid="uuid-11", succeeded=True))

        assert result == waiting_application.id
        assert db.query(MessageRequest).one().status == RequestStatus.COMPLETED
        scheduler.resume_generation.assert_called_once_with(waiting_application.id, user_id=9)

    def test_error_without_text_records_unknown_error(self, db, resumer, waiting_application):
        _request(db, waiting_application.id, 11, minutes_ago=1)

        resumer.handle_callback(
            CallbackPayload(
                message_id=11,
                message_uuid="uuid-11",
                succeeded=False,
                meeting_application_id=waiting_application.id,
            )
        )

        entry = db.query(MessageRequest).one()
        assert entry.status == RequestStatus.ERROR
        assert entry.error == "Unknown error"

    def test_does_not_resume_while_other_requests_pending(self, db, resumer, scheduler, waiting_application):
        _request(db, waiting_application.id, 11, minutes_ago=1)
        _request(db, waiting_application.id, 12, minutes_ago=1)

        resumer.handle_callback(CallbackPayload(message_id=11, message_uuid="uuid-11", succeeded=True))

        scheduler.resume_generation.assert_not_called()

    def test_unknown_message_without_application(self, resumer, scheduler):
        result = resumer.handle_callback(CallbackPayload(message_id=77, message_uuid="uuid-77", succeeded=True))

        assert result is None
        scheduler.resume_generation.assert_not_called()

    def test_missing_application_is_ignored(self, resumer, scheduler):
        result = resumer.handle_callback(
            CallbackPayload(message_id=77, message_uuid="uuid-77", succeeded=True, meeting_application_id=555)
        )

        assert result is None
        scheduler.resume_generation.assert_not_called()
