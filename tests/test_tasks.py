"""Tests for worker tasks."""

from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import Retry

from meetapp_api.errors import MergeError, NoSourcesError
from meetapp_api.generation.orchestrator import GenerationOutcome
from meetapp_worker.tasks import check_message_timeout, generate_meeting_application, is_retryable


@pytest.fixture(autouse=True)
def task_db(db):
    with patch.object(generate_meeting_application, "_db", db), patch.object(check_message_timeout, "_db", db):
        yield


class TestGenerateTask:
    @patch("meetapp_worker.tasks.build_orchestrator")
    def test_runs_generation(self, mock_build):
        mock_build.return_value.generate.return_value = GenerationOutcome.GENERATED

        assert generate_meeting_application.run(42, True, 5) == "generated"
        mock_build.return_value.generate.assert_called_once_with(42, continue_after_callback=True, user_id=5)

    @patch("meetapp_worker.tasks.build_orchestrator")
    def test_expected_failure_is_not_retried(self, mock_build):
        mock_build.return_value.generate.side_effect = NoSourcesError("no files and no messages")

        with patch.object(generate_meeting_application, "retry") as retry:
            with pytest.raises(NoSourcesError):
                generate_meeting_application.run(42)
        retry.assert_not_called()

    @patch("meetapp_worker.tasks.build_orchestrator")
    def test_system_failure_is_retried(self, mock_build):
        error = MergeError("Ghostscript exited with code 1")
        mock_build.return_value.generate.side_effect = error

        with patch.object(generate_meeting_application, "retry", side_effect=Retry()) as retry:
            with pytest.raises(Retry):
                generate_meeting_application.run(42)
        retry.assert_called_once_with(exc=error, countdown=60)


def test_retry_policy():
    assert is_retryable(RuntimeError("connection reset"))
    assert is_retryable(MergeError("failed"))
    assert not is_retryable(NoSourcesError("none"))


@patch("meetapp_worker.tasks.build_resumer")
def test_timeout_check_swallows_errors(mock_build):
    mock_build.return_value.check_timeouts.side_effect = RuntimeError("database unavailable")
    assert check_message_timeout.run(42) is False


@patch("meetapp_worker.tasks.build_resumer")
def test_timeout_check_delegates(mock_build):
    mock_build.return_value.check_timeouts.return_value = True
    assert check_message_timeout.run(42) is True
    mock_build.return_value.check_timeouts.assert_called_once_with(42)
