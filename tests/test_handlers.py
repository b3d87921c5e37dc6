"""Contains unit tests for the event handler and the Lambda handlers."""

import base64
import json
from unittest.mock import MagicMock, patch

import pytest

from tests.helpers import TEST_EVENT
from zephyr_sync.exceptions import ConfigurationError, RemoteServiceError, ResolutionError
from zephyr_sync.handlers import EventHandler, event_stream_handler, health_check_handler
from zephyr_sync.models import EventStatus, RemoteEvent


@pytest.fixture
def engine() -> MagicMock:
    return MagicMock()


class TestEventHandler:
    """Tests for the callbacks reporting event outcomes."""

    def test_processed_event_is_reported(self, engine: MagicMock) -> None:
        engine.process_event.return_value = True
        on_info, on_error = MagicMock(), MagicMock()

        assert EventHandler(engine, on_info, on_error).handle(TEST_EVENT) is True

        report = on_info.call_args.args[0]
        assert report.event_id == "3"
        assert report.status == EventStatus.SUCCESS
        assert report.name == "Updated test status in zephyr because of event 'TEST_1234'"
        on_error.assert_not_called()

    def test_unmatched_event_is_not_reported(self, engine: MagicMock) -> None:
        engine.process_event.return_value = False
        on_info, on_error = MagicMock(), MagicMock()

        assert EventHandler(engine, on_info, on_error).handle(TEST_EVENT) is False

        on_info.assert_not_called()
        on_error.assert_not_called()

    def test_failure_is_reported_with_cause(self, engine: MagicMock) -> None:
        error = ResolutionError("Cannot find version 2.0.0 for project TEST", "3")
        engine.process_event.side_effect = error
        on_info, on_error = MagicMock(), MagicMock()

        assert EventHandler(engine, on_info, on_error).handle(TEST_EVENT) is False

        on_error.assert_called_once_with(TEST_EVENT, error)
        on_info.assert_not_called()


def provider_event(event_id: str, name: str, successful: bool = True) -> dict:
    return {"eventId": event_id, "eventName": name, "parentEventId": "2", "successful": successful}


class TestEventStreamHandler:
    """Tests for the Lambda handler processing event batches."""

    @pytest.fixture(autouse=True)
    def patched_engine(self, engine: MagicMock) -> MagicMock:
        with patch("zephyr_sync.handlers.get_engine", return_value=engine):
            yield engine

    def test_batch_summary(self, engine: MagicMock) -> None:
        engine.process_event.side_effect = [True, False]
        body = {"events": [provider_event("3", "TEST_1"), provider_event("4", "OTHER_1", successful=False)]}

        response = event_stream_handler({"body": json.dumps(body)}, None)

        assert response["statusCode"] == 200
        result = json.loads(response["body"])
        assert result["summary"] == {"total": 2, "processed": 1, "skipped": 1, "failed": 0}
        assert result["processed"] == ["Updated test status in zephyr because of event 'TEST_1'"]
        failed_event: RemoteEvent = engine.process_event.call_args_list[1].args[0]
        assert failed_event.status == EventStatus.FAILED

    def test_event_ids_are_fetched_from_provider(self, engine: MagicMock) -> None:
        engine.provider.get_event.return_value = TEST_EVENT
        engine.process_event.return_value = True

        response = event_stream_handler({"event_ids": ["3"]}, None)

        engine.provider.get_event.assert_called_once_with("3")
        engine.process_event.assert_called_once_with(TEST_EVENT)
        assert response["statusCode"] == 200

    def test_failures_are_reported_per_event(self, engine: MagicMock) -> None:
        engine.process_event.side_effect = [True, ResolutionError("incorrect format")]
        body = json.dumps({"events": [provider_event("3", "TEST_1"), provider_event("4", "TEST_2")]})
        event = {"body": base64.b64encode(body.encode()).decode(), "isBase64Encoded": True}

        response = event_stream_handler(event, None)

        assert response["statusCode"] == 207
        assert json.loads(response["body"])["failures"] == [{"event_id": "4", "error": "incorrect format"}]

    def test_unknown_event_id_does_not_stop_batch(self, engine: MagicMock) -> None:
        engine.provider.get_event.side_effect = RemoteServiceError("DataProvider API error: 404 - not found", 404)
        engine.process_event.return_value = True
        body = {"events": [provider_event("3", "TEST_1234")], "event_ids": ["missing"]}

        response = event_stream_handler(body, None)

        assert response["statusCode"] == 207
        result = json.loads(response["body"])
        assert result["summary"] == {"total": 2, "processed": 1, "skipped": 0, "failed": 1}
        assert result["failures"] == [{"event_id": "missing", "error": "DataProvider API error: 404 - not found"}]
        engine.process_event.assert_called_once()

    def test_failed_fetch_does_not_stop_later_ids(self, engine: MagicMock) -> None:
        engine.provider.get_event.side_effect = [RemoteServiceError("timeout"), TEST_EVENT]
        engine.process_event.return_value = True

        response = event_stream_handler({"event_ids": ["missing", "3"]}, None)

        assert response["statusCode"] == 207
        engine.process_event.assert_called_once_with(TEST_EVENT)

    @pytest.mark.parametrize(
        "body",
        [
            pytest.param({"body": "not json"}, id="not json"),
            pytest.param({"body": "[1, 2]"}, id="not an object"),
            pytest.param({"events": [{"eventName": "TEST_1"}]}, id="event without id"),
            pytest.param({"events": ["TEST_1"]}, id="event not an object"),
            pytest.param({"events": [{"eventId": None, "eventName": "TEST_1"}]}, id="invalid event id"),
        ],
    )
    def test_invalid_payload(self, engine: MagicMock, body: dict) -> None:
        response = event_stream_handler(body, None)

        assert response["statusCode"] == 400
        engine.process_event.assert_not_called()

    def test_engine_failure(self, patched_engine: MagicMock) -> None:
        with patch("zephyr_sync.handlers.get_engine", side_effect=ConfigurationError("no processors")):
            response = event_stream_handler({"events": []}, None)

        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"error": "Internal server error"}


def test_health_check_reports_configuration(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    settings = tmp_path / "zephyr-sync.json"
    settings.write_text(
        json.dumps(
            {
                "processors": [{"issue_format": "TEST_\\d+", "status_mapping": {"FAILED": "WIP", "SUCCESS": "PASS"}}],
                "connections": [{"jira_url": "https://jira.example.com", "credentials": {"bearer_token": "pat"}}],
                "data_provider_url": "http://provider",
            }
        )
    )
    monkeypatch.setenv("ZEPHYR_SYNC_CONFIG", str(settings))

    response = health_check_handler({}, None)

    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["processors"] == ["TEST_\\d+"]
    assert body["connections"]["default"]["zephyr_url"] == "https://jira.example.com"


def test_health_check_reports_unreadable_configuration(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZEPHYR_SYNC_CONFIG", str(tmp_path / "missing.json"))

    response = health_check_handler({}, None)

    assert response["statusCode"] == 500
    assert json.loads(response["body"])["status"] == "unhealthy"
