from unittest.mock import Mock

from alerting import AlertService
from storage import MemoryStore, StorageError
from teams_api import TeamsAPIError
from teams_service import ProcessingResult, TeamsService

from conftest import AWS_ACCESS_KEY, RANDOM_GITHUB_TOKEN, make_message

TWO_SECRETS = f"token {RANDOM_GITHUB_TOKEN} and aws {AWS_ACCESS_KEY}"


class TestProcessMessage:

    def test_clean_message(self, store, detector):
        alert_service = Mock(spec=AlertService)
        service = TeamsService(store, alert_service=alert_service, detector=detector)

        result = service.process_message(make_message("standup moved to 10:30"))

        assert result.detections == []
        assert not result.partial
        assert store.count() == 0
        alert_service.send_alert.assert_not_called()

    def test_only_top_detection_is_stored(self, store, detector):
        alert_service = Mock(spec=AlertService)
        service = TeamsService(store, alert_service=alert_service, detector=detector)

        result = service.process_message(make_message(TWO_SECRETS))

        assert len(result.detections) == 2
        assert store.count() == 1
        assert store.get_detections()[0].id == result.detections[0].id
        assert alert_service.send_alert.call_count == 2

    def test_alert_failure_is_reported(self, store, detector):
        alert_service = Mock(spec=AlertService)
        alert_service.send_alert.side_effect = [TeamsAPIError("throttled", 429), None]
        service = TeamsService(store, alert_service=alert_service, detector=detector)

        result = service.process_message(make_message(TWO_SECRETS))

        assert result.partial
        assert result.errors == ["alert: throttled"]
        assert store.count() == 1
        assert alert_service.send_alert.call_count == 2

    def test_storage_failure_is_reported(self, detector):
        store = Mock(spec=MemoryStore)
        store.save_detection.side_effect = StorageError("disk on fire")
        alert_service = Mock(spec=AlertService)
        service = TeamsService(store, alert_service=alert_service, detector=detector)

        result = service.process_message(make_message(TWO_SECRETS))

        assert result.errors == ["storage: disk on fire"]
        assert alert_service.send_alert.call_count == 2

    def test_without_alerting(self, store, detector):
        service = TeamsService(store, detector=detector)
        result = service.process_message(make_message(TWO_SECRETS))

        assert len(result.detections) == 2
        assert store.count() == 1


class TestProcessingResult:

    def test_to_dict(self, detector):
        detections = detector.scan_message(make_message(TWO_SECRETS))
        data = ProcessingResult(detections=detections).to_dict()

        assert data["processed"] is True
        assert data["detectionsFound"] == 2
        assert "errors" not in data
        assert RANDOM_GITHUB_TOKEN not in str(data)

    def test_errors_included(self):
        data = ProcessingResult(errors=["alert: boom"]).to_dict()
        assert data["errors"] == ["alert: boom"]
        assert data["detectionsFound"] == 0


def test_pass_through_queries(store, detector):
    service = TeamsService(store, detector=detector)
    result = service.process_message(make_message(TWO_SECRETS, channel_id="ops"))
    top = result.detections[0]

    assert [d.id for d in service.get_detections(10)] == [top.id]
    assert [d.id for d in service.get_detections_by_channel("ops")] == [top.id]

    service.update_detection_status(top.id, "resolved")
    assert [d.id for d in service.get_detections_by_status("resolved")] == [top.id]
    assert service.get_stats()["totalDetections"] == 1

    service.clear_all_detections()
    assert service.get_detections(10) == []
