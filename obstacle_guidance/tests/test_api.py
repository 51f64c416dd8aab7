from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from obstacle_guidance.app.api import create_app
from obstacle_guidance.app.models import ActionToken, Detection
from obstacle_guidance.app.services.cue_dispatcher import CueDispatcher
from obstacle_guidance.app.services.decision_engine import DecisionEngine
from obstacle_guidance.app.services.frame_controller import FrameController
from obstacle_guidance.app.services.telemetry_uploader import TelemetryUploader


def _build_controller(detector, actuator, clock) -> FrameController:
    uploader = TelemetryUploader(None, session=MagicMock())
    dispatcher = CueDispatcher(actuator, clock=clock)
    return FrameController(detector, DecisionEngine(), dispatcher, uploader, process_every_n_frames=1)


def test_api_stats_repeat_and_reset(detector, actuator, clock) -> None:
    controller = _build_controller(detector, actuator, clock)
    app = create_app(controller, manage_uploader=True)

    with TestClient(app) as client:
        health_response = client.get("/health")
        assert health_response.status_code == 200
        assert health_response.json() == {"status": "ok"}

        missing_response = client.post("/cue/repeat")
        assert missing_response.status_code == 404

        controller.handle_detections(
            [Detection(label="person", confidence=0.9, center_x=160.0, center_y=100.0, width=60.0, height=140.0)]
        )

        stats_response = client.get("/stats")
        assert stats_response.status_code == 200
        body = stats_response.json()
        assert body["stop_count"] == 1
        assert body["last_token"] == "STOP"
        assert body["telemetry_enabled"] is False
        assert body["session_id"] == controller.uploader.session_id

        repeat_response = client.post("/cue/repeat")
        assert repeat_response.status_code == 200
        assert repeat_response.json() == {"token": ActionToken.STOP.value}
        assert actuator.messages == ["person ahead, stop", "person ahead, stop"]

        reset_response = client.post("/stats/reset")
        assert reset_response.status_code == 204

        after_reset = client.get("/stats").json()
        assert after_reset["stop_count"] == 0
        assert after_reset["frame_count"] == 0
        assert after_reset["last_token"] == "CLEAR"

    controller.uploader._session.close.assert_called_once()
