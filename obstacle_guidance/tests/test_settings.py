from pathlib import Path

import pytest
from pydantic import ValidationError

from obstacle_guidance.app.config.settings import AppSettings, load_settings


def test_defaults_match_device_tuning(monkeypatch) -> None:
    monkeypatch.delenv("GUIDANCE_TELEMETRY_BASE_URL", raising=False)
    settings = AppSettings(_env_file=None)

    assert settings.process_every_n_frames == 15
    assert settings.cue_rate_limit_ms == 1000
    assert settings.max_queue_size == 200
    assert settings.flush_interval_ms == 5000
    assert settings.retry_backoff_cap_ms == 60000
    assert settings.telemetry_base_url is None
    assert settings.profile_path.name == "guidance_profile.yaml"
    assert settings.profile_path.exists()


def test_environment_prefix_is_honoured(monkeypatch) -> None:
    monkeypatch.setenv("GUIDANCE_TELEMETRY_BASE_URL", "https://collector.example/api/")
    monkeypatch.setenv("GUIDANCE_PROCESS_EVERY_N_FRAMES", "5")
    monkeypatch.setenv("GUIDANCE_SPEECH_ENABLED", "false")

    settings = AppSettings(_env_file=None)

    assert settings.telemetry_base_url == "https://collector.example/api"
    assert settings.process_every_n_frames == 5
    assert settings.speech_enabled is False


def test_blank_urls_disable_endpoints() -> None:
    settings = load_settings(telemetry_base_url="   ", haptic_endpoint="")
    assert settings.telemetry_base_url is None
    assert settings.haptic_endpoint is None


def test_paths_are_expanded() -> None:
    settings = load_settings(model_path="~/weights/yolov8n.pt")
    assert settings.model_path == Path("~/weights/yolov8n.pt").expanduser()


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        load_settings(log_format="xml")
    with pytest.raises(ValidationError):
        load_settings(process_every_n_frames=0)
    with pytest.raises(ValidationError):
        load_settings(confidence_threshold=1.5)
