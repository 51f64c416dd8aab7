"""Configuration utilities for the obstacle guidance pipeline."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application configuration sourced from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="GUIDANCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    model_path: Path = Field(default=Path("models/yolov8n.pt"), description="YOLO weights path")
    confidence_threshold: float = Field(default=0.45, ge=0.0, le=1.0)
    iou_threshold: float = Field(default=0.45, ge=0.0, le=1.0)
    profile_path: Path = Field(
        default=Path(__file__).resolve().parent / "guidance_profile.yaml",
        description="Zones, thresholds and navigation classes for the decision engine.",
    )
    process_every_n_frames: int = Field(default=15, ge=1, description="Run detection on every Nth frame.")
    cue_rate_limit_ms: int = Field(default=1000, ge=0)
    telemetry_base_url: Optional[str] = Field(default=None, description="Collector base URL; blank disables telemetry.")
    client_id: str = Field(default="placeholder")
    app_version: str = Field(default="python-0.1.0")
    flush_interval_ms: int = Field(default=5000, ge=1)
    max_queue_size: int = Field(default=200, ge=1)
    retry_backoff_floor_ms: int = Field(default=1000, ge=1)
    retry_backoff_cap_ms: int = Field(default=60000, ge=1)
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)
    speech_enabled: bool = Field(default=True, description="Speak cues through pyttsx3 when true.")
    speech_rate: int = Field(default=150, gt=0, description="Words per minute.")
    haptic_endpoint: Optional[str] = Field(default=None, description="Base URL of the wearable haptic band.")
    display: bool = Field(default=False, description="Render OpenCV window when true.")
    log_format: str = Field(default="text")
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("model_path", "profile_path", mode="before")
    @classmethod
    def _expand_path(cls, value: str | Path) -> Path:
        return Path(value).expanduser()

    @field_validator("telemetry_base_url", "haptic_endpoint", mode="before")
    @classmethod
    def _normalize_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = str(value).strip()
        if not trimmed:
            return None
        return trimmed.rstrip("/")

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in {"text", "json"}:
            raise ValueError(f"Unsupported log format: {value}")
        return value


def load_settings(**overrides: object) -> AppSettings:
    """Return application settings, applying optional overrides."""

    return AppSettings(**overrides)
