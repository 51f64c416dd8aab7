"""Entry point for real-time obstacle guidance over a camera or video source."""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

import cv2
import numpy as np
import uvicorn

from .api import create_app
from .config.settings import AppSettings, load_settings
from .models import ActionToken, Detection
from .services.actuator import CompositeActuator, HttpHapticBand, Pyttsx3Speaker
from .services.cue_dispatcher import CueDispatcher
from .services.decision_engine import DecisionEngine, GuidanceProfile
from .services.detector import Detector, YOLODetector
from .services.frame_controller import FrameController
from .services.telemetry_uploader import TelemetryUploader
from .utils.geometry import center_size_to_xyxy
from .utils.video import iter_frames, managed_capture, parse_source

LOGGER = logging.getLogger(__name__)

TOKEN_COLORS: Dict[ActionToken, tuple[int, int, int]] = {
    ActionToken.CLEAR: (0, 255, 0),
    ActionToken.CAUTION: (0, 255, 255),
    ActionToken.SLIGHT_LEFT: (0, 165, 255),
    ActionToken.SLIGHT_RIGHT: (0, 165, 255),
    ActionToken.STOP: (0, 0, 255),
}
WINDOW_NAME = "Obstacle Guidance"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Obstacle guidance - spoken and haptic navigation cues")
    parser.add_argument("--source", type=str, default="0", help="Video source path, stream URL or device index")
    parser.add_argument("--model", type=str, default=None, help="Path to YOLO weights file")
    parser.add_argument("--conf", type=float, default=None, help="Detector confidence threshold")
    parser.add_argument("--iou", type=float, default=None, help="Detector IoU threshold")
    parser.add_argument("--profile", type=str, default=None, help="Guidance profile YAML file")
    parser.add_argument("--telemetry-url", type=str, default=None, help="Telemetry collector base URL")
    parser.add_argument("--haptic-endpoint", type=str, default=None, help="Base URL of the haptic band")
    parser.add_argument("--no-speech", action="store_true", help="Log cues instead of speaking them")
    parser.add_argument("--display", action="store_true", help="Show an annotated OpenCV window")
    parser.add_argument("--process-every", type=int, default=None, help="Process only every Nth frame")
    parser.add_argument("--log-format", choices=["text", "json"], default=None, help="Logging format")
    parser.add_argument("--warmup", type=int, default=0, help="Number of warm-up frames")
    parser.add_argument("--serve-api", action="store_true", help="Serve the control API alongside the guide")
    return parser


def setup_logging(settings: AppSettings) -> None:
    log_level = logging.INFO
    if settings.log_format == "json":
        formatter = logging.Formatter('{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}')
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logging.basicConfig(level=log_level, handlers=[handler])


def resolve_settings(args: argparse.Namespace) -> AppSettings:
    overrides = {}
    if args.model:
        overrides["model_path"] = Path(args.model)
    if args.conf is not None:
        overrides["confidence_threshold"] = args.conf
    if args.iou is not None:
        overrides["iou_threshold"] = args.iou
    if args.profile:
        overrides["profile_path"] = Path(args.profile)
    if args.telemetry_url is not None:
        overrides["telemetry_base_url"] = args.telemetry_url
    if args.haptic_endpoint:
        overrides["haptic_endpoint"] = args.haptic_endpoint
    if args.no_speech:
        overrides["speech_enabled"] = False
    if args.display:
        overrides["display"] = True
    if args.process_every:
        overrides["process_every_n_frames"] = args.process_every
    if args.log_format:
        overrides["log_format"] = args.log_format

    return load_settings(**overrides)


def build_actuator(settings: AppSettings) -> CompositeActuator:
    speaker = Pyttsx3Speaker(rate=settings.speech_rate) if settings.speech_enabled else None
    haptics = HttpHapticBand(settings.haptic_endpoint) if settings.haptic_endpoint else None
    return CompositeActuator(speaker=speaker, haptics=haptics)


def build_controller(
    settings: AppSettings,
    profile: GuidanceProfile,
    detector: Detector,
    actuator: CompositeActuator,
    uploader: Optional[TelemetryUploader] = None,
) -> FrameController:
    dispatcher = CueDispatcher(actuator, rate_limit_ms=settings.cue_rate_limit_ms)
    return FrameController(
        detector,
        DecisionEngine(profile),
        dispatcher,
        uploader or TelemetryUploader.from_settings(settings),
        process_every_n_frames=settings.process_every_n_frames,
    )


def annotate_frame(
    frame: np.ndarray,
    detections: Iterable[Detection],
    token: ActionToken,
    profile: GuidanceProfile,
) -> np.ndarray:
    output = frame.copy()
    height, width = output.shape[:2]
    scale_x = width / profile.frame_width
    scale_y = height / profile.frame_height

    for bound in (profile.left_zone_end, profile.right_zone_start):
        x = int(bound * width)
        cv2.line(output, (x, 0), (x, height), (200, 200, 200), 1, lineType=cv2.LINE_AA)

    color = TOKEN_COLORS[token]
    for det in detections:
        x1, y1, x2, y2 = center_size_to_xyxy(
            det.center_x * scale_x, det.center_y * scale_y, det.width * scale_x, det.height * scale_y
        )
        cv2.rectangle(output, (x1, y1), (x2, y2), color, 2)
        cv2.putText(
            output,
            f"{det.label} {det.confidence:.2f}",
            (x1, max(0, y1 - 5)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            color,
            1,
            lineType=cv2.LINE_AA,
        )

    cv2.putText(output, token.value, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.9, color, 2, lineType=cv2.LINE_AA)
    return output


def process_video_stream(
    video_source: str | int,
    controller: FrameController,
    settings: AppSettings,
    profile: GuidanceProfile,
    *,
    warmup_frames: int = 0,
) -> None:
    with managed_capture(video_source) as capture:
        if warmup_frames and isinstance(controller.detector, YOLODetector):
            frames = (frame.data for frame in iter_frames(capture, limit=warmup_frames))
            warmed = controller.detector.warm_up(frames)
            LOGGER.info("Detector warmed up with %d frames", warmed)
            capture.set(cv2.CAP_PROP_POS_FRAMES, 0)

        shown_token = ActionToken.CLEAR
        for frame in iter_frames(capture):
            token = controller.handle_frame(frame.data)
            if token is not None:
                shown_token = token

            if not settings.display:
                continue
            annotated = annotate_frame(frame.data, controller.last_detections, shown_token, profile)
            cv2.imshow(WINDOW_NAME, annotated)
            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):
                LOGGER.info("Quit signal received from keyboard")
                break
            if key == ord("r"):
                controller.repeat_last_cue()


def serve_api(controller: FrameController, settings: AppSettings) -> threading.Thread:
    config = uvicorn.Config(
        create_app(controller),
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="control-api", daemon=True)
    thread.start()
    LOGGER.info("Control API listening on http://%s:%d", settings.api_host, settings.api_port)
    return thread


def run_guidance(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    setup_logging(settings)

    LOGGER.info("Starting obstacle guidance pipeline")

    profile = GuidanceProfile.from_yaml(settings.profile_path)
    detector = YOLODetector(
        settings.model_path,
        settings.confidence_threshold,
        settings.iou_threshold,
        reference_size=(profile.frame_width, profile.frame_height),
    )
    actuator = build_actuator(settings)
    controller = build_controller(settings, profile, detector, actuator)
    controller.reset_session()
    controller.uploader.start()

    if args.serve_api:
        serve_api(controller, settings)

    try:
        process_video_stream(
            parse_source(args.source),
            controller,
            settings,
            profile,
            warmup_frames=args.warmup,
        )
    finally:
        controller.uploader.close()
        actuator.close()
        if settings.display:
            cv2.destroyAllWindows()

    stats = controller.stats
    LOGGER.info(
        "Guidance completed | frames=%d stops=%d veers=%d",
        stats.frame_count,
        stats.stop_count,
        stats.veer_count,
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    def handle_interrupt(signum: int, frame: Optional[object]) -> None:  # pragma: no cover - signal handling
        LOGGER.warning("Received interrupt signal (%d), shutting down", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_interrupt)
    sys.exit(run_guidance(args))


if __name__ == "__main__":  # pragma: no cover
    main()
