from __future__ import annotations

from pathlib import Path

import pytest

from obstacle_guidance.app.config.settings import AppSettings
from obstacle_guidance.app.models import ActionToken, Detection
from obstacle_guidance.app.services.decision_engine import (
    CENTER,
    LEFT,
    RIGHT,
    DecisionEngine,
    GuidanceProfile,
)


def build_detection(
    label: str = "person",
    confidence: float = 0.9,
    center_x: float = 160.0,
    height: float = 140.0,
    width: float = 60.0,
) -> Detection:
    return Detection(
        label=label,
        confidence=confidence,
        center_x=center_x,
        center_y=100.0,
        width=width,
        height=height,
    )


@pytest.fixture()
def engine() -> DecisionEngine:
    return DecisionEngine()


def test_empty_detections_are_clear(engine: DecisionEngine) -> None:
    assert engine.decide([]) == ActionToken.CLEAR


def test_non_navigation_labels_are_ignored(engine: DecisionEngine) -> None:
    detections = [
        build_detection(label="toothbrush", confidence=0.99, height=300.0),
        build_detection(label="laptop", confidence=0.95, height=200.0),
    ]
    assert engine.decide(detections) == ActionToken.CLEAR


def test_tall_center_obstacle_stops(engine: DecisionEngine) -> None:
    # 140 / 320 = 0.4375 > 0.40
    assert engine.decide([build_detection()]) == ActionToken.STOP


def test_stop_ignores_confidence_and_label(engine: DecisionEngine) -> None:
    assert engine.decide([build_detection(label="bench", confidence=0.0, height=200.0)]) == ActionToken.STOP


def test_warning_band_veers_away_from_obstacle_side(engine: DecisionEngine) -> None:
    # 90 / 320 = 0.28, between the warning and critical ratios
    assert engine.decide([build_detection(center_x=150.0, height=90.0)]) == ActionToken.SLIGHT_RIGHT
    assert engine.decide([build_detection(center_x=170.0, height=90.0)]) == ActionToken.SLIGHT_LEFT


def test_obstacle_at_frame_center_veers_left(engine: DecisionEngine) -> None:
    assert engine.decide([build_detection(center_x=160.0, height=90.0)]) == ActionToken.SLIGHT_LEFT


def test_left_side_warning_obstacle_veers_right(engine: DecisionEngine) -> None:
    # centerX=100 falls in the LEFT zone (0.3125); the side rule still veers right
    assert engine.decide([build_detection(center_x=100.0, height=90.0)]) == ActionToken.SLIGHT_RIGHT


def test_right_side_warning_obstacle_veers_left(engine: DecisionEngine) -> None:
    assert engine.decide([build_detection(center_x=300.0, height=120.0)]) == ActionToken.SLIGHT_LEFT


def test_small_center_obstacle_is_caution(engine: DecisionEngine) -> None:
    assert engine.decide([build_detection(height=40.0)]) == ActionToken.CAUTION


def test_side_obstacle_caution_band(engine: DecisionEngine) -> None:
    # 60 / 320 = 0.1875, between side caution and warning
    assert engine.decide([build_detection(center_x=20.0, height=60.0)]) == ActionToken.CAUTION


def test_tiny_side_obstacle_is_clear(engine: DecisionEngine) -> None:
    assert engine.decide([build_detection(center_x=300.0, height=30.0)]) == ActionToken.CLEAR


def test_center_obstacle_takes_priority_over_side(engine: DecisionEngine) -> None:
    detections = [
        build_detection(label="bus", confidence=0.99, center_x=20.0, height=300.0),
        build_detection(label="dog", confidence=0.3, center_x=160.0, height=40.0),
    ]
    assert engine.decide(detections) == ActionToken.CAUTION


def test_higher_confidence_decides_within_zone(engine: DecisionEngine) -> None:
    tall = build_detection(label="person", confidence=0.9, height=140.0)
    short = build_detection(label="chair", confidence=0.5, height=40.0)
    assert engine.decide([short, tall]) == ActionToken.STOP

    tall = build_detection(label="person", confidence=0.5, height=140.0)
    short = build_detection(label="chair", confidence=0.9, height=40.0)
    assert engine.decide([tall, short]) == ActionToken.CAUTION


def test_confidence_tie_goes_to_first_detection(engine: DecisionEngine) -> None:
    first = build_detection(confidence=0.7, height=40.0)
    second = build_detection(confidence=0.7, height=140.0)
    assert engine.decide([first, second]) == ActionToken.CAUTION
    assert engine.decide([second, first]) == ActionToken.STOP


def test_side_selection_spans_both_sides(engine: DecisionEngine) -> None:
    left = build_detection(confidence=0.4, center_x=20.0, height=120.0)
    right = build_detection(confidence=0.8, center_x=300.0, height=60.0)
    assert engine.decide([left, right]) == ActionToken.CAUTION


def test_zone_boundaries_belong_to_center() -> None:
    engine = DecisionEngine(GuidanceProfile(frame_width=100.0, frame_height=100.0))
    assert engine.zone_of(build_detection(center_x=33.0)) == CENTER
    assert engine.zone_of(build_detection(center_x=67.0)) == CENTER
    assert engine.zone_of(build_detection(center_x=32.9)) == LEFT
    assert engine.zone_of(build_detection(center_x=67.1)) == RIGHT


def test_malformed_detections_do_not_raise(engine: DecisionEngine) -> None:
    side = build_detection(confidence=0.0, center_x=10.0, width=-5.0, height=-20.0)
    assert engine.decide([side]) == ActionToken.CLEAR

    center = build_detection(confidence=0.0, width=0.0, height=0.0)
    assert engine.decide([center]) not in (ActionToken.STOP, ActionToken.SLIGHT_LEFT, ActionToken.SLIGHT_RIGHT)


def test_bundled_profile_matches_defaults() -> None:
    profile = GuidanceProfile.from_yaml(AppSettings().profile_path)
    assert profile == GuidanceProfile()


def test_profile_from_yaml_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "profile.yaml"
    config_path.write_text(
        "\n".join(
            [
                "frame_width: 640",
                "frame_height: 480",
                "zones:",
                "  left_end: 0.3",
                "  right_start: 0.7",
                "height_ratios:",
                "  critical: 0.5",
                "navigation_classes:",
                "  - person",
                "  - scooter",
            ]
        )
    )

    profile = GuidanceProfile.from_yaml(config_path)

    assert profile.frame_width == 640.0
    assert profile.frame_height == 480.0
    assert profile.critical_height_ratio == 0.5
    assert profile.warning_height_ratio == 0.25
    assert profile.navigation_classes == frozenset({"person", "scooter"})

    engine = DecisionEngine(profile)
    assert engine.decide([build_detection(label="scooter", center_x=320.0, height=250.0)]) == ActionToken.STOP
    assert engine.decide([build_detection(label="car", center_x=320.0, height=250.0)]) == ActionToken.CLEAR


def test_profile_rejects_inverted_zones() -> None:
    with pytest.raises(ValueError):
        GuidanceProfile(left_zone_end=0.8, right_zone_start=0.2)


def test_token_severity_order() -> None:
    ordered = sorted(ActionToken, key=lambda token: token.severity, reverse=True)
    assert ordered[0] == ActionToken.STOP
    assert ordered[-1] == ActionToken.CLEAR
    assert ActionToken.SLIGHT_LEFT.severity == ActionToken.SLIGHT_RIGHT.severity > ActionToken.CAUTION.severity
