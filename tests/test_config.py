import json

import pytest

from formcoach.errors import ConfigurationError
from formcoach.exercise_analysis.config_utils import (
    EngineConfig,
    engine_config_from_dict,
    load_engine_config,
    load_reference_catalog,
)


def test_defaults():
    config = load_engine_config()
    assert config == EngineConfig()
    assert config.persistence_duration_ms == 2000
    assert config.session_cooldown_ms == 5000
    assert config.initial_lock_ms == 10000
    assert config.confidence_threshold == pytest.approx(0.3)


def test_load_from_file_keeps_missing_defaults(tmp_path):
    path = tmp_path / "engine.json"
    path.write_text(json.dumps({"exercise": "chaturanga", "persistence_duration_ms": 3000}))
    config = load_engine_config(str(path))
    assert config.exercise == "chaturanga"
    assert config.persistence_duration_ms == 3000
    assert config.view_angle == "side"


def test_overrides_skip_none():
    config = EngineConfig().with_overrides(exercise="downward_dog", view_angle=None)
    assert config.exercise == "downward_dog"
    assert config.view_angle == "side"


@pytest.mark.parametrize("raw, match", [
    ({"persistence_duration_ms": 500}, "persistence_duration_ms"),
    ({"persistence_duration_ms": 6000}, "persistence_duration_ms"),
    ({"view_angle": "top"}, "view_angle"),
    ({"confidence_threshold": 1.5}, "confidence_threshold"),
    ({"session_cooldown_ms": -1}, "session_cooldown_ms"),
    ({"speech_volume": 2}, "speech_volume"),
    ({"exercise": ""}, "exercise"),
    ({"cooldown": 10}, "Unknown config option"),
    ({"initial_lock_ms": "soon"}, "Invalid config value"),
])
def test_invalid_values_rejected(raw, match):
    with pytest.raises(ConfigurationError, match=match):
        engine_config_from_dict(raw)


def test_non_object_rejected():
    with pytest.raises(ConfigurationError):
        engine_config_from_dict([1, 2])


def test_custom_catalog_file(tmp_path):
    path = tmp_path / "poses.json"
    path.write_text(json.dumps({
        "plank": {
            "general_message": "Straight line",
            "views": {"front": {"alignments": [
                {"parts": ["left_shoulder", "nose", "right_shoulder"], "tolerance": 0.3},
            ]}},
        }
    }))
    catalog = load_reference_catalog(str(path))
    assert catalog.exercises() == ["plank"]
    assert catalog.views("plank") == ["front"]
