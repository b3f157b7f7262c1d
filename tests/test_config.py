from pathlib import Path

import pytest

from level.config import (
    GenerationConfig,
    RandomDistConfig,
    load_generation_config,
    load_presets,
)
from level.errors import InvalidConfigError
from level.position import Position

PRESETS_DIR = Path(__file__).resolve().parent.parent / "config" / "presets"


def test_dist_normalized_on_construction():
    dist = RandomDistConfig.from_weights([2.0, 1.0, 1.0])
    assert dist.probabilities == pytest.approx([0.5, 0.25, 0.25])
    assert dist.values == [0, 1, 2]
    assert dist.is_normalized()


def test_dist_add_and_remove_renormalize():
    dist = RandomDistConfig.from_weights([1.0, 1.0])
    dist.add(2.0, 2)
    assert dist.probabilities == pytest.approx([0.25, 0.25, 0.5])
    assert dist.is_normalized()

    prob, value = dist.remove(2)
    assert value == 2
    assert dist.probabilities == pytest.approx([0.5, 0.5])
    assert dist.is_normalized()


def test_dist_rejects_all_zero_weights():
    with pytest.raises(InvalidConfigError):
        RandomDistConfig.from_weights([0.0, 0.0, 0.0, 0.0])


def test_dist_remove_leaving_only_zero_weights():
    dist = RandomDistConfig.from_weights([1.0, 0.0, 0.0])
    with pytest.raises(InvalidConfigError):
        dist.remove(0)


def test_zero_step_weights_in_yaml_rejected(tmp_path):
    path = tmp_path / "zero.yaml"
    path.write_text("step_weights: [0, 0, 0, 0]\n")
    with pytest.raises(InvalidConfigError):
        load_generation_config(path)


def test_dist_rejects_negative_weights():
    with pytest.raises(InvalidConfigError):
        RandomDistConfig.from_weights([1.0, -0.5])


def test_default_config_is_valid():
    config = GenerationConfig()
    config.validate()
    assert config.spawn == Position(50, 250)
    assert len(config.waypoints) == 5


@pytest.mark.parametrize(
    "changes",
    [
        {"waypoints": []},
        {"width": 0},
        {"spawn": Position(300, 10)},
        {"waypoints": [Position(10, 400)]},
        {"inner_size_bounds": (4, 5)},
        {"outer_size_bounds": (9, 5)},
        {"inner_rad_mut_prob": 1.5},
        {"momentum_prob": -0.1},
        {"platform_distance_bounds": (10, 5)},
        {"skip_length_bounds": (0, 5)},
        {"max_distance": -1.0},
    ],
)
def test_validate_rejects(changes):
    config = GenerationConfig(**changes)
    with pytest.raises(InvalidConfigError):
        config.validate()


def test_validate_rejects_unnormalized_step_weights():
    config = GenerationConfig()
    config.step_weights.entries = [(0.5, 0), (0.1, 1)]
    with pytest.raises(InvalidConfigError):
        config.validate()


def test_validate_rejects_bad_step_ranks():
    config = GenerationConfig(step_weights=RandomDistConfig(entries=[(1.0, 5)]))
    with pytest.raises(InvalidConfigError):
        config.validate()


def test_dict_round_trip():
    config = GenerationConfig(name="rt", momentum_prob=0.3)
    restored = GenerationConfig.from_dict(config.to_dict())
    assert restored.step_weights.probabilities == pytest.approx(
        config.step_weights.probabilities
    )
    restored.step_weights = config.step_weights
    assert restored == config


def test_from_dict_unknown_field():
    with pytest.raises(InvalidConfigError):
        GenerationConfig.from_dict({"nope": 1})


def test_load_generation_config(tmp_path):
    path = tmp_path / "small.yaml"
    path.write_text(
        "name: small\n"
        "width: 60\n"
        "height: 40\n"
        "spawn: [10, 30]\n"
        "waypoints:\n"
        "  - [50, 30]\n"
        "  - [50, 10]\n"
        "step_weights: [3, 1]\n"
    )
    config = load_generation_config(path)
    assert config.name == "small"
    assert config.spawn == Position(10, 30)
    assert config.waypoints == [Position(50, 30), Position(50, 10)]
    assert config.step_weights.probabilities == pytest.approx([0.75, 0.25])
    assert config.step_weights.values == [0, 1]


def test_load_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_generation_config(path) == GenerationConfig()


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_generation_config(tmp_path / "missing.yaml")


def test_load_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("width: [1, 2\n")
    with pytest.raises(InvalidConfigError):
        load_generation_config(path)


def test_load_invalid_values(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("waypoints: []\n")
    with pytest.raises(InvalidConfigError):
        load_generation_config(path)


def test_bundled_presets():
    presets = load_presets(PRESETS_DIR)
    assert "default" in presets
    assert presets["default"] == GenerationConfig(
        description=presets["default"].description
    )
    for config in presets.values():
        config.validate()
