import numpy as np
import pytest
from scipy import ndimage

from level.blocks import BlockType, GameTile
from level.config import GenerationConfig, RandomDistConfig
from level.debug_layers import DebugLayer
from level.errors import GenerationError, InvalidConfigError, MaxStepsExceededError
from level.generator import Generator
from level.position import Position


def small_config(**changes):
    defaults = dict(
        name="small",
        width=80,
        height=60,
        spawn=Position(15, 45),
        waypoints=[Position(65, 45), Position(65, 15)],
        waypoint_reached_dist=5,
        platform_distance_bounds=(30, 60),
    )
    defaults.update(changes)
    return GenerationConfig(**defaults)


def freeze_components_touch_solid(level_map):
    """Every 4-connected freeze component has a hookable cell around it."""
    freeze = level_map.tiles == BlockType.FREEZE
    solid = level_map.game_tiles() == GameTile.HOOKABLE
    near_solid = ndimage.binary_dilation(solid, structure=np.ones((3, 3), dtype=bool))
    labels, count = ndimage.label(freeze)
    touching = np.unique(labels[freeze & near_solid])
    return set(touching) == set(range(1, count + 1))


def test_generation_is_deterministic():
    a = Generator.generate_map(7, small_config())
    b = Generator.generate_map(7, small_config())
    assert np.array_equal(a.level_map.tiles, b.level_map.tiles)
    assert a.steps == b.steps
    for layer, mask in a.debug_layers:
        assert np.array_equal(mask, b.debug_layers[layer])


def test_different_seeds_differ():
    a = Generator.generate_map(1, small_config())
    b = Generator.generate_map(2, small_config())
    assert not np.array_equal(a.level_map.tiles, b.level_map.tiles)


def test_step_api():
    generator = Generator(small_config(), 3)
    assert generator.level_map.get(Position(15, 45)) == BlockType.HOOKABLE
    assert generator.step()
    assert generator.walker.steps == 1
    assert generator.level_map.take_dirty_chunks()

    with pytest.raises(GenerationError):
        generator.post_process()

    while generator.step():
        pass
    assert generator.walker.finished
    assert not generator.step()

    generator.post_process()
    with pytest.raises(GenerationError):
        generator.post_process()


def test_step_validates_config():
    config = small_config()
    generator = Generator(config, 3)
    config.step_weights = RandomDistConfig(entries=[(1.0, 7)])
    with pytest.raises(InvalidConfigError):
        generator.step()


def test_max_steps_exceeded():
    with pytest.raises(MaxStepsExceededError):
        Generator.generate_map(3, small_config(), max_steps=5)


def test_small_map_invariants():
    config = small_config()
    result = Generator.generate_map(11, config)
    tiles = result.level_map.tiles

    assert (tiles == BlockType.START).any()
    assert (tiles == BlockType.FINISH).any()
    assert result.level_map.get(config.spawn) == BlockType.SPAWN
    assert freeze_components_touch_solid(result.level_map)
    assert result.meta["config"] == "small"
    assert set(result.meta["timings"]) == {"edge_bugs", "rooms", "fill", "skips", "blobs"}


def test_default_map_seed_42():
    result = Generator.generate_map(42, GenerationConfig(), max_steps=100_000)
    level_map = result.level_map
    assert level_map.tiles.shape == (300, 300)
    assert result.steps <= 100_000

    assert (level_map.tiles == BlockType.START).any()
    assert (level_map.tiles == BlockType.FINISH).any()
    # checked per freeze component: cells inside a thick outer-kernel buffer
    # need not touch hookable themselves
    assert freeze_components_touch_solid(level_map)
    assert not result.debug_layers[DebugLayer.BLOBS][level_map.tiles == BlockType.FREEZE].any()
