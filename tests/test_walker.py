import numpy as np
import pytest

from game_rng import GameRNG
from level.blocks import BlockType
from level.config import GenerationConfig, RandomDistConfig
from level.errors import StepError
from level.kernel import Kernel, is_valid_radius
from level.level_map import LevelMap
from level.position import Direction, Position
from level.walker import CuteWalker


def make_walker(pos=(20, 20), waypoints=((30, 20), (30, 30))):
    return CuteWalker(
        Position(*pos),
        Kernel.full(3),
        Kernel.full(5),
        [Position(*wp) for wp in waypoints],
    )


def make_config(**changes):
    defaults = dict(
        width=50,
        height=50,
        spawn=Position(20, 20),
        waypoints=[Position(30, 20), Position(30, 30)],
        waypoint_reached_dist=2,
    )
    defaults.update(changes)
    return GenerationConfig(**defaults)


def test_goal_reached_and_waypoint_progression():
    walker = make_walker()
    assert walker.goal == Position(30, 20)
    assert not walker.is_goal_reached(2)

    walker.pos = Position(29, 21)
    assert walker.is_goal_reached(2)
    walker.next_waypoint()
    assert walker.goal == Position(30, 30)
    assert not walker.finished

    walker.next_waypoint()
    assert walker.finished
    assert walker.goal is None
    assert walker.is_goal_reached(2) is None

    # finishing is final
    walker.next_waypoint()
    assert walker.finished


def test_rated_shifts_prefer_goal():
    level_map = LevelMap(50, 50, fill=BlockType.HOOKABLE)
    walker = make_walker()
    shifts = walker.get_rated_shifts(Position(30, 20), level_map)
    assert shifts[0] == Direction.RIGHT
    assert shifts[-1] == Direction.LEFT
    # UP and DOWN tie and keep their enum order
    assert shifts[1:3] == [Direction.UP, Direction.DOWN]


def test_rated_shifts_rank_out_of_bounds_last():
    level_map = LevelMap(50, 50, fill=BlockType.HOOKABLE)
    walker = make_walker(pos=(0, 20))
    shifts = walker.get_rated_shifts(Position(-5, 20), level_map)
    assert shifts[-1] == Direction.LEFT


def test_probabilistic_step_carves_path():
    level_map = LevelMap(50, 50, fill=BlockType.HOOKABLE)
    config = make_config(step_weights=RandomDistConfig(entries=[(1.0, 0)]))
    walker = make_walker()

    direction = walker.probabilistic_step(level_map, config, GameRNG(1))
    assert direction == Direction.RIGHT
    assert walker.pos == Position(21, 20)
    assert walker.steps == 1
    assert walker.last_direction == Direction.RIGHT

    # inner 3x3 is empty, the rest of the outer 5x5 is freeze
    assert (level_map.tiles[19:22, 20:23] == BlockType.EMPTY).all()
    assert level_map.tiles[18, 19] == BlockType.FREEZE
    assert level_map.tiles[22, 23] == BlockType.FREEZE
    assert level_map.tiles[17, 21] == BlockType.HOOKABLE


def test_probabilistic_step_kernel_out_of_bounds():
    level_map = LevelMap(50, 50, fill=BlockType.HOOKABLE)
    config = make_config(
        spawn=Position(2, 20),
        waypoints=[Position(0, 20)],
        step_weights=RandomDistConfig(entries=[(1.0, 0)]),
    )
    walker = make_walker(pos=(2, 20), waypoints=((0, 20),))
    with pytest.raises(StepError):
        walker.probabilistic_step(level_map, config, GameRNG(1))


def test_probabilistic_step_finished_walker():
    walker = make_walker(waypoints=((20, 20),))
    walker.next_waypoint()
    with pytest.raises(StepError):
        walker.probabilistic_step(LevelMap(50, 50), make_config(), GameRNG(1))


def test_momentum_repeats_last_direction():
    level_map = LevelMap(50, 50, fill=BlockType.HOOKABLE)
    config = make_config(
        step_weights=RandomDistConfig(entries=[(1.0, 0)]), momentum_prob=1.0
    )
    walker = make_walker()
    walker.last_direction = Direction.DOWN
    assert walker.probabilistic_step(level_map, config, GameRNG(1)) == Direction.DOWN


def test_mutate_kernel_keeps_invariants():
    config = make_config(
        inner_rad_mut_prob=1.0,
        inner_size_mut_prob=1.0,
        outer_rad_mut_prob=1.0,
        outer_size_mut_prob=1.0,
    )
    rng = GameRNG(123)
    walker = make_walker()
    for _ in range(200):
        assert walker.mutate_kernel(config, rng)
        inner, outer = walker.inner_kernel, walker.outer_kernel
        assert inner.size in (3, 5)
        assert outer.size >= inner.size + 2
        assert outer.size <= 9 or outer.size == inner.size + 2
        assert is_valid_radius(inner.size, inner.radius_sqr)
        assert is_valid_radius(outer.size, outer.radius_sqr)


def test_mutate_kernel_without_probability_is_noop():
    config = make_config(
        inner_rad_mut_prob=0.0,
        inner_size_mut_prob=0.0,
        outer_rad_mut_prob=0.0,
        outer_size_mut_prob=0.0,
    )
    walker = make_walker()
    assert not walker.mutate_kernel(config, GameRNG(5))
    assert walker.inner_kernel == Kernel.full(3)
    assert walker.outer_kernel == Kernel.full(5)


def test_platform_placed_in_open_area():
    level_map = LevelMap(30, 30, fill=BlockType.EMPTY)
    walker = make_walker(pos=(15, 15))
    assert not walker.check_platform(level_map, 3, 10)
    assert not walker.check_platform(level_map, 3, 10)
    assert walker.check_platform(level_map, 3, 10)
    assert walker.steps_since_platform == 0
    assert list(level_map.tiles[15, 14:17]) == [BlockType.PLATFORM] * 3
    assert level_map.tiles[15, 13] == BlockType.EMPTY


def test_platform_needs_clearance():
    level_map = LevelMap(30, 30, fill=BlockType.EMPTY)
    level_map.set(Position(15, 12), BlockType.FREEZE)
    walker = make_walker(pos=(15, 15))
    walker.steps_since_platform = 5
    assert not walker.check_platform(level_map, 3, 10)
    assert not (level_map.tiles == BlockType.PLATFORM).any()


def test_platform_forced_when_overdue():
    level_map = LevelMap(30, 30, fill=BlockType.HOOKABLE)
    level_map.set(Position(15, 15), BlockType.EMPTY)
    walker = make_walker(pos=(15, 15))
    walker.steps_since_platform = 10
    assert walker.check_platform(level_map, 3, 10)
    assert level_map.get(Position(15, 15)) == BlockType.PLATFORM
    assert np.count_nonzero(level_map.tiles == BlockType.PLATFORM) == 1
