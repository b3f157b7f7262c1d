# level/walker.py
"""
Goal-seeking random walker that carves the level.

Each step the walker may mutate its kernels, picks one of the four cardinal
directions with a bias towards the current waypoint and digs the path with
its inner kernel while its outer kernel lays down a freeze buffer.
"""

from typing import List, Optional, Tuple

import structlog

from game_rng import GameRNG
from level.blocks import BlockType, Overwrite
from level.config import GenerationConfig
from level.errors import StepError
from level.kernel import Kernel, unique_radii_sqr, valid_radius_bounds
from level.level_map import LevelMap
from level.position import Direction, Position

log = structlog.get_logger(__name__)

# Area around the walker that must be empty before a platform is placed,
# relative to the walker position
PLATFORM_CLEARANCE: Tuple[Tuple[int, int], Tuple[int, int]] = ((-2, -3), (2, 1))
PLATFORM_HALF_WIDTH: int = 1


def _odd_values(bounds: Tuple[int, int]) -> List[int]:
    low, high = bounds
    start = low if low % 2 == 1 else low + 1
    return list(range(start, high + 1, 2))


def _clamp_radius(size: int, radius_sqr: int) -> int:
    min_radius, max_radius = valid_radius_bounds(size)
    return min(max(radius_sqr, min_radius), max_radius)


class CuteWalker:
    def __init__(
        self,
        pos: Position,
        inner_kernel: Kernel,
        outer_kernel: Kernel,
        waypoints: List[Position],
    ):
        self.pos: Position = Position(*pos)
        self.inner_kernel: Kernel = inner_kernel
        self.outer_kernel: Kernel = outer_kernel
        self.waypoints: List[Position] = [Position(*wp) for wp in waypoints]
        self.goal_index: int = 0
        self.finished: bool = False
        self.steps: int = 0
        self.steps_since_platform: int = 0
        self.last_direction: Optional[Direction] = None

    @property
    def goal(self) -> Optional[Position]:
        if self.finished or self.goal_index >= len(self.waypoints):
            return None
        return self.waypoints[self.goal_index]

    # --- Goal handling ---
    def is_goal_reached(self, waypoint_reached_dist: int) -> Optional[bool]:
        """None if there is no goal left, otherwise whether it was reached."""
        goal = self.goal
        if goal is None:
            return None
        return goal.distance_squared(self.pos) <= waypoint_reached_dist**2

    def next_waypoint(self) -> None:
        if self.finished:
            return
        if self.goal_index + 1 < len(self.waypoints):
            self.goal_index += 1
            log.debug(
                "Waypoint reached",
                pos=tuple(self.pos),
                next_goal=tuple(self.waypoints[self.goal_index]),
                steps=self.steps,
            )
        else:
            self.finished = True
            log.info("Walker finished", pos=tuple(self.pos), steps=self.steps)

    # --- Kernel mutation ---
    def mutate_kernel(self, config: GenerationConfig, rng: GameRNG) -> bool:
        """
        Randomly resizes/reshapes the inner and outer kernel.

        All four probability gates are always drawn so the random stream does
        not depend on which of them fire. Returns True if a kernel changed.
        """
        inner_size = self.inner_kernel.size
        inner_radius_sqr = self.inner_kernel.radius_sqr
        outer_size = self.outer_kernel.size
        outer_radius_sqr = self.outer_kernel.radius_sqr
        modified = False

        if rng.with_probability(config.inner_size_mut_prob):
            inner_size = rng.choice(_odd_values(config.inner_size_bounds))
            modified = True
        if rng.with_probability(config.inner_rad_mut_prob):
            inner_radius_sqr = rng.choice(unique_radii_sqr(inner_size))
            modified = True
        if rng.with_probability(config.outer_size_mut_prob):
            outer_size = rng.choice(_odd_values(config.outer_size_bounds))
            modified = True
        if rng.with_probability(config.outer_rad_mut_prob):
            outer_radius_sqr = rng.choice(unique_radii_sqr(outer_size))
            modified = True

        if not modified:
            return False

        # outer kernel must always wrap the inner one
        outer_size = max(outer_size, inner_size + 2)
        self.inner_kernel = Kernel(inner_size, _clamp_radius(inner_size, inner_radius_sqr))
        self.outer_kernel = Kernel(outer_size, _clamp_radius(outer_size, outer_radius_sqr))
        return True

    # --- Movement ---
    def get_rated_shifts(self, goal: Position, level_map: LevelMap) -> List[Direction]:
        """Directions sorted from most to least distance reduction towards goal."""
        ratings = []
        for direction in Direction:
            shifted = self.pos.shifted(direction)
            if level_map.pos_in_bounds(shifted):
                ratings.append((shifted.distance_squared(goal), direction))
            else:
                ratings.append((float("inf"), direction))
        # stable sort keeps Direction order for ties
        ratings.sort(key=lambda rating: rating[0])
        return [direction for _, direction in ratings]

    def probabilistic_step(
        self, level_map: LevelMap, config: GenerationConfig, rng: GameRNG
    ) -> Direction:
        """Moves one cell and carves the level around the new position."""
        if self.finished:
            raise StepError("walker is finished")
        goal = self.goal
        if goal is None:
            raise StepError("walker has no goal")

        shifts = self.get_rated_shifts(goal, level_map)
        direction = shifts[rng.sample_dist(config.step_weights)]
        if (
            self.last_direction is not None
            and rng.with_probability(config.momentum_prob)
        ):
            direction = self.last_direction

        new_pos = self.pos.shifted(direction)
        if not level_map.pos_in_bounds(new_pos):
            log.error("Walker step out of bounds", pos=tuple(self.pos), direction=direction.name)
            raise StepError(f"shift {direction.name} from {tuple(self.pos)} leaves the map")
        self.pos = new_pos
        self.last_direction = direction
        self.steps += 1

        # dig the path first, then wrap it with freeze
        if not level_map.apply_kernel(self.pos, self.inner_kernel, BlockType.EMPTY):
            raise StepError(f"inner kernel out of bounds at {tuple(self.pos)}")
        if not level_map.apply_kernel(self.pos, self.outer_kernel, BlockType.FREEZE):
            raise StepError(f"outer kernel out of bounds at {tuple(self.pos)}")
        return direction

    # --- Platforms ---
    def check_platform(
        self, level_map: LevelMap, min_distance: int, max_distance: int
    ) -> bool:
        """Places a platform once enough steps passed since the last one."""
        self.steps_since_platform += 1
        if self.steps_since_platform < min_distance:
            return False

        if self.steps_since_platform > max_distance:
            # overdue, force a single platform block at the walker
            level_map.set_area(self.pos, self.pos, BlockType.PLATFORM, Overwrite.REPLACE_NON_SOLID)
            self.steps_since_platform = 0
            log.debug("Forced platform", pos=tuple(self.pos), steps=self.steps)
            return True

        (dx0, dy0), (dx1, dy1) = PLATFORM_CLEARANCE
        top_left = self.pos.shifted_by(dx0, dy0)
        bot_right = self.pos.shifted_by(dx1, dy1)
        if not (level_map.pos_in_bounds(top_left) and level_map.pos_in_bounds(bot_right)):
            return False
        if not level_map.check_area_all(top_left, bot_right, BlockType.EMPTY):
            return False

        level_map.set_area(
            self.pos.shifted_by(-PLATFORM_HALF_WIDTH, 0),
            self.pos.shifted_by(PLATFORM_HALF_WIDTH, 0),
            BlockType.PLATFORM,
            Overwrite.REPLACE_EMPTY_ONLY,
        )
        self.steps_since_platform = 0
        log.debug("Platform placed", pos=tuple(self.pos), steps=self.steps)
        return True
