# level/generator.py
"""
Generation session tying map, walker, random source and post-processing
together.

A :class:`Generator` owns exactly one :class:`LevelMap`, one
:class:`CuteWalker` and one :class:`GameRNG`. :meth:`Generator.step` runs a
single walker iteration so an outside driver can interleave steps with other
work; :meth:`Generator.generate_map` runs a whole generation in one call.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog

from game_rng import GameRNG
from level.blocks import BlockType
from level.config import GenerationConfig
from level.debug_layers import DebugLayers
from level.errors import GenerationError, MaxStepsExceededError
from level.kernel import Kernel
from level.level_map import LevelMap
from level.post_processing import post_process
from level.walker import CuteWalker

log = structlog.get_logger(__name__)

DEFAULT_MAX_STEPS: int = 100_000


@dataclass
class GenerationResult:
    level_map: LevelMap
    debug_layers: DebugLayers
    steps: int
    seed: int
    meta: Dict[str, Any] = field(default_factory=dict)


class Generator:
    def __init__(self, config: GenerationConfig, seed: int):
        config.validate()
        self.config = config
        self.rng = GameRNG(seed)
        self.level_map = LevelMap(config.width, config.height, fill=BlockType.HOOKABLE)
        self.debug_layers = DebugLayers(config.width, config.height)

        inner_size = config.inner_size_bounds[0]
        outer_size = max(config.outer_size_bounds[0], inner_size + 2)
        self.walker = CuteWalker(
            config.spawn,
            Kernel.full(inner_size),
            Kernel.full(outer_size),
            config.waypoints,
        )
        self.post_processed = False
        log.info(
            "Generator created",
            config=config.name,
            seed=self.rng.initial_seed,
            width=config.width,
            height=config.height,
        )

    @property
    def seed(self) -> int:
        return self.rng.initial_seed

    def step(self) -> bool:
        """
        Performs one walker iteration.

        Returns False once the walker reached its last waypoint. Errors from
        config validation or the step itself propagate to the caller.
        """
        walker = self.walker
        if self._advance_goal():
            return False

        self.config.validate()
        walker.mutate_kernel(self.config, self.rng)
        walker.probabilistic_step(self.level_map, self.config, self.rng)
        min_distance, max_distance = self.config.platform_distance_bounds
        walker.check_platform(self.level_map, min_distance, max_distance)
        return True

    def _advance_goal(self) -> bool:
        """Moves on to the next waypoint if reached. Returns True if finished."""
        walker = self.walker
        if not walker.finished and walker.is_goal_reached(self.config.waypoint_reached_dist):
            walker.next_waypoint()
        return walker.finished

    def post_process(self) -> Dict[str, float]:
        if not self.walker.finished:
            raise GenerationError("walker has not finished yet")
        if self.post_processed:
            raise GenerationError("post processing already ran")
        self.post_processed = True
        return post_process(self.level_map, self.walker, self.config, self.debug_layers)

    def run(self, max_steps: int = DEFAULT_MAX_STEPS) -> int:
        """Steps until the walker finished. Returns the number of steps."""
        while self.walker.steps < max_steps:
            if not self.step():
                break
        else:
            # budget used up, the last step may still have reached the goal
            self._advance_goal()
        if not self.walker.finished:
            log.error(
                "Walker did not finish",
                seed=self.seed,
                max_steps=max_steps,
                pos=tuple(self.walker.pos),
                goal_index=self.walker.goal_index,
            )
            raise MaxStepsExceededError(
                f"walker did not finish within {max_steps} steps (seed={self.seed})"
            )
        return self.walker.steps

    @classmethod
    def generate_map(
        cls,
        seed: int,
        config: Optional[GenerationConfig] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> GenerationResult:
        """Runs walker and post-processing for ``seed`` in one go."""
        config = config if config is not None else GenerationConfig()
        start = time.perf_counter()
        generator = cls(config, seed)
        steps = generator.run(max_steps)
        walk_time = time.perf_counter() - start
        timings = generator.post_process()
        total_time = time.perf_counter() - start

        log.info(
            "Map generated",
            seed=seed,
            config=config.name,
            steps=steps,
            walk_ms=round(walk_time * 1000, 2),
            total_ms=round(total_time * 1000, 2),
        )
        return GenerationResult(
            level_map=generator.level_map,
            debug_layers=generator.debug_layers,
            steps=steps,
            seed=generator.seed,
            meta={
                "config": config.name,
                "timings": timings,
                "walk_seconds": walk_time,
                "debug_counts": generator.debug_layers.counts(),
            },
        )
