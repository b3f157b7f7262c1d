from __future__ import annotations

"""Seeded random source for level generation.

Every stochastic decision taken by the walker and the post-processing passes
goes through a :class:`GameRNG` instance that is handed around explicitly.
Nothing in the generator touches the global ``random`` or ``numpy.random``
state, so a ``(seed, config)`` pair always reproduces the same map.
"""

from typing import TYPE_CHECKING, Any, Dict, Sequence

import numpy as np
import structlog

if TYPE_CHECKING:  # pragma: no cover
    from level.config import RandomDistConfig

log = structlog.get_logger(__name__)

SEED_MAX = 2**64


def _checked_seed(seed: int) -> int:
    if not isinstance(seed, (int, np.integer)) or isinstance(seed, bool):
        raise ValueError(f"seed must be an integer, got {type(seed).__name__}")
    if not 0 <= int(seed) < SEED_MAX:
        raise ValueError(f"seed must fit into 64 bits, got {seed}")
    return int(seed)


class GameRNG:
    def __init__(self, seed: int) -> None:
        self.initial_seed = _checked_seed(seed)
        self.rng = np.random.default_rng(self.initial_seed)

    # ------------------------------------------------------------------
    # basic random helpers
    # ------------------------------------------------------------------
    def get_int(self, a: int, b: int) -> int:
        """Uniform integer in ``[a, b]`` (both inclusive)."""
        if a > b:
            raise ValueError("a <= b")
        return int(self.rng.integers(a, b + 1))

    def get_float(self, a: float = 0.0, b: float = 1.0) -> float:
        if a > b:
            raise ValueError("a <= b")
        return a + (b - a) * float(self.rng.random())

    def with_probability(self, probability: float) -> bool:
        """Probability gate. ``0`` never passes, ``1`` always passes."""
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"probability out of range: {probability}")
        # always draw, so the stream position does not depend on the value
        draw = float(self.rng.random())
        return draw < probability

    def choice(self, seq: Sequence[Any]) -> Any:
        """Return a random element from *seq*."""
        if not seq:
            raise ValueError("cannot choose from an empty sequence")
        return seq[self.get_int(0, len(seq) - 1)]

    # ------------------------------------------------------------------
    # weighted helpers
    # ------------------------------------------------------------------
    def weighted_choice(self, items: Sequence[Any], weights: Sequence[float]) -> Any:
        if len(items) != len(weights):
            raise ValueError("items/weights length mismatch")
        if not items:
            raise ValueError("items empty")
        if any(w < 0 for w in weights):
            raise ValueError("weights must be non-negative")
        total = float(sum(weights))
        if total <= 0:
            raise ValueError("weight sum must be positive")

        cdf = np.cumsum(np.asarray(weights, dtype=float))
        cdf[-1] = total
        r = self.get_float(0.0, total)
        idx = int(np.searchsorted(cdf, r, side="right"))
        return items[min(idx, len(items) - 1)]

    def sample_dist(self, dist: "RandomDistConfig") -> Any:
        """Draw the value of one entry of a :class:`RandomDistConfig`."""
        values = [value for _, value in dist.entries]
        probs = [prob for prob, _ in dist.entries]
        return self.weighted_choice(values, probs)

    def sample_index(self, dist: "RandomDistConfig") -> int:
        """Like :meth:`sample_dist` but returns the entry index."""
        probs = [prob for prob, _ in dist.entries]
        return self.weighted_choice(list(range(len(probs))), probs)

    # ------------------------------------------------------------------
    # state management
    # ------------------------------------------------------------------
    def get_state(self) -> Dict[str, Any]:
        return {
            "random_state": self.rng.bit_generator.state,
            "initial_seed": self.initial_seed,
        }

    def set_state(self, state: Dict[str, Any]) -> None:
        if "random_state" in state:
            self.rng.bit_generator.state = state["random_state"]
        if "initial_seed" in state:
            self.initial_seed = state["initial_seed"]

    def reset(self, seed: int | None = None) -> None:
        if seed is not None:
            self.initial_seed = _checked_seed(seed)
        self.rng = np.random.default_rng(self.initial_seed)
        log.debug("RNG reset", seed=self.initial_seed)


__all__ = ["GameRNG", "SEED_MAX"]
