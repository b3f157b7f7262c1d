# level/config.py
"""Generation presets: dataclasses, validation and YAML loading."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog
import yaml

from level.errors import InvalidConfigError
from level.position import Position

log = structlog.get_logger(__name__)

PROBABILITY_TOLERANCE = 1e-6


@dataclass
class RandomDistConfig:
    """
    Discrete distribution of ``(probability, value)`` entries.

    Probabilities are renormalized to sum to one on construction and after
    every structural edit.
    """

    entries: List[Tuple[float, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.entries = [(float(prob), value) for prob, value in self.entries]
        if self.entries:
            self.normalize()

    @classmethod
    def from_weights(cls, weights: List[float], values: Optional[List[Any]] = None):
        """Build from raw weights; values default to the entry index."""
        if values is None:
            values = list(range(len(weights)))
        if len(values) != len(weights):
            raise InvalidConfigError("weights/values length mismatch")
        return cls(entries=list(zip(weights, values)))

    @property
    def probabilities(self) -> List[float]:
        return [prob for prob, _ in self.entries]

    @property
    def values(self) -> List[Any]:
        return [value for _, value in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def normalize(self) -> None:
        if any(prob < 0 or not math.isfinite(prob) for prob, _ in self.entries):
            raise InvalidConfigError("probabilities must be finite and non-negative")
        total = sum(self.probabilities)
        if total <= 0:
            raise InvalidConfigError("probabilities must not all be zero")
        self.entries = [(prob / total, value) for prob, value in self.entries]

    def add(self, probability: float, value: Any = None) -> None:
        self.entries.append((float(probability), value))
        self.normalize()

    def remove(self, index: int) -> Tuple[float, Any]:
        removed = self.entries.pop(index)
        if self.entries:
            self.normalize()
        return removed

    def is_normalized(self) -> bool:
        return bool(self.entries) and math.isclose(
            sum(self.probabilities), 1.0, abs_tol=PROBABILITY_TOLERANCE
        )

    def to_list(self) -> List[List[Any]]:
        return [[prob, value] for prob, value in self.entries]


def _default_step_weights() -> RandomDistConfig:
    # rank 0 is the direction that gets closest to the goal
    return RandomDistConfig.from_weights([0.5, 0.25, 0.15, 0.1])


def _default_waypoints() -> List[Position]:
    return [
        Position(250, 250),
        Position(250, 150),
        Position(50, 150),
        Position(50, 50),
        Position(250, 50),
    ]


@dataclass
class GenerationConfig:
    name: str = "default"
    description: Optional[str] = None

    # Map layout
    width: int = 300
    height: int = 300
    spawn: Position = Position(50, 250)
    waypoints: List[Position] = field(default_factory=_default_waypoints)
    waypoint_reached_dist: int = 10

    # Kernel mutation: (min, max) odd sizes and mutation probabilities
    inner_size_bounds: Tuple[int, int] = (3, 5)
    outer_size_bounds: Tuple[int, int] = (5, 9)
    inner_rad_mut_prob: float = 0.25
    inner_size_mut_prob: float = 0.5
    outer_rad_mut_prob: float = 0.25
    outer_size_mut_prob: float = 0.5

    # Probability weighting from best to worst direction towards the goal
    step_weights: RandomDistConfig = field(default_factory=_default_step_weights)
    # Probability to repeat the previous direction instead
    momentum_prob: float = 0.0

    # Post processing
    platform_distance_bounds: Tuple[int, int] = (500, 750)
    max_distance: float = 3.0
    skip_length_bounds: Tuple[int, int] = (3, 11)
    skip_min_spacing_sqr: int = 45

    # --- Validation ---
    def validate(self) -> None:
        """Raises :class:`InvalidConfigError` describing the first problem found."""
        if self.width <= 0 or self.height <= 0:
            raise InvalidConfigError("map dimensions must be positive")
        if not self.waypoints:
            raise InvalidConfigError("waypoint list is empty")
        for pos in [self.spawn, *self.waypoints]:
            if not (0 <= pos.x < self.width and 0 <= pos.y < self.height):
                raise InvalidConfigError(f"position {tuple(pos)} outside of map")
        if self.waypoint_reached_dist < 0:
            raise InvalidConfigError("waypoint_reached_dist must be non-negative")

        for label, bounds in (
            ("inner_size_bounds", self.inner_size_bounds),
            ("outer_size_bounds", self.outer_size_bounds),
        ):
            low, high = bounds
            if low < 1 or low > high:
                raise InvalidConfigError(f"{label} must satisfy 1 <= min <= max")
            if low % 2 == 0 or high % 2 == 0:
                raise InvalidConfigError(f"{label} must be odd")

        for label in (
            "inner_rad_mut_prob",
            "inner_size_mut_prob",
            "outer_rad_mut_prob",
            "outer_size_mut_prob",
            "momentum_prob",
        ):
            prob = getattr(self, label)
            if not 0.0 <= prob <= 1.0:
                raise InvalidConfigError(f"{label} must be within [0, 1], got {prob}")

        if not self.step_weights.is_normalized():
            raise InvalidConfigError("step_weights are not normalized")
        if len(self.step_weights) > 4:
            raise InvalidConfigError("step_weights can rank at most 4 directions")
        if any(rank not in range(4) for rank in self.step_weights.values):
            raise InvalidConfigError("step_weights values must be ranks 0..3")

        low, high = self.platform_distance_bounds
        if low < 0 or low > high:
            raise InvalidConfigError("platform_distance_bounds must satisfy 0 <= min <= max")
        if self.max_distance < 0:
            raise InvalidConfigError("max_distance must be non-negative")
        low, high = self.skip_length_bounds
        if low < 1 or low > high:
            raise InvalidConfigError("skip_length_bounds must satisfy 1 <= min <= max")
        if self.skip_min_spacing_sqr < 0:
            raise InvalidConfigError("skip_min_spacing_sqr must be non-negative")

    # --- (De)serialization ---
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfigError(f"unknown config fields: {sorted(unknown)}")

        kwargs: Dict[str, Any] = dict(data)
        try:
            if "spawn" in kwargs:
                kwargs["spawn"] = Position(*kwargs["spawn"])
            if "waypoints" in kwargs:
                kwargs["waypoints"] = [Position(*wp) for wp in kwargs["waypoints"] or []]
            for key in (
                "inner_size_bounds",
                "outer_size_bounds",
                "platform_distance_bounds",
                "skip_length_bounds",
            ):
                if key in kwargs:
                    kwargs[key] = tuple(kwargs[key])
            if "step_weights" in kwargs:
                kwargs["step_weights"] = _parse_dist(kwargs["step_weights"])
        except (TypeError, ValueError) as e:
            raise InvalidConfigError(f"malformed config: {e}") from e
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["spawn"] = list(self.spawn)
        data["waypoints"] = [list(wp) for wp in self.waypoints]
        data["step_weights"] = self.step_weights.to_list()
        for key in (
            "inner_size_bounds",
            "outer_size_bounds",
            "platform_distance_bounds",
            "skip_length_bounds",
        ):
            data[key] = list(data[key])
        return data


def _parse_dist(raw: Any) -> RandomDistConfig:
    """Accepts plain weights ``[w0, w1, ...]`` or ``[[prob, value], ...]``."""
    if isinstance(raw, RandomDistConfig):
        return raw
    if all(isinstance(item, (int, float)) for item in raw):
        return RandomDistConfig.from_weights(list(raw))
    return RandomDistConfig(entries=[(prob, value) for prob, value in raw])


# --- Config Loading Helpers ---
def load_generation_config(config_path: Path) -> GenerationConfig:
    """Loads and validates a YAML generation preset."""
    config_path = Path(config_path)
    if not config_path.is_file():
        log.error("Generation config file not found", path=str(config_path))
        raise FileNotFoundError(f"Generation config file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        log.error(
            "Error parsing YAML for generation config",
            path=str(config_path),
            error=str(e),
            exc_info=True,
        )
        raise InvalidConfigError(f"invalid YAML in {config_path}") from e

    if config_data is None:
        log.warning("Generation config file is empty, using defaults", path=str(config_path))
        config_data = {}
    if not isinstance(config_data, dict):
        raise InvalidConfigError(f"{config_path} must contain a mapping")

    config = GenerationConfig.from_dict(config_data)
    config.validate()
    log.info("Generation config loaded", path=str(config_path), name=config.name)
    return config


def load_presets(config_dir: Path) -> Dict[str, GenerationConfig]:
    """Loads every ``*.yaml`` preset in ``config_dir``, keyed by preset name."""
    presets: Dict[str, GenerationConfig] = {}
    for path in sorted(Path(config_dir).glob("*.yaml")):
        config = load_generation_config(path)
        if config.name in presets:
            log.warning("Duplicate preset name, overriding", name=config.name, path=str(path))
        presets[config.name] = config
    return presets
