# main.py
import sys
import time
from pathlib import Path
from typing import Any
from typing import Dict as PyDict

import numpy as np
import structlog
import yaml

from level.blocks import BlockType
from level.config import load_presets
from level.errors import GenerationError
from level.generator import DEFAULT_MAX_STEPS, GenerationResult, Generator
from level.level_map import LevelMap
from level.position import Position
from utils.logging_utils import setup_logging

# --- Paths relative to this script's location ---
SCRIPT_DIR = Path(__file__).parent.resolve()
CONFIG_DIR = SCRIPT_DIR / "config"
PRESETS_DIR = CONFIG_DIR / "presets"

CONFIG_FILE = CONFIG_DIR / "config.yaml"
# --- End Paths ---

log = structlog.get_logger()  # module-level logger

# Characters used when dumping the grid to the console
BLOCK_CHARS: PyDict[BlockType, str] = {
    BlockType.EMPTY: ".",
    BlockType.EMPTY_RESERVED: ",",
    BlockType.HOOKABLE: "#",
    BlockType.FREEZE: "~",
    BlockType.SPAWN: "@",
    BlockType.START: "S",
    BlockType.FINISH: "F",
    BlockType.PLATFORM: "=",
}


# --- Config Loading Helpers ---
def load_yaml_config(config_path: Path, config_name: str) -> PyDict[str, Any]:
    """Loads a generic YAML configuration file."""
    if not config_path.is_file():
        log.error(f"{config_name} config file not found", path=str(config_path))
        raise FileNotFoundError(f"{config_name} configuration file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        log.error(
            f"Error parsing YAML for {config_name}",
            path=str(config_path),
            error=str(e),
            exc_info=True,
        )
        raise
    if config_data is None:
        log.warning(f"{config_name} config file is empty.", path=str(config_path))
        return {}
    log.info(f"{config_name} config loaded", path=str(config_path))
    return config_data

# --- End Config Loading ---


# --- Debug Map Printing ---
def render_map_section(
    level_map: LevelMap, center: Position, radius: int = 10
) -> list[str]:
    """Renders the cells within ``radius`` of ``center`` as text rows."""
    y_min = max(0, center.y - radius)
    y_max = min(level_map.height, center.y + radius + 1)
    x_min = max(0, center.x - radius)
    x_max = min(level_map.width, center.x + radius + 1)
    rows = []
    for y in range(y_min, y_max):
        row = ""
        for x in range(x_min, x_max):
            char = BLOCK_CHARS.get(BlockType(int(level_map.tiles[y, x])), "?")
            row += f"[{char}]" if (x, y) == tuple(center) else f" {char} "
        rows.append(f"{y:<4}|{row}")
    return rows


def print_map_section(level_map: LevelMap, center: Position, radius: int = 10) -> None:
    print(f"\n--- Map Section around ({center.x},{center.y}) ---")
    for row in render_map_section(level_map, center, radius):
        print(row)
    print("------------------------------------\n")


def summarize(result: GenerationResult) -> PyDict[str, Any]:
    """Block histogram and debug layer counts of a finished generation."""
    values, counts = np.unique(result.level_map.tiles, return_counts=True)
    return {
        "seed": result.seed,
        "steps": result.steps,
        "blocks": {BlockType(int(v)).name: int(c) for v, c in zip(values, counts)},
        "debug": result.debug_layers.counts(),
    }
# --- End Debug Map Printing ---


def main() -> int:
    """Headless driver: generate one map from the configured preset."""
    try:
        config = load_yaml_config(CONFIG_FILE, "Main")
    except (FileNotFoundError, yaml.YAMLError) as e:
        setup_logging()
        log.critical("Failed to load main config", error=str(e))
        return 1

    setup_logging(config.get("log_level", "INFO"))
    log.info("Application starting...", config_dir=str(CONFIG_DIR))

    try:
        presets = load_presets(PRESETS_DIR)
        preset_name: str = config.get("preset", "default")
        if preset_name not in presets:
            log.critical("Unknown preset", preset=preset_name, available=sorted(presets))
            return 1
        seed_cfg = config.get("seed")
        seed = int(time.time() * 1000) if seed_cfg is None else int(seed_cfg)
        max_steps = int(config.get("max_steps", DEFAULT_MAX_STEPS))

        log.info("Generating level", preset=preset_name, seed=seed)
        result = Generator.generate_map(seed, presets[preset_name], max_steps=max_steps)
    except FileNotFoundError as e:
        log.critical("Required file not found during init", error=str(e), exc_info=True)
        return 1
    except GenerationError as e:
        log.critical("Generation failed", error=str(e), exc_info=True)
        return 1

    print_map_section(
        result.level_map,
        presets[preset_name].spawn,
        radius=int(config.get("print_radius", 10)),
    )
    log.info("Generation summary", **summarize(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
