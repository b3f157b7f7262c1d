import pytest
import yaml

from level.blocks import BlockType
from level.config import GenerationConfig
from level.generator import Generator
from level.level_map import LevelMap
from level.position import Position
from main import CONFIG_FILE, load_yaml_config, render_map_section, summarize


def test_load_main_config():
    config = load_yaml_config(CONFIG_FILE, "Main")
    assert config["preset"] == "default"
    assert "seed" in config


def test_load_yaml_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "missing.yaml", "Missing")
    broken = tmp_path / "broken.yaml"
    broken.write_text("a: [1\n")
    with pytest.raises(yaml.YAMLError):
        load_yaml_config(broken, "Broken")
    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    assert load_yaml_config(empty, "Empty") == {}


def test_render_map_section_marks_center():
    level_map = LevelMap(5, 5, fill=BlockType.HOOKABLE)
    level_map.set(Position(2, 2), BlockType.SPAWN)
    level_map.set(Position(3, 2), BlockType.FREEZE)
    rows = render_map_section(level_map, Position(2, 2), radius=1)
    assert len(rows) == 3
    assert rows[1] == "2   | # [@] ~ "


def test_render_map_section_clips_at_border():
    level_map = LevelMap(5, 5)
    rows = render_map_section(level_map, Position(0, 0), radius=2)
    assert len(rows) == 3
    assert rows[0].startswith("0   |[.]")


def test_summarize():
    config = GenerationConfig(
        width=80,
        height=60,
        spawn=Position(15, 45),
        waypoints=[Position(65, 45), Position(65, 15)],
        waypoint_reached_dist=5,
    )
    result = Generator.generate_map(5, config)
    summary = summarize(result)
    assert summary["seed"] == 5
    assert sum(summary["blocks"].values()) == 80 * 60
    assert summary["blocks"]["SPAWN"] == 1
    assert set(summary["debug"]) == {"edge_bugs", "corners", "skips", "skips_invalid", "blobs"}
