# level/blocks.py
"""Block values stored in the level grid and their derived categories."""

from enum import Enum, IntEnum
from typing import Final, FrozenSet

import numpy as np

from common.constants import (
    TILE_ID_AIR,
    TILE_ID_FINISH,
    TILE_ID_FREEZE,
    TILE_ID_HOOKABLE,
    TILE_ID_SPAWN,
    TILE_ID_START,
)


class BlockType(IntEnum):
    EMPTY = 0
    # Empty block that must not be overwritten by later passes
    EMPTY_RESERVED = 1
    HOOKABLE = 2
    FREEZE = 3
    SPAWN = 4
    START = 5
    FINISH = 6
    PLATFORM = 7


class GameTile(IntEnum):
    """Gameplay category shared by several block values."""

    HOOKABLE = 0
    FREEZE = 1
    EMPTY = 2


_INGAME_IDS: Final[dict[BlockType, int]] = {
    BlockType.EMPTY: TILE_ID_AIR,
    BlockType.EMPTY_RESERVED: TILE_ID_AIR,
    BlockType.HOOKABLE: TILE_ID_HOOKABLE,
    BlockType.PLATFORM: TILE_ID_HOOKABLE,
    BlockType.FREEZE: TILE_ID_FREEZE,
    BlockType.SPAWN: TILE_ID_SPAWN,
    BlockType.START: TILE_ID_START,
    BlockType.FINISH: TILE_ID_FINISH,
}

_GAME_TILES: Final[dict[BlockType, GameTile]] = {
    BlockType.HOOKABLE: GameTile.HOOKABLE,
    BlockType.PLATFORM: GameTile.HOOKABLE,
    BlockType.FREEZE: GameTile.FREEZE,
    # every other block behaves like air
    BlockType.EMPTY: GameTile.EMPTY,
    BlockType.EMPTY_RESERVED: GameTile.EMPTY,
    BlockType.SPAWN: GameTile.EMPTY,
    BlockType.START: GameTile.EMPTY,
    BlockType.FINISH: GameTile.EMPTY,
}

# Lookup tables indexed by block value, for whole-array conversions
INGAME_ID_LUT: Final[np.ndarray] = np.array(
    [_INGAME_IDS[block] for block in BlockType], dtype=np.uint8
)
GAME_TILE_LUT: Final[np.ndarray] = np.array(
    [_GAME_TILES[block] for block in BlockType], dtype=np.uint8
)


def to_ingame_id(block: BlockType) -> int:
    """Tile id used by the export layer for ``block``."""
    return _INGAME_IDS[BlockType(block)]


def to_game_tile(block: BlockType) -> GameTile:
    return _GAME_TILES[BlockType(block)]


def is_solid(block: BlockType) -> bool:
    return to_game_tile(block) == GameTile.HOOKABLE


class Overwrite(Enum):
    """Rule deciding which existing blocks a write may replace."""

    FORCE = "force"
    REPLACE_SOLID_FREEZE = "replace_solid_freeze"
    REPLACE_SOLID_ONLY = "replace_solid_only"
    REPLACE_EMPTY_ONLY = "replace_empty_only"
    REPLACE_NON_SOLID = "replace_non_solid"
    REPLACE_NON_SOLID_FORCE = "replace_non_solid_force"

    @property
    def replaceable(self) -> FrozenSet[BlockType]:
        return _OVERWRITE_TABLE[self]

    def will_overwrite(self, block: BlockType) -> bool:
        return BlockType(block) in _OVERWRITE_TABLE[self]

    def mask(self, tiles: np.ndarray) -> np.ndarray:
        """Boolean mask of the cells in ``tiles`` this rule may replace."""
        if self is Overwrite.FORCE:
            return np.ones(tiles.shape, dtype=bool)
        return np.isin(tiles, [int(block) for block in _OVERWRITE_TABLE[self]])


_OVERWRITE_TABLE: Final[dict[Overwrite, FrozenSet[BlockType]]] = {
    Overwrite.FORCE: frozenset(BlockType),
    Overwrite.REPLACE_SOLID_FREEZE: frozenset({BlockType.HOOKABLE, BlockType.FREEZE}),
    Overwrite.REPLACE_SOLID_ONLY: frozenset({BlockType.HOOKABLE}),
    Overwrite.REPLACE_EMPTY_ONLY: frozenset({BlockType.EMPTY}),
    Overwrite.REPLACE_NON_SOLID: frozenset({BlockType.FREEZE, BlockType.EMPTY}),
    Overwrite.REPLACE_NON_SOLID_FORCE: frozenset(
        {BlockType.FREEZE, BlockType.EMPTY, BlockType.EMPTY_RESERVED}
    ),
}
