# level/level_map.py
from enum import Enum
from typing import Collection, List, Optional, Tuple, Union

import numpy as np
import structlog

from common.constants import CHUNK_SIZE
from level.blocks import GAME_TILE_LUT, INGAME_ID_LUT, BlockType, GameTile, Overwrite
from level.errors import OutOfBoundsError
from level.kernel import Kernel
from level.position import Position

log = structlog.get_logger(__name__)

# Blocks the walker kernels are allowed to carve
_CARVABLE: Tuple[int, int] = (int(BlockType.HOOKABLE), int(BlockType.FREEZE))

AreaPredicate = Union[BlockType, GameTile, Collection[BlockType]]


class AreaQuery(Enum):
    ANY = "any"
    ALL = "all"
    COUNT = "count"


class LevelMap:
    def __init__(
        self,
        width: int,
        height: int,
        fill: BlockType = BlockType.EMPTY,
        chunk_size: int = CHUNK_SIZE,
    ):
        """
        Initializes the level grid and the dirty-chunk bitmap.
        """
        if width <= 0 or height <= 0:
            log.error("Invalid map dimensions", width=width, height=height)
            raise ValueError("Map width and height must be positive integers.")
        if chunk_size <= 0:
            raise ValueError("Chunk size must be a positive integer.")
        self._width = width
        self._height = height
        self.chunk_size = chunk_size

        # Block values, indexed [y, x]
        self.tiles: np.ndarray = np.full(
            (height, width), fill_value=int(fill), dtype=np.uint8, order="C"
        )
        # Chunks touched by any write since the last take_dirty_chunks()
        self.chunks_edited: np.ndarray = np.zeros(
            (-(-height // chunk_size), -(-width // chunk_size)), dtype=bool, order="C"
        )
        log.debug("LevelMap initialized", width=width, height=height, fill=fill.name)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def in_bounds(self, x: int, y: int) -> bool:
        """Checks if the given coordinates are within the map boundaries."""
        return 0 <= x < self._width and 0 <= y < self._height

    def pos_in_bounds(self, pos: Position) -> bool:
        return self.in_bounds(pos.x, pos.y)

    def get(self, pos: Position) -> BlockType:
        if not self.pos_in_bounds(pos):
            raise OutOfBoundsError(f"position {tuple(pos)} out of bounds")
        return BlockType(int(self.tiles[pos.y, pos.x]))

    def set(self, pos: Position, value: BlockType) -> None:
        if not self.pos_in_bounds(pos):
            raise OutOfBoundsError(f"position {tuple(pos)} out of bounds")
        self.tiles[pos.y, pos.x] = int(value)
        self.chunks_edited[pos.y // self.chunk_size, pos.x // self.chunk_size] = True

    def game_tiles(self) -> np.ndarray:
        """Gameplay category (:class:`GameTile`) of every cell."""
        return GAME_TILE_LUT[self.tiles]

    def ingame_ids(self) -> np.ndarray:
        """Export tile id of every cell."""
        return INGAME_ID_LUT[self.tiles]

    # --- Dirty chunk tracking ---
    def _mark_dirty(self, ys: np.ndarray, xs: np.ndarray) -> None:
        if ys.size:
            self.chunks_edited[ys // self.chunk_size, xs // self.chunk_size] = True

    def take_dirty_chunks(self) -> List[Tuple[int, int]]:
        """Returns ``(chunk_x, chunk_y)`` of all edited chunks and resets them."""
        chunk_ys, chunk_xs = np.nonzero(self.chunks_edited)
        dirty = [(int(cx), int(cy)) for cy, cx in zip(chunk_ys, chunk_xs)]
        self.chunks_edited.fill(False)
        return dirty

    def set_mask(self, mask: np.ndarray, value: BlockType) -> int:
        """Writes ``value`` wherever ``mask`` is set. Returns the cell count."""
        ys, xs = np.nonzero(mask)
        self.tiles[ys, xs] = int(value)
        self._mark_dirty(ys, xs)
        return int(ys.size)

    # --- Kernel application ---
    def apply_kernel(self, pos: Position, kernel: Kernel, block_type: BlockType) -> bool:
        """
        Writes ``block_type`` to every active kernel cell around ``pos`` that
        currently holds a hookable or freeze block.

        Returns False without touching the grid if the kernel footprint does
        not fit into the map.
        """
        offset = kernel.offset
        extend = kernel.size - offset
        if (
            pos.x < offset
            or pos.y < offset
            or pos.x + extend > self._width
            or pos.y + extend > self._height
        ):
            log.debug("Kernel out of bounds", pos=tuple(pos), size=kernel.size)
            return False

        y0 = pos.y - offset
        x0 = pos.x - offset
        view = self.tiles[y0 : y0 + kernel.size, x0 : x0 + kernel.size]
        changed = kernel.vector & np.isin(view, _CARVABLE) & (view != int(block_type))
        view[changed] = int(block_type)

        ys, xs = np.nonzero(changed)
        self._mark_dirty(ys + y0, xs + x0)
        return True

    # --- Area queries ---
    def _area_slices(
        self, top_left: Position, bot_right: Position
    ) -> Optional[Tuple[slice, slice]]:
        if not self.pos_in_bounds(top_left) or not self.pos_in_bounds(bot_right):
            return None
        return (
            slice(top_left.y, bot_right.y + 1),
            slice(top_left.x, bot_right.x + 1),
        )

    @staticmethod
    def _match(area: np.ndarray, predicate: AreaPredicate) -> np.ndarray:
        if isinstance(predicate, GameTile):
            return GAME_TILE_LUT[area] == int(predicate)
        if isinstance(predicate, BlockType):
            return area == int(predicate)
        return np.isin(area, [int(block) for block in predicate])

    def area_query(
        self,
        top_left: Position,
        bot_right: Position,
        predicate: AreaPredicate,
        mode: AreaQuery = AreaQuery.ANY,
    ) -> Union[bool, int]:
        """
        Scans the inclusive rectangle for cells matching ``predicate``.

        ``predicate`` is a block value, a gameplay category or a collection of
        block values. Raises :class:`OutOfBoundsError` if a corner lies outside
        the map.
        """
        slices = self._area_slices(top_left, bot_right)
        if slices is None:
            log.debug(
                "Area query out of bounds",
                top_left=tuple(top_left),
                bot_right=tuple(bot_right),
            )
            raise OutOfBoundsError("checking area out of bounds")
        matches = self._match(self.tiles[slices], predicate)
        if mode is AreaQuery.ALL:
            return bool(matches.all())
        if mode is AreaQuery.COUNT:
            return int(np.count_nonzero(matches))
        return bool(matches.any())

    def check_area_exists(
        self, top_left: Position, bot_right: Position, predicate: AreaPredicate
    ) -> bool:
        return self.area_query(top_left, bot_right, predicate, AreaQuery.ANY)

    def check_area_all(
        self, top_left: Position, bot_right: Position, predicate: AreaPredicate
    ) -> bool:
        return self.area_query(top_left, bot_right, predicate, AreaQuery.ALL)

    def count_occurrence_in_area(
        self, top_left: Position, bot_right: Position, predicate: AreaPredicate
    ) -> int:
        return self.area_query(top_left, bot_right, predicate, AreaQuery.COUNT)

    # --- Area mutation ---
    def set_area(
        self,
        top_left: Position,
        bot_right: Position,
        value: BlockType,
        overwrite: Overwrite,
    ) -> bool:
        """
        Writes ``value`` to every cell of the inclusive rectangle that
        ``overwrite`` permits. Out-of-bounds corners make this a no-op and
        return False.
        """
        slices = self._area_slices(top_left, bot_right)
        if slices is None:
            log.debug(
                "Ignoring out of bounds area",
                top_left=tuple(top_left),
                bot_right=tuple(bot_right),
            )
            return False
        view = self.tiles[slices]
        allowed = overwrite.mask(view)
        view[allowed] = int(value)

        ys, xs = np.nonzero(allowed)
        self._mark_dirty(ys + slices[0].start, xs + slices[1].start)
        return True

    def set_area_border(
        self,
        top_left: Position,
        bot_right: Position,
        value: BlockType,
        overwrite: Overwrite,
    ) -> bool:
        """Sets the one cell thick outline of the rectangle."""
        top_right = Position(bot_right.x, top_left.y)
        bot_left = Position(top_left.x, bot_right.y)

        results = [
            self.set_area(top_left, top_right, value, overwrite),
            self.set_area(top_right, bot_right, value, overwrite),
            self.set_area(top_left, bot_left, value, overwrite),
            self.set_area(bot_left, bot_right, value, overwrite),
        ]
        return all(results)

    def generate_room(
        self,
        pos: Position,
        room_size: int,
        platform_margin: int,
        zone_type: Optional[BlockType] = None,
    ) -> None:
        """
        Carves a square room of radius ``room_size`` centered at ``pos``.

        The room gets a freeze outline, an empty interior with a reserved core,
        an optional ring of ``zone_type`` tiles (start/finish line) and a
        platform along its floor.
        """
        if room_size < 2 or platform_margin < 0 or platform_margin > room_size - 1:
            raise ValueError(
                f"invalid room dimensions: size={room_size}, margin={platform_margin}"
            )
        top_left = pos.shifted_by(-room_size, -room_size)
        bot_right = pos.shifted_by(room_size, room_size)
        if not self.pos_in_bounds(top_left) or not self.pos_in_bounds(bot_right):
            log.error(
                "Room does not fit into map", pos=tuple(pos), room_size=room_size
            )
            raise OutOfBoundsError(f"room at {tuple(pos)} out of bounds")

        inner = room_size - 1
        core = room_size - 2
        self.set_area_border(top_left, bot_right, BlockType.FREEZE, Overwrite.REPLACE_NON_SOLID)
        self.set_area(
            pos.shifted_by(-inner, -inner),
            pos.shifted_by(inner, inner),
            BlockType.EMPTY,
            Overwrite.FORCE,
        )
        self.set_area(
            pos.shifted_by(-core, -core),
            pos.shifted_by(core, core),
            BlockType.EMPTY_RESERVED,
            Overwrite.FORCE,
        )
        if zone_type is not None:
            self.set_area_border(
                pos.shifted_by(-inner, -inner),
                pos.shifted_by(inner, inner),
                zone_type,
                Overwrite.REPLACE_EMPTY_ONLY,
            )
        self.set_area(
            pos.shifted_by(-platform_margin, inner),
            pos.shifted_by(platform_margin, inner),
            BlockType.PLATFORM,
            Overwrite.FORCE,
        )
        log.debug(
            "Room generated",
            pos=tuple(pos),
            room_size=room_size,
            zone=zone_type.name if zone_type is not None else None,
        )
