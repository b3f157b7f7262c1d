# level/post_processing.py
"""
Post-processing passes run once the walker finished.

Every pass classifies cells against a snapshot of the grid taken before the
pass starts and only writes afterwards, so results never depend on scan
order. Pass order (see :func:`post_process`):

1. edge-bug fix: freeze buffer between empty and hookable cells
2. start/finish rooms
3. distance-based fill of large open areas
4. corner detection and skip (shortcut) synthesis
5. removal of freeze blobs not attached to any hookable block
"""

import math
import time
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

import numba
import numpy as np
import structlog
from scipy import ndimage

from common.constants import CORNER_WINDOW_RADIUS, ROOM_PLATFORM_MARGIN, ROOM_SIZE
from level.blocks import GAME_TILE_LUT, BlockType, GameTile, Overwrite
from level.debug_layers import DebugLayer, DebugLayers
from level.errors import PostProcessingError, SkipRejection, SkipScanAbort
from level.level_map import LevelMap
from level.position import Direction, Position

if TYPE_CHECKING:  # pragma: no cover
    from level.config import GenerationConfig
    from level.walker import CuteWalker

log = structlog.get_logger(__name__)

# --- Corner templates ---
# Five (dx, dy) offsets per template, relative to the candidate cell. Every
# offset must be freeze for the template to match. Two templates per
# direction, one for each turning sense of the corner.
CORNER_TEMPLATES: Tuple[Tuple[Direction, Tuple[Tuple[int, int], ...]], ...] = (
    (Direction.RIGHT, ((0, 1), (1, -2), (1, -1), (1, 0), (1, 1))),
    (Direction.RIGHT, ((0, -1), (1, -1), (1, 0), (1, 1), (1, 2))),
    (Direction.LEFT, ((0, 1), (-1, -2), (-1, -1), (-1, 0), (-1, 1))),
    (Direction.LEFT, ((0, -1), (-1, -1), (-1, 0), (-1, 1), (-1, 2))),
    (Direction.UP, ((1, 0), (-2, -1), (-1, -1), (0, -1), (1, -1))),
    (Direction.UP, ((-1, 0), (-1, -1), (0, -1), (1, -1), (2, -1))),
    (Direction.DOWN, ((1, 0), (-2, 1), (-1, 1), (0, 1), (1, 1))),
    (Direction.DOWN, ((-1, 0), (-1, 1), (0, 1), (1, 1), (2, 1))),
)

# 8-neighbourhood without the center
_RING = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=bool)


@dataclass(frozen=True)
class Corner:
    pos: Position
    direction: Direction


@dataclass(frozen=True)
class Skip:
    start: Position
    end: Position
    length: int
    direction: Direction

    def endpoints(self) -> Tuple[Position, Position]:
        return self.start, self.end


# --- Edge bugs ---
def find_edge_bugs(level_map: LevelMap) -> np.ndarray:
    """Mask of empty cells with at least one hookable 8-neighbour."""
    hookable = level_map.tiles == int(BlockType.HOOKABLE)
    near_hookable = ndimage.binary_dilation(hookable, structure=_RING, border_value=0)
    return near_hookable & (level_map.tiles == int(BlockType.EMPTY))


def fix_edge_bugs(level_map: LevelMap) -> np.ndarray:
    """Turns every edge bug into freeze. Returns the mask of fixed cells."""
    edge_bugs = find_edge_bugs(level_map)
    count = level_map.set_mask(edge_bugs, BlockType.FREEZE)
    log.debug("Edge bugs fixed", count=count)
    return edge_bugs


# --- Rooms ---
def place_rooms(level_map: LevelMap, spawn: Position, finish: Position) -> None:
    """Start room (with spawn tile) at ``spawn``, finish room at ``finish``."""
    level_map.generate_room(spawn, ROOM_SIZE, ROOM_PLATFORM_MARGIN, BlockType.START)
    level_map.set(spawn, BlockType.SPAWN)
    level_map.generate_room(finish, ROOM_SIZE, ROOM_PLATFORM_MARGIN, BlockType.FINISH)


# --- Distance fill ---
def fill_open_areas(level_map: LevelMap, max_distance: float) -> np.ndarray:
    """
    Fills empty cells that are too far away from any non-empty cell.

    Cells farther than ``max_distance + sqrt(2)`` become hookable, the band
    in between becomes freeze so new solids keep their buffer. Returns the
    distance of every cell to the nearest non-empty cell, computed before
    filling.
    """
    empty = level_map.tiles == int(BlockType.EMPTY)
    if empty.all():
        # nothing to measure against, every cell is infinitely far away
        distance = np.full(empty.shape, np.inf)
    else:
        distance = ndimage.distance_transform_edt(empty)

    hookable_threshold = max_distance + math.sqrt(2)
    to_hookable = empty & (distance > hookable_threshold)
    to_freeze = empty & (distance > max_distance) & ~to_hookable

    hookable = level_map.set_mask(to_hookable, BlockType.HOOKABLE)
    freeze = level_map.set_mask(to_freeze, BlockType.FREEZE)
    log.debug(
        "Open areas filled", max_distance=max_distance, hookable=hookable, freeze=freeze
    )
    return distance


# --- Corners & skips ---
def find_corners(level_map: LevelMap) -> List[Corner]:
    """
    All corner candidates, ordered by row, column and template.

    Only cells whose whole 5x5 window lies inside the map are considered.
    """
    window = CORNER_WINDOW_RADIUS
    height, width = level_map.height, level_map.width
    if width <= 2 * window or height <= 2 * window:
        return []

    categories = GAME_TILE_LUT[level_map.tiles]
    freeze = categories == int(GameTile.FREEZE)
    y_inner = slice(window, height - window)
    x_inner = slice(window, width - window)
    center_empty = categories[y_inner, x_inner] == int(GameTile.EMPTY)

    hits_y, hits_x, hits_template = [], [], []
    for template_index, (_, offsets) in enumerate(CORNER_TEMPLATES):
        match = center_empty.copy()
        for dx, dy in offsets:
            match &= freeze[
                window + dy : height - window + dy, window + dx : width - window + dx
            ]
        ys, xs = np.nonzero(match)
        hits_y.append(ys + window)
        hits_x.append(xs + window)
        hits_template.append(np.full(ys.shape, template_index))

    ys = np.concatenate(hits_y)
    xs = np.concatenate(hits_x)
    templates = np.concatenate(hits_template)
    order = np.lexsort((templates, xs, ys))

    corners: List[Corner] = []
    seen = set()
    for i in order:
        corner = Corner(Position(int(xs[i]), int(ys[i])), CORNER_TEMPLATES[templates[i]][0])
        # both templates of a direction can match the same cell
        if corner not in seen:
            seen.add(corner)
            corners.append(corner)
    return corners


_SKIP_TRANSITIONS: Dict[Tuple[int, BlockType], int] = {
    (0, BlockType.FREEZE): 1,
    (1, BlockType.FREEZE): 1,
    (1, BlockType.HOOKABLE): 2,
    (2, BlockType.HOOKABLE): 2,
    (2, BlockType.FREEZE): 3,
    (3, BlockType.FREEZE): 3,
    (3, BlockType.EMPTY): 4,
}
_SKIP_ACCEPT = 4


def check_corner_skip(
    level_map: LevelMap,
    start: Position,
    direction: Direction,
    length_bounds: Tuple[int, int],
) -> Skip:
    """
    Walks from a corner through freeze, hookable, freeze into empty space.

    Raises :class:`SkipScanAbort` carrying the rejection reason if the walk
    leaves the map, hits an unexpected block, or ends outside of the
    inclusive ``length_bounds``.
    """
    min_length, max_length = length_bounds
    pos = start
    stage = 0
    length = 0
    while stage != _SKIP_ACCEPT:
        if length >= max_length:
            raise SkipScanAbort(SkipRejection.TOO_LONG, length)
        pos = pos.shifted(direction)
        if not level_map.pos_in_bounds(pos):
            raise SkipScanAbort(SkipRejection.OUT_OF_BOUNDS, length)
        block = BlockType(int(level_map.tiles[pos.y, pos.x]))
        next_stage = _SKIP_TRANSITIONS.get((stage, block))
        if next_stage is None:
            raise SkipScanAbort(SkipRejection.INVALID_SEQUENCE, length)
        stage = next_stage
        length += 1

    if length < min_length:
        raise SkipScanAbort(SkipRejection.TOO_SHORT, length)
    return Skip(start, pos, length, direction)


def select_skips(skips: Sequence[Skip], min_spacing_sqr: int) -> Tuple[List[Skip], List[Skip]]:
    """
    Greedy non-overlapping selection, shortest skips first.

    A skip is rejected if any of its endpoints lies closer than
    ``sqrt(min_spacing_sqr)`` to an endpoint of an already accepted skip.
    Returns ``(accepted, rejected)``.
    """
    accepted: List[Skip] = []
    rejected: List[Skip] = []
    for skip in sorted(skips, key=lambda s: s.length):
        too_close = any(
            own.distance_squared(other) < min_spacing_sqr
            for kept in accepted
            for own in skip.endpoints()
            for other in kept.endpoints()
        )
        if too_close:
            rejected.append(skip)
        else:
            accepted.append(skip)
    return accepted, rejected


def generate_skip(level_map: LevelMap, skip: Skip) -> None:
    """Clears the skip tunnel and lines both sides of it with freeze."""
    top_left, bot_right = Position.bounding_box(skip.start, skip.end)
    level_map.set_area(top_left, bot_right, BlockType.EMPTY, Overwrite.REPLACE_SOLID_FREEZE)

    if skip.direction.is_horizontal:
        sides = ((0, -1), (0, 1))
    else:
        sides = ((-1, 0), (1, 0))
    for dx, dy in sides:
        placed = level_map.set_area(
            top_left.shifted_by(dx, dy),
            bot_right.shifted_by(dx, dy),
            BlockType.FREEZE,
            Overwrite.REPLACE_SOLID_ONLY,
        )
        if not placed:
            log.error("Skip border out of bounds", start=tuple(skip.start), end=tuple(skip.end))
            raise PostProcessingError(
                f"skip border from {tuple(skip.start)} to {tuple(skip.end)} leaves the map"
            )


def generate_all_skips(
    level_map: LevelMap,
    length_bounds: Tuple[int, int],
    min_spacing_sqr: int,
    debug_layers: DebugLayers,
) -> List[Skip]:
    """Detects, selects and carves skips. Returns the accepted ones."""
    corners = find_corners(level_map)

    candidates: List[Skip] = []
    rejections: Counter = Counter()
    for corner in corners:
        try:
            candidates.append(
                check_corner_skip(level_map, corner.pos, corner.direction, length_bounds)
            )
        except SkipScanAbort as abort:
            rejections[abort.reason.value] += 1

    accepted, rejected = select_skips(candidates, min_spacing_sqr)
    for skip in accepted:
        generate_skip(level_map, skip)

    corner_mask = np.zeros(level_map.tiles.shape, dtype=bool)
    for corner in corners:
        corner_mask[corner.pos.y, corner.pos.x] = True
    debug_layers.set_layer(DebugLayer.CORNERS, corner_mask)
    debug_layers.set_layer(DebugLayer.SKIPS, _endpoint_mask(level_map, accepted))
    debug_layers.set_layer(DebugLayer.SKIPS_INVALID, _endpoint_mask(level_map, rejected))

    log.debug(
        "Skips generated",
        corners=len(corners),
        candidates=len(candidates),
        accepted=len(accepted),
        rejected=len(rejected),
        aborted=dict(rejections),
    )
    return accepted


def _endpoint_mask(level_map: LevelMap, skips: Sequence[Skip]) -> np.ndarray:
    mask = np.zeros(level_map.tiles.shape, dtype=bool)
    for skip in skips:
        for pos in skip.endpoints():
            mask[pos.y, pos.x] = True
    return mask


# --- Freeze blobs ---
_FREEZE = int(BlockType.FREEZE)
_HOOKABLE = int(BlockType.HOOKABLE)
_PLATFORM = int(BlockType.PLATFORM)


@numba.njit(cache=True)
def _touches_solid(tiles: np.ndarray, y: int, x: int) -> bool:
    height, width = tiles.shape
    for dy in range(-1, 2):
        for dx in range(-1, 2):
            if dx == 0 and dy == 0:
                continue
            ny = y + dy
            nx = x + dx
            if 0 <= ny < height and 0 <= nx < width:
                value = tiles[ny, nx]
                if value == _HOOKABLE or value == _PLATFORM:
                    return True
    return False


@numba.njit(cache=True)
def _find_blobs_numba(tiles: np.ndarray) -> np.ndarray:
    """Iterative flood fill over 4-connected freeze components."""
    height, width = tiles.shape
    visited = np.zeros((height, width), dtype=np.bool_)
    blobs = np.zeros((height, width), dtype=np.bool_)
    # every cell is pushed at most once, so h*w slots always suffice
    stack_y = np.empty(height * width, dtype=np.int64)
    stack_x = np.empty(height * width, dtype=np.int64)
    component_y = np.empty(height * width, dtype=np.int64)
    component_x = np.empty(height * width, dtype=np.int64)
    neighbours = ((0, -1), (1, 0), (0, 1), (-1, 0))

    for start_y in range(height):
        for start_x in range(width):
            if tiles[start_y, start_x] != _FREEZE or visited[start_y, start_x]:
                continue

            size = 0
            connected = False
            stack_y[0] = start_y
            stack_x[0] = start_x
            top = 1
            visited[start_y, start_x] = True

            while top > 0:
                top -= 1
                y = stack_y[top]
                x = stack_x[top]
                component_y[size] = y
                component_x[size] = x
                size += 1
                if not connected and _touches_solid(tiles, y, x):
                    connected = True

                for dx, dy in neighbours:
                    ny = y + dy
                    nx = x + dx
                    if 0 <= ny < height and 0 <= nx < width:
                        if tiles[ny, nx] == _FREEZE and not visited[ny, nx]:
                            visited[ny, nx] = True
                            stack_y[top] = ny
                            stack_x[top] = nx
                            top += 1

            if not connected:
                for i in range(size):
                    blobs[component_y[i], component_x[i]] = True
    return blobs


def find_freeze_blobs(level_map: LevelMap) -> np.ndarray:
    """Mask of freeze components that do not touch any hookable block."""
    return _find_blobs_numba(level_map.tiles)


def remove_freeze_blobs(level_map: LevelMap) -> np.ndarray:
    blobs = find_freeze_blobs(level_map)
    cells = level_map.set_mask(blobs, BlockType.EMPTY)
    log.debug("Freeze blobs removed", cells=cells)
    return blobs


# --- Pipeline ---
def post_process(
    level_map: LevelMap,
    walker: "CuteWalker",
    config: "GenerationConfig",
    debug_layers: DebugLayers,
) -> Dict[str, float]:
    """
    Runs every pass in order and returns the duration of each in seconds.
    """
    timings: Dict[str, float] = {}

    start = time.perf_counter()
    debug_layers.set_layer(DebugLayer.EDGE_BUGS, fix_edge_bugs(level_map))
    timings["edge_bugs"] = time.perf_counter() - start

    start = time.perf_counter()
    place_rooms(level_map, config.spawn, walker.pos)
    timings["rooms"] = time.perf_counter() - start

    start = time.perf_counter()
    fill_open_areas(level_map, config.max_distance)
    timings["fill"] = time.perf_counter() - start

    start = time.perf_counter()
    generate_all_skips(
        level_map, config.skip_length_bounds, config.skip_min_spacing_sqr, debug_layers
    )
    timings["skips"] = time.perf_counter() - start

    start = time.perf_counter()
    debug_layers.set_layer(DebugLayer.BLOBS, remove_freeze_blobs(level_map))
    timings["blobs"] = time.perf_counter() - start

    log.info(
        "Post processing finished",
        **{f"{name}_ms": round(seconds * 1000, 2) for name, seconds in timings.items()},
    )
    return timings
