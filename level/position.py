# level/position.py
from enum import IntEnum
from typing import Final, NamedTuple, Tuple


class Direction(IntEnum):
    """Cardinal shift direction. ``y`` grows downwards."""

    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3

    @property
    def delta(self) -> Tuple[int, int]:
        return DIRECTION_DELTAS[self]

    @property
    def is_horizontal(self) -> bool:
        return self in (Direction.LEFT, Direction.RIGHT)


DIRECTION_DELTAS: Final[dict[Direction, Tuple[int, int]]] = {
    Direction.UP: (0, -1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
}


class Position(NamedTuple):
    """A cell on the level grid."""

    x: int
    y: int

    def shifted_by(self, dx: int, dy: int) -> "Position":
        return Position(self.x + dx, self.y + dy)

    def shifted(self, direction: Direction) -> "Position":
        dx, dy = DIRECTION_DELTAS[direction]
        return Position(self.x + dx, self.y + dy)

    def distance_squared(self, other: "Position") -> int:
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy

    @classmethod
    def bounding_box(cls, a: "Position", b: "Position") -> Tuple["Position", "Position"]:
        """Top-left and bottom-right corner of the rectangle spanned by a and b."""
        return (
            cls(min(a.x, b.x), min(a.y, b.y)),
            cls(max(a.x, b.x), max(a.y, b.y)),
        )
