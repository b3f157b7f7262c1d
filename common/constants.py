"""Common tile constants for level generation and export."""

# Game layer tile ids of the target map format
TILE_ID_AIR: int = 0
TILE_ID_HOOKABLE: int = 1
TILE_ID_FREEZE: int = 9
TILE_ID_START: int = 33
TILE_ID_FINISH: int = 34
TILE_ID_SPAWN: int = 192

# Edge length of the chunks used for dirty-region tracking
CHUNK_SIZE: int = 5

# Start/finish rooms
ROOM_SIZE: int = 4
ROOM_PLATFORM_MARGIN: int = 3

# Corner detection uses a centered 5x5 window
CORNER_WINDOW_RADIUS: int = 2
