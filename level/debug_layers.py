# level/debug_layers.py
from enum import Enum
from typing import Dict, Iterator, Tuple

import numpy as np


class DebugLayer(Enum):
    EDGE_BUGS = "edge_bugs"
    CORNERS = "corners"
    SKIPS = "skips"
    SKIPS_INVALID = "skips_invalid"
    BLOBS = "blobs"


class DebugLayers:
    """Boolean masks filled by the post-processing passes for visualization."""

    def __init__(self, width: int, height: int):
        self._masks: Dict[DebugLayer, np.ndarray] = {
            layer: np.zeros((height, width), dtype=bool) for layer in DebugLayer
        }

    def __getitem__(self, layer: DebugLayer) -> np.ndarray:
        return self._masks[layer]

    def __iter__(self) -> Iterator[Tuple[DebugLayer, np.ndarray]]:
        return iter(self._masks.items())

    def set_layer(self, layer: DebugLayer, mask: np.ndarray) -> None:
        target = self._masks[layer]
        if mask.shape != target.shape:
            raise ValueError(
                f"debug mask shape {mask.shape} does not match map {target.shape}"
            )
        target[...] = mask

    def counts(self) -> Dict[str, int]:
        return {layer.value: int(mask.sum()) for layer, mask in self._masks.items()}

    def clear(self) -> None:
        for mask in self._masks.values():
            mask.fill(False)
