# level/errors.py
"""Exceptions raised by level generation.

Every failure of the generator is recoverable: callers catch
:class:`GenerationError` and may retry with another seed.
"""

from enum import Enum


class GenerationError(Exception):
    """Base class for all level generation failures."""


class OutOfBoundsError(GenerationError, IndexError):
    """A position or area lies outside the level grid."""


class InvalidConfigError(GenerationError, ValueError):
    """The generation config failed validation."""


class StepError(GenerationError):
    """A walker step could not be performed."""


class PostProcessingError(GenerationError):
    """A post-processing pass hit an internal inconsistency."""


class MaxStepsExceededError(GenerationError):
    """The walker did not finish within the allowed number of steps."""


class SkipRejection(Enum):
    OUT_OF_BOUNDS = "out_of_bounds"
    INVALID_SEQUENCE = "invalid_sequence"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"


class SkipScanAbort(GenerationError):
    """A corner candidate did not lead to a valid skip."""

    def __init__(self, reason: SkipRejection, length: int = 0) -> None:
        super().__init__(f"skip scan aborted: {reason.value} after {length} steps")
        self.reason = reason
        self.length = length
