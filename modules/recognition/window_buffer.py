"""
Sliding Window Buffer
=====================

Fixed-capacity, most-recent-first buffer of displacement frames.
Index 0 is always the newest frame.
"""

import logging
from dataclasses import dataclass
from collections import deque
from typing import Deque, List

import numpy as np

logger = logging.getLogger(__name__)


class WindowOverflowError(Exception):
    """A frame was pushed onto an already full window."""


@dataclass
class WindowConfig:
    """Window configuration settings."""
    size: int = 11

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError(f"window size must be positive, got {self.size}")

    @classmethod
    def from_dict(cls, config: dict) -> "WindowConfig":
        """Create config from dictionary."""
        return cls(size=int(config.get("size", 11)))


class SlidingWindowBuffer:
    """
    Most-recent-first window of displacement frames.

    Length only grows through ``push_front`` and only shrinks through
    ``evict_oldest`` or ``clear``, so it always stays within [0, capacity].

    Example:
        >>> window = SlidingWindowBuffer(capacity=11, joint_count=26)
        >>> window.push_front(frame)
        >>> if window.is_full():
        ...     classify(window)
        ...     window.evict_oldest()
    """

    def __init__(self, capacity: int = 11, joint_count: int = 26):
        if capacity <= 0:
            raise ValueError(f"window capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._frame_shape = (joint_count, 3)
        self._frames: Deque[np.ndarray] = deque()

    def push_front(self, frame: np.ndarray) -> None:
        """Insert ``frame`` as the newest entry (index 0)."""
        frame = np.asarray(frame, dtype=np.float32)
        if frame.shape != self._frame_shape:
            raise ValueError(
                f"expected frame of shape {self._frame_shape}, got {frame.shape}"
            )
        if len(self._frames) >= self._capacity:
            raise WindowOverflowError(
                f"window already holds {self._capacity} frames; classify and evict first"
            )
        self._frames.appendleft(frame)

    def evict_oldest(self) -> np.ndarray:
        """Remove and return the oldest frame (highest index)."""
        if not self._frames:
            raise IndexError("evict_oldest on an empty window")
        return self._frames.pop()

    def clear(self) -> None:
        self._frames.clear()

    def is_full(self) -> bool:
        return len(self._frames) == self._capacity

    def frames(self) -> List[np.ndarray]:
        """Frames newest-first."""
        return list(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __getitem__(self, index: int) -> np.ndarray:
        return self._frames[index]

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def joint_count(self) -> int:
        return self._frame_shape[0]

    @property
    def fill(self) -> float:
        """How full the window is (0.0 - 1.0)."""
        return len(self._frames) / self._capacity
