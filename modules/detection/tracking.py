"""
Hand tracking sources.

The pipeline pulls joints from a tracking source once per tick:

    source.is_available()              -> bool (subsystem running)
    source.try_get_entire_hand(hand)   -> list of HandJointPose, or None

ReplayTrackingSource plays back recorded joint streams so the detector can
run and be evaluated without live hand-tracking hardware.

Recording format (.npz):
    timestamps      (T,)        seconds, non-decreasing
    right_positions (T, J, 3)   optional, NaN rows = hand not tracked
    left_positions  (T, J, 3)   optional
    right_rotations (T, J, 4)   optional quaternions (x, y, z, w)
    left_rotations  (T, J, 4)   optional
"""

import os
import logging
from typing import Dict, List, Optional

import numpy as np

from core.types import Handedness, HandJointPose

logger = logging.getLogger(__name__)


class HandTrackingSource:
    """Interface for anything that can report hand joints per tick."""

    def is_available(self) -> bool:
        raise NotImplementedError

    def try_get_entire_hand(self, hand: Handedness) -> Optional[List[HandJointPose]]:
        raise NotImplementedError


class ReplayTrackingSource(HandTrackingSource):
    """Replays a recorded joint stream frame by frame."""

    def __init__(self, timestamps: np.ndarray, positions: Dict[Handedness, np.ndarray],
                 rotations: Optional[Dict[Handedness, np.ndarray]] = None,
                 startup_frames: int = 0):
        """
        Args:
            timestamps: (T,) capture times in seconds
            positions: per-hand (T, J, 3) arrays; NaN rows mean not tracked
            rotations: optional per-hand (T, J, 4) quaternion arrays
            startup_frames: number of ``step()`` calls before the source
                reports itself available (simulates a subsystem that
                starts after the detector)
        """
        self._timestamps = np.asarray(timestamps, dtype=np.float64)
        if self._timestamps.ndim != 1:
            raise ValueError("timestamps must be one-dimensional")
        if np.any(np.diff(self._timestamps) < 0):
            raise ValueError("timestamps must be non-decreasing")

        self._positions = {}
        for hand, array in positions.items():
            array = np.asarray(array, dtype=np.float32)
            if array.ndim != 3 or array.shape[0] != len(self._timestamps) or array.shape[2] != 3:
                raise ValueError(
                    "%s positions must be (T, J, 3) with T=%d, got %s"
                    % (hand.value, len(self._timestamps), array.shape)
                )
            self._positions[hand] = array

        self._rotations = {}
        for hand, array in (rotations or {}).items():
            if hand not in self._positions:
                raise ValueError("%s rotations given without positions" % hand.value)
            array = np.asarray(array, dtype=np.float32)
            expected = self._positions[hand].shape[:2] + (4,)
            if array.shape != expected:
                raise ValueError(
                    "%s rotations must be (T, J, 4) = %s, got %s"
                    % (hand.value, expected, array.shape)
                )
            self._rotations[hand] = array

        self._cursor = -1
        self._startup_frames = startup_frames

    @classmethod
    def from_file(cls, path: str, startup_frames: int = 0) -> "ReplayTrackingSource":
        """Load a recording written by ``save_recording``."""
        if not os.path.isfile(path):
            raise FileNotFoundError("Recording not found: %s" % path)

        with np.load(path) as data:
            timestamps = data["timestamps"]
            positions = {}
            rotations = {}
            for hand in Handedness:
                key = "%s_positions" % hand.value
                if key in data:
                    positions[hand] = data[key]
                key = "%s_rotations" % hand.value
                if key in data:
                    rotations[hand] = data[key]

        if not positions:
            raise ValueError("Recording %s contains no hand positions" % path)

        logger.info("Loaded recording %s (%d frames, hands: %s)", path, len(timestamps),
                    ", ".join(h.value for h in positions))
        return cls(timestamps, positions, rotations, startup_frames=startup_frames)

    def step(self) -> Optional[float]:
        """Advance to the next recorded frame.

        Returns:
            Seconds elapsed since the previous frame (0.0 for the first),
            or None once the recording is exhausted.
        """
        if self._cursor + 1 >= len(self._timestamps):
            return None
        self._cursor += 1
        if self._startup_frames > 0:
            self._startup_frames -= 1
        if self._cursor == 0:
            return 0.0
        return float(self._timestamps[self._cursor] - self._timestamps[self._cursor - 1])

    def is_available(self) -> bool:
        return self._startup_frames == 0 and self._cursor >= 0

    def try_get_entire_hand(self, hand: Handedness) -> Optional[List[HandJointPose]]:
        if not self.is_available() or hand not in self._positions:
            return None

        positions = self._positions[hand][self._cursor]
        if np.all(np.isnan(positions)):
            return None

        rotations = self._rotations.get(hand)
        joints = []
        for j, position in enumerate(positions):
            if rotations is not None:
                joints.append(HandJointPose(position, rotations[self._cursor, j]))
            else:
                joints.append(HandJointPose(position))
        return joints

    @property
    def frame_count(self) -> int:
        return len(self._timestamps)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor + 1 >= len(self._timestamps)

    def rewind(self):
        self._cursor = -1


def save_recording(path: str, timestamps, positions: Dict[Handedness, np.ndarray],
                   rotations: Optional[Dict[Handedness, np.ndarray]] = None):
    """Write a joint stream in the format ``ReplayTrackingSource`` reads."""
    arrays = {"timestamps": np.asarray(timestamps, dtype=np.float64)}
    for hand, array in positions.items():
        arrays["%s_positions" % hand.value] = np.asarray(array, dtype=np.float32)
    for hand, array in (rotations or {}).items():
        arrays["%s_rotations" % hand.value] = np.asarray(array, dtype=np.float32)

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    np.savez_compressed(path, **arrays)
    logger.info("Recording saved to %s (%d frames)", path, len(arrays["timestamps"]))
