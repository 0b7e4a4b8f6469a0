"""
Shared domain types for the not-ok gesture guard.

Centralizes enums, data classes, and type definitions used across modules
to eliminate circular imports and ensure type consistency.
"""

import time
from enum import Enum, IntEnum
from typing import Optional, Sequence
import numpy as np


# =============================================================================
# Hand / Joint Types
# =============================================================================

class Handedness(Enum):
    """Which hand a pipeline instance follows."""
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def from_string(cls, name: str) -> 'Handedness':
        """Convert a config string to Handedness. Raises ValueError on unknown names."""
        return cls(name.strip().lower())


class JointIndex(IntEnum):
    """Canonical order of the 26 tracked hand joints.

    The classifier was trained against this exact ordering; the sampler
    emits positions in this order and never reorders them.
    """
    PALM = 0
    WRIST = 1
    THUMB_METACARPAL = 2
    THUMB_PROXIMAL = 3
    THUMB_DISTAL = 4
    THUMB_TIP = 5
    INDEX_METACARPAL = 6
    INDEX_PROXIMAL = 7
    INDEX_INTERMEDIATE = 8
    INDEX_DISTAL = 9
    INDEX_TIP = 10
    MIDDLE_METACARPAL = 11
    MIDDLE_PROXIMAL = 12
    MIDDLE_INTERMEDIATE = 13
    MIDDLE_DISTAL = 14
    MIDDLE_TIP = 15
    RING_METACARPAL = 16
    RING_PROXIMAL = 17
    RING_INTERMEDIATE = 18
    RING_DISTAL = 19
    RING_TIP = 20
    LITTLE_METACARPAL = 21
    LITTLE_PROXIMAL = 22
    LITTLE_INTERMEDIATE = 23
    LITTLE_DISTAL = 24
    LITTLE_TIP = 25


TOTAL_JOINTS = len(JointIndex)


class HandJointPose:
    """One joint pose as reported by the tracking source.

    Uses __slots__ since thousands of these are created per session.
    """

    __slots__ = ("position", "rotation", "radius")

    def __init__(self, position: Sequence[float],
                 rotation: Sequence[float] = (0.0, 0.0, 0.0, 1.0),
                 radius: float = 0.0):
        self.position = np.asarray(position, dtype=np.float32)   # (3,) metres
        self.rotation = np.asarray(rotation, dtype=np.float32)   # (4,) x, y, z, w
        self.radius = float(radius)

    def __repr__(self):
        x, y, z = self.position.tolist()
        return f"HandJointPose(({x:.3f}, {y:.3f}, {z:.3f}), r={self.radius:.3f})"

    @property
    def has_valid_position(self) -> bool:
        return self.position.shape == (3,) and bool(np.all(np.isfinite(self.position)))

    @property
    def has_degenerate_rotation(self) -> bool:
        """True for the uninitialized all-zero quaternion."""
        return not np.any(self.rotation)


# =============================================================================
# Gesture Types
# =============================================================================

class GestureClass(IntEnum):
    """Classifier output slots, in model output order."""
    RANDOM_GESTURE = 0
    NOT_OK = 1


NUM_GESTURE_CLASSES = len(GestureClass)


class DecisionState(Enum):
    """Window-side state of the gesture decision machine."""
    IDLE = "idle"            # no baseline sample, empty window
    FILLING = "filling"      # baseline set, window below capacity
    DECIDING = "deciding"    # window full, classification due


class SourceState(Enum):
    """Initialization state of the tracking source binding."""
    UNINITIALIZED = "uninitialized"
    READY = "ready"


# =============================================================================
# Data Containers
# =============================================================================

class GestureProbabilities:
    """Classifier output: one probability per GestureClass."""

    __slots__ = ("values", "timestamp")

    def __init__(self, values: Sequence[float]):
        values = np.asarray(values, dtype=np.float64).ravel()
        if values.shape != (NUM_GESTURE_CLASSES,):
            raise ValueError(
                f"expected {NUM_GESTURE_CLASSES} class probabilities, got shape {values.shape}"
            )
        self.values = values
        self.timestamp = time.time()

    def __getitem__(self, gesture_class: GestureClass) -> float:
        return float(self.values[int(gesture_class)])

    def __repr__(self):
        return (f"GestureProbabilities(random={self.random_gesture:.2f}, "
                f"not_ok={self.not_ok:.2f})")

    @property
    def random_gesture(self) -> float:
        return self[GestureClass.RANDOM_GESTURE]

    @property
    def not_ok(self) -> float:
        return self[GestureClass.NOT_OK]


class Decision:
    """Outcome of classifying one full window."""

    __slots__ = ("probabilities", "alert", "window_length_after")

    def __init__(self, probabilities: GestureProbabilities, alert: bool,
                 window_length_after: int):
        self.probabilities = probabilities
        self.alert = alert
        self.window_length_after = window_length_after

    def __repr__(self):
        return f"Decision(alert={self.alert}, {self.probabilities!r})"


class PipelineState:
    """All mutable per-hand state of one gesture pipeline.

    Owned by exactly one pipeline instance and mutated only from its tick.
    """

    def __init__(self, window):
        self.source_state: SourceState = SourceState.UNINITIALIZED
        self.previous_positions: Optional[np.ndarray] = None   # (J, 3)
        self.window = window
        self.time_accumulator: float = 0.0
        self.alert_remaining: float = 0.0
        self.alert_text: str = ""
        self.tracking: bool = False
        self.accepted_samples: int = 0
        self.classifications: int = 0
        self.alerts: int = 0

    @property
    def decision_state(self) -> DecisionState:
        if self.previous_positions is None and len(self.window) == 0:
            return DecisionState.IDLE
        if self.window.is_full():
            return DecisionState.DECIDING
        return DecisionState.FILLING

    @property
    def alert_active(self) -> bool:
        return self.alert_remaining > 0.0

    def reset_tracking(self):
        """Drop in-flight motion state after tracking loss."""
        self.previous_positions = None
        self.window.clear()

    def to_dict(self) -> dict:
        """Snapshot for logging and overlays."""
        return {
            "source_state": self.source_state.value,
            "decision_state": self.decision_state.value,
            "window_length": len(self.window),
            "window_capacity": self.window.capacity,
            "tracking": self.tracking,
            "alert_text": self.alert_text,
            "alert_remaining": self.alert_remaining,
            "accepted_samples": self.accepted_samples,
            "classifications": self.classifications,
            "alerts": self.alerts,
        }


# =============================================================================
# Errors
# =============================================================================

class TrackingUnavailableError(Exception):
    """The hand cannot be sampled this tick (not tracked or malformed)."""


class ClassifierError(RuntimeError):
    """Model missing, incompatible, released, or inference failed."""
