"""
Fixed-period sample gate.

The host loop ticks at whatever rate rendering allows; the classifier was
trained on joints sampled every 20 ms. The gate accumulates elapsed time
and lets exactly one sample through per elapsed period, carrying the
leftover fraction into the next tick so long runs do not drift.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class SamplingConfig:
    """Sampling configuration settings."""
    period_s: float = 0.02
    joint_count: int = 26
    strict_orientation: bool = False

    def __post_init__(self):
        if self.period_s <= 0:
            raise ValueError(f"sampling period must be positive, got {self.period_s}")
        if self.joint_count <= 0:
            raise ValueError(f"joint count must be positive, got {self.joint_count}")

    @classmethod
    def from_dict(cls, config: dict) -> "SamplingConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            period_s=float(config.get("period_s", 0.02)),
            joint_count=int(config.get("joint_count", 26)),
            strict_orientation=bool(config.get("strict_orientation", False)),
        )


class SampleRateGate:
    """Decides on each tick whether a sample is due.

    The accumulator may be owned by the gate itself or passed in from a
    PipelineState; ``accept()`` works on the gate's own value, while
    ``advance()`` is the pure form used by the pipeline.
    """

    def __init__(self, period_s: float = 0.02):
        if period_s <= 0:
            raise ValueError(f"sampling period must be positive, got {period_s}")
        self._period = period_s
        self._accumulator = 0.0

    @property
    def period(self) -> float:
        return self._period

    @property
    def remainder(self) -> float:
        """Time carried toward the next sample."""
        return self._accumulator

    def advance(self, accumulator: float, delta: float):
        """Fold ``delta`` into ``accumulator``.

        Returns:
            (due, new_accumulator). When due, one period has been consumed
            and the remainder is kept.
        """
        if delta < 0:
            raise ValueError(f"elapsed time cannot be negative, got {delta}")
        accumulator += delta
        if accumulator < self._period:
            return False, accumulator
        return True, accumulator - self._period

    def accept(self, delta: float) -> bool:
        """Feed one tick's elapsed time; True when a sample should be taken."""
        due, self._accumulator = self.advance(self._accumulator, delta)
        return due

    def reset(self):
        self._accumulator = 0.0
