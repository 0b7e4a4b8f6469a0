"""
Frame-to-frame motion differencing.
"""

import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class MotionDifferencer:
    """Produces per-joint displacement between consecutive accepted samples.

    The first sample after a reset only seeds the baseline: a displacement
    needs two samples, so that tick yields no frame.
    """

    @staticmethod
    def difference(current: np.ndarray, previous: np.ndarray) -> np.ndarray:
        """Element-wise ``current - previous`` for two (J, 3) position sets."""
        current = np.asarray(current, dtype=np.float32)
        previous = np.asarray(previous, dtype=np.float32)
        if current.shape != previous.shape:
            raise ValueError(
                "position sets differ in shape: %s vs %s" % (current.shape, previous.shape)
            )
        return current - previous

    def step(self, state, positions: np.ndarray) -> Optional[np.ndarray]:
        """Advance the baseline held in ``state.previous_positions``.

        Returns:
            The displacement frame, or None on a warm-up tick.
        """
        if state.previous_positions is None:
            state.previous_positions = positions
            logger.debug("Baseline sample stored")
            return None

        frame = self.difference(positions, state.previous_positions)
        state.previous_positions = positions
        return frame
