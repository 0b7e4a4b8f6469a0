"""
Window flattening: W displacement frames → classifier input vector.

Feature layout (W × J × 3 values, 858 for W=11, J=26):
    vector[f * (J * 3) + j * 3 + a] = window[f][j][a]

    f  frame index, 0 = newest
    j  joint index in JointIndex order
    a  axis (0 = x, 1 = y, 2 = z)

The classifier was trained on exactly this ordering. Values stay float32;
no scaling or quantization is applied.
"""

import numpy as np


class FeatureFlattener:
    """Serializes a full window into a flat float32 vector."""

    def __init__(self, window_size: int = 11, joint_count: int = 26):
        self._window_size = window_size
        self._joint_count = joint_count

    @property
    def feature_dim(self) -> int:
        return self._window_size * self._joint_count * 3

    def flatten(self, window) -> np.ndarray:
        """Flatten a window of exactly ``window_size`` frames.

        Args:
            window: SlidingWindowBuffer or a newest-first sequence of
                    (J, 3) frames.

        Returns:
            np.ndarray of shape (feature_dim,), dtype float32
        """
        frames = window.frames() if hasattr(window, "frames") else list(window)
        if len(frames) != self._window_size:
            raise ValueError(
                "can only flatten a full window of %d frames, got %d"
                % (self._window_size, len(frames))
            )

        stacked = np.stack(frames).astype(np.float32, copy=False)
        if stacked.shape != (self._window_size, self._joint_count, 3):
            raise ValueError("unexpected window shape %s" % str(stacked.shape))

        # C-order ravel of (frame, joint, axis) is the documented layout
        return np.ascontiguousarray(stacked).reshape(self.feature_dim)
