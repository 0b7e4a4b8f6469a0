"""
Joint position sampling.

Turns the tracking source's per-joint poses into a (J, 3) position array
in canonical joint order. Orientation and radius are dropped; only
position feeds the motion features.
"""

import logging
from typing import Sequence

import numpy as np

from core.types import HandJointPose, TrackingUnavailableError, TOTAL_JOINTS

logger = logging.getLogger(__name__)


class JointSampler:
    """Extracts one JointPositionSet from a list of joint poses."""

    def __init__(self, joint_count: int = TOTAL_JOINTS, strict_orientation: bool = False):
        """
        Args:
            joint_count: Number of joints each sample must contain.
            strict_orientation: Also reject samples in which any joint
                reports the uninitialized all-zero quaternion.
        """
        self._joint_count = joint_count
        self._strict_orientation = strict_orientation

    @property
    def joint_count(self) -> int:
        return self._joint_count

    def sample(self, joints: Sequence[HandJointPose]) -> np.ndarray:
        """Extract positions for all joints.

        Args:
            joints: Poses ordered by JointIndex.

        Returns:
            np.ndarray of shape (J, 3), dtype float32

        Raises:
            TrackingUnavailableError: wrong joint count, a non-finite
                position, or (strict mode) a degenerate orientation.
        """
        if joints is None or len(joints) != self._joint_count:
            count = 0 if joints is None else len(joints)
            raise TrackingUnavailableError(
                f"expected {self._joint_count} joints, tracking reported {count}"
            )

        positions = np.empty((self._joint_count, 3), dtype=np.float32)
        for i, joint in enumerate(joints):
            if not joint.has_valid_position:
                raise TrackingUnavailableError(f"joint {i} has no valid position")
            if self._strict_orientation and joint.has_degenerate_rotation:
                raise TrackingUnavailableError(f"joint {i} has a degenerate orientation")
            positions[i] = joint.position

        return positions
