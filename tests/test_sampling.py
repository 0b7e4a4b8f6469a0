"""
Tests for the sampling stage
============================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import HandJointPose, PipelineState, TrackingUnavailableError, TOTAL_JOINTS
from modules.sampling.rate_gate import SampleRateGate, SamplingConfig
from modules.sampling.joint_sampler import JointSampler
from modules.sampling.differencer import MotionDifferencer
from modules.recognition.window_buffer import SlidingWindowBuffer


def make_joints(count=TOTAL_JOINTS, offset=0.0, rotation=(0.0, 0.0, 0.0, 1.0)):
    """Joints laid out along x, shifted by ``offset`` on every axis."""
    return [
        HandJointPose((0.01 * i + offset, 0.5 + offset, 0.3 + offset), rotation)
        for i in range(count)
    ]


class TestSampleRateGate:
    """Test suite for the fixed-period gate."""

    def test_irregular_ticks_carry_remainder(self):
        """5 ms, 5 ms, 15 ms at 20 ms: accept on the third tick, keep 5 ms."""
        gate = SampleRateGate(0.02)

        assert gate.accept(0.005) is False
        assert gate.accept(0.005) is False
        assert gate.accept(0.015) is True
        assert gate.remainder == pytest.approx(0.005)

    def test_remainder_not_discarded(self):
        """Carried time shortens the wait for the next sample."""
        gate = SampleRateGate(0.02)
        assert gate.accept(0.035) is True
        assert gate.remainder == pytest.approx(0.015)

        # 5 ms short of the next sample
        assert gate.accept(0.006) is True
        assert gate.remainder == pytest.approx(0.001)

    def test_one_sample_per_tick(self):
        """A long stall yields one sample; the backlog drains on later ticks."""
        gate = SampleRateGate(0.02)
        assert gate.accept(0.07) is True
        assert gate.remainder == pytest.approx(0.05)
        assert gate.accept(0.0) is True
        assert gate.accept(0.0) is True
        assert gate.accept(0.0) is False

    def test_no_drift_over_many_ticks(self):
        """Render at ~60 Hz for 10 s gives ~500 samples at 50 Hz."""
        gate = SampleRateGate(0.02)
        accepted = sum(gate.accept(1.0 / 60.0) for _ in range(600))
        assert accepted in (499, 500)

    def test_advance_is_pure(self):
        gate = SampleRateGate(0.02)
        due, acc = gate.advance(0.019, 0.002)
        assert due is True
        assert acc == pytest.approx(0.001)
        assert gate.remainder == 0.0

    def test_negative_delta_rejected(self):
        with pytest.raises(ValueError):
            SampleRateGate(0.02).accept(-0.001)

    def test_invalid_period(self):
        with pytest.raises(ValueError):
            SampleRateGate(0.0)


class TestSamplingConfig:
    """Test suite for SamplingConfig."""

    def test_default_values(self):
        config = SamplingConfig()
        assert config.period_s == 0.02
        assert config.joint_count == 26
        assert config.strict_orientation is False

    def test_from_dict_partial(self):
        config = SamplingConfig.from_dict({"period_s": 0.04})
        assert config.period_s == 0.04
        assert config.joint_count == 26

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            SamplingConfig(period_s=-1.0)
        with pytest.raises(ValueError):
            SamplingConfig(joint_count=0)


class TestJointSampler:
    """Test suite for JointSampler."""

    def test_positions_in_joint_order(self):
        sampler = JointSampler()
        positions = sampler.sample(make_joints())

        assert positions.shape == (26, 3)
        assert positions.dtype == np.float32
        np.testing.assert_allclose(positions[:, 0], [0.01 * i for i in range(26)], rtol=1e-6)

    def test_wrong_joint_count_is_tracking_loss(self):
        with pytest.raises(TrackingUnavailableError):
            JointSampler().sample(make_joints(count=25))

    def test_none_is_tracking_loss(self):
        with pytest.raises(TrackingUnavailableError):
            JointSampler().sample(None)

    def test_non_finite_position_is_tracking_loss(self):
        joints = make_joints()
        joints[7] = HandJointPose((np.nan, 0.0, 0.0))
        with pytest.raises(TrackingUnavailableError):
            JointSampler().sample(joints)

    def test_degenerate_rotation_allowed_by_default(self):
        joints = make_joints(rotation=(0.0, 0.0, 0.0, 0.0))
        assert JointSampler().sample(joints).shape == (26, 3)

    def test_degenerate_rotation_rejected_in_strict_mode(self):
        joints = make_joints()
        joints[3] = HandJointPose((0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 0.0))
        with pytest.raises(TrackingUnavailableError):
            JointSampler(strict_orientation=True).sample(joints)


class TestMotionDifferencer:
    """Test suite for MotionDifferencer."""

    def test_difference_per_joint(self):
        current = np.array([[1.0, 2.0, 3.0], [0.5, 0.5, 0.5]], dtype=np.float32)
        previous = np.array([[0.5, 2.0, 4.0], [0.5, 0.0, 0.0]], dtype=np.float32)

        diff = MotionDifferencer.difference(current, previous)

        np.testing.assert_allclose(diff, [[0.5, 0.0, -1.0], [0.0, 0.5, 0.5]])

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            MotionDifferencer.difference(np.zeros((2, 3)), np.zeros((3, 3)))

    def test_first_sample_only_sets_baseline(self):
        state = PipelineState(SlidingWindowBuffer(capacity=3, joint_count=2))
        differencer = MotionDifferencer()
        first = np.ones((2, 3), dtype=np.float32)

        assert differencer.step(state, first) is None
        assert state.previous_positions is first

    def test_second_sample_yields_frame_and_moves_baseline(self):
        state = PipelineState(SlidingWindowBuffer(capacity=3, joint_count=2))
        differencer = MotionDifferencer()
        first = np.zeros((2, 3), dtype=np.float32)
        second = np.full((2, 3), 0.25, dtype=np.float32)

        differencer.step(state, first)
        frame = differencer.step(state, second)

        np.testing.assert_allclose(frame, second)
        assert state.previous_positions is second


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
