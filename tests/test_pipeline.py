"""
Tests for the per-hand gesture pipeline
=======================================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import EventBus, Events
from core.pipeline import GesturePipeline
from core.types import (
    ClassifierError, DecisionState, GestureProbabilities, Handedness,
    HandJointPose, SourceState,
)
from modules.control.alert_display import AlertDisplay
from modules.recognition.decision_engine import DecisionConfig
from modules.recognition.window_buffer import WindowConfig
from modules.sampling.rate_gate import SamplingConfig

WINDOW = 3
JOINTS = 2
PERIOD = 0.02


class ScriptedSource:
    """Tracking source driven directly by the test."""

    def __init__(self, available=True):
        self.available = available
        self.joints = None
        self.requests = []
        self.set_offset(0.0)

    def set_offset(self, offset):
        self.joints = [
            HandJointPose((0.01 * j + offset, offset, 0.0)) for j in range(JOINTS)
        ]

    def is_available(self):
        return self.available

    def try_get_entire_hand(self, hand):
        self.requests.append(hand)
        return self.joints


class ScriptedClassifier:
    def __init__(self, not_ok=0.0):
        self.not_ok = not_ok
        self.calls = 0

    def predict(self, features):
        self.calls += 1
        return GestureProbabilities([1.0 - self.not_ok, self.not_ok])


def make_pipeline(source=None, classifier=None, bus=None, display=None):
    return GesturePipeline(
        source if source is not None else ScriptedSource(),
        classifier or ScriptedClassifier(),
        hand=Handedness.RIGHT,
        sampling=SamplingConfig(period_s=PERIOD, joint_count=JOINTS),
        window=WindowConfig(size=WINDOW),
        decision=DecisionConfig(),
        event_bus=bus or EventBus(),
        alert_display=display,
    )


def run_ticks(pipeline, source, count, delta=PERIOD, moving=True):
    results = []
    for _ in range(count):
        if moving:
            source.set_offset(np.random.uniform(-0.01, 0.01))
        results.append(pipeline.tick(delta))
    return results


class TestSourceInitialization:
    """Test suite for waiting on the tracking source."""

    def test_waits_until_source_available(self):
        source = ScriptedSource(available=False)
        bus = EventBus()
        pipeline = make_pipeline(source, bus=bus)

        for _ in range(5):
            result = pipeline.tick(PERIOD)
            assert result.source_ready is False
        assert pipeline.state.source_state is SourceState.UNINITIALIZED
        assert source.requests == []

        source.available = True
        result = pipeline.tick(PERIOD)

        assert result.source_ready is True
        assert result.sampled is True
        assert pipeline.state.source_state is SourceState.READY
        assert bus.count(Events.SOURCE_READY) == 1

    def test_source_ready_emitted_once(self):
        bus = EventBus()
        pipeline = make_pipeline(bus=bus)
        for _ in range(4):
            pipeline.tick(PERIOD)
        assert bus.count(Events.SOURCE_READY) == 1

    def test_missing_source_never_ready(self):
        pipeline = GesturePipeline(None, ScriptedClassifier())
        assert pipeline.tick(PERIOD).source_ready is False


class TestWarmUpAndClassification:
    """Test suite for the cold-start sequence."""

    def test_first_sample_is_baseline_only(self):
        source = ScriptedSource()
        pipeline = make_pipeline(source)

        result = pipeline.tick(PERIOD)

        assert result.sampled is True
        assert result.frame_pushed is False
        assert pipeline.state.previous_positions is not None
        assert len(pipeline.state.window) == 0

    def test_first_classification_after_window_plus_one_samples(self):
        source = ScriptedSource()
        classifier = ScriptedClassifier(0.1)
        pipeline = make_pipeline(source, classifier)

        results = run_ticks(pipeline, source, WINDOW)
        assert classifier.calls == 0
        assert len(pipeline.state.window) == WINDOW - 1

        result = run_ticks(pipeline, source, 1)[0]
        assert classifier.calls == 1
        assert result.decision is not None
        assert all(r.decision is None for r in results)

    def test_slides_one_frame_after_negative(self):
        source = ScriptedSource()
        classifier = ScriptedClassifier(0.1)
        pipeline = make_pipeline(source, classifier)

        run_ticks(pipeline, source, WINDOW + 1)
        assert len(pipeline.state.window) == WINDOW - 1

        # Every further sample completes the window again
        run_ticks(pipeline, source, 4)
        assert classifier.calls == 5

    def test_frames_are_displacements(self):
        source = ScriptedSource()
        pipeline = make_pipeline(source)

        source.set_offset(0.0)
        pipeline.tick(PERIOD)
        source.set_offset(0.004)
        pipeline.tick(PERIOD)

        np.testing.assert_allclose(pipeline.state.window[0], np.full((JOINTS, 3), 0.004) *
                                   np.array([1, 1, 0]), atol=1e-6)

    def test_gate_limits_sampling_rate(self):
        source = ScriptedSource()
        pipeline = make_pipeline(source)

        results = run_ticks(pipeline, source, 8, delta=0.007)

        assert sum(r.sampled for r in results) == 2
        assert pipeline.state.accepted_samples == 2

    def test_window_length_bounded(self):
        rng = np.random.default_rng(7)
        source = ScriptedSource()
        classifier = ScriptedClassifier()
        pipeline = make_pipeline(source, classifier)

        for _ in range(500):
            classifier.not_ok = float(rng.uniform())
            source.set_offset(float(rng.uniform(-0.02, 0.02)))
            if rng.uniform() < 0.05:
                source.joints = None
            result = pipeline.tick(float(rng.uniform(0.0, 0.05)))
            assert 0 <= result.window_length <= WINDOW
            if result.decision is None:
                assert len(pipeline.state.window) < WINDOW


class TestAlerts:
    """Test suite for alert behaviour inside the pipeline."""

    def test_alert_clears_window_and_keeps_baseline(self):
        source = ScriptedSource()
        display = AlertDisplay()
        bus = EventBus()
        pipeline = make_pipeline(source, ScriptedClassifier(0.9), bus, display)

        result = run_ticks(pipeline, source, WINDOW + 1)[-1]

        assert result.alert is True
        assert len(pipeline.state.window) == 0
        assert pipeline.state.previous_positions is not None
        assert display.text == "NOT_OK GEST !!"
        assert bus.count(Events.ALERT_RAISED) == 1

        # Baseline retained: the next sample already yields a frame
        result = run_ticks(pipeline, source, 1)[0]
        assert result.frame_pushed is True
        assert len(pipeline.state.window) == 1

    def test_alert_expires_while_sampling_continues(self):
        source = ScriptedSource()
        display = AlertDisplay()
        classifier = ScriptedClassifier(0.9)
        pipeline = make_pipeline(source, classifier, display=display)

        run_ticks(pipeline, source, WINDOW + 1)
        classifier.not_ok = 0.0

        # Just over 2.0 s at 20 ms per tick
        results = run_ticks(pipeline, source, 101)

        assert display.text == ""
        assert sum(r.alert_expired for r in results) == 1
        assert not pipeline.state.alert_active

    def test_alert_countdown_runs_without_tracking(self):
        source = ScriptedSource()
        display = AlertDisplay()
        pipeline = make_pipeline(source, ScriptedClassifier(0.9), display=display)
        run_ticks(pipeline, source, WINDOW + 1)

        source.joints = None
        pipeline.tick(1.0)
        assert display.text == "NOT_OK GEST !!"
        pipeline.tick(1.0)
        assert display.text == ""

    def test_classifier_failure_propagates(self):
        class Broken:
            def predict(self, features):
                raise ClassifierError("output shape (1, 3)")

        source = ScriptedSource()
        bus = EventBus()
        pipeline = make_pipeline(source, Broken(), bus)

        run_ticks(pipeline, source, WINDOW)
        with pytest.raises(ClassifierError):
            run_ticks(pipeline, source, 1)
        assert bus.count(Events.CLASSIFIER_FAILED) == 1


class TestTrackingLoss:
    """Test suite for tracking loss and reacquisition."""

    def test_loss_discards_window_and_baseline(self):
        source = ScriptedSource()
        bus = EventBus()
        pipeline = make_pipeline(source, bus=bus)
        run_ticks(pipeline, source, WINDOW)
        assert len(pipeline.state.window) == WINDOW - 1

        source.joints = None
        result = pipeline.tick(PERIOD)

        assert result.tracking is False
        assert len(pipeline.state.window) == 0
        assert pipeline.state.previous_positions is None
        assert pipeline.state.decision_state is DecisionState.IDLE
        assert bus.count(Events.TRACKING_LOST) == 1

    def test_reacquired_hand_warms_up_again(self):
        source = ScriptedSource()
        pipeline = make_pipeline(source)
        run_ticks(pipeline, source, WINDOW)

        source.joints = None
        pipeline.tick(PERIOD)
        source.set_offset(0.0)

        first = pipeline.tick(PERIOD)
        assert first.sampled is True
        assert first.frame_pushed is False
        assert len(pipeline.state.window) == 0

        second = pipeline.tick(PERIOD)
        assert second.frame_pushed is True
        assert len(pipeline.state.window) == 1

    def test_loss_emitted_once_per_transition(self):
        source = ScriptedSource()
        bus = EventBus()
        pipeline = make_pipeline(source, bus=bus)
        pipeline.tick(PERIOD)

        source.joints = None
        for _ in range(5):
            pipeline.tick(PERIOD)
        source.set_offset(0.0)
        pipeline.tick(PERIOD)

        assert bus.count(Events.TRACKING_LOST) == 1
        assert bus.count(Events.TRACKING_ACQUIRED) == 2

    def test_malformed_joints_count_as_loss(self):
        source = ScriptedSource()
        pipeline = make_pipeline(source)
        run_ticks(pipeline, source, 2)

        source.joints = [HandJointPose((np.inf, 0.0, 0.0)), HandJointPose((0.0, 0.0, 0.0))]
        result = pipeline.tick(PERIOD)

        assert result.tracking is False
        assert len(pipeline.state.window) == 0
        assert pipeline.state.previous_positions is None

    def test_wrong_joint_count_counts_as_loss(self):
        source = ScriptedSource()
        pipeline = make_pipeline(source)
        pipeline.tick(PERIOD)

        source.joints = source.joints[:1]
        assert pipeline.tick(PERIOD).tracking is False


class TestReset:
    def test_reset_clears_motion_and_alert(self):
        source = ScriptedSource()
        display = AlertDisplay()
        pipeline = make_pipeline(source, ScriptedClassifier(0.9), display=display)
        run_ticks(pipeline, source, WINDOW + 1)

        pipeline.reset()

        assert display.text == ""
        assert pipeline.state.previous_positions is None
        assert pipeline.state.time_accumulator == 0.0
        assert pipeline.state.source_state is SourceState.READY

    def test_independent_pipelines_per_hand(self):
        source = ScriptedSource()
        right = make_pipeline(source, ScriptedClassifier(0.9))
        left = GesturePipeline(
            source, ScriptedClassifier(0.0), hand=Handedness.LEFT,
            sampling=SamplingConfig(period_s=PERIOD, joint_count=JOINTS),
            window=WindowConfig(size=WINDOW),
        )

        for _ in range(WINDOW + 1):
            source.set_offset(np.random.uniform(-0.01, 0.01))
            right.tick(PERIOD)
            left.tick(PERIOD)

        assert right.state.alerts == 1
        assert left.state.alerts == 0
        assert len(left.state.window) == WINDOW - 1
        assert Handedness.LEFT in source.requests


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
