"""
Per-hand gesture pipeline.

Runs synchronously inside the host's update loop, once per tick:

    TrackingSource -> JointSampler -> SampleRateGate -> MotionDifferencer
    -> SlidingWindowBuffer -> (full) FeatureFlattener -> Classifier
    -> GestureDecisionEngine -> alert / eviction

Until the tracking source reports itself available the pipeline stays
UNINITIALIZED and re-checks once per tick; nothing blocks. Losing the hand
(or receiving malformed joints) discards the window and the baseline so
the next two samples warm up again. All mutable state lives in one
PipelineState, so several pipelines (one per hand) can share a source.
"""

import logging

from core.types import (
    Decision, Handedness, PipelineState, SourceState, TrackingUnavailableError,
)
from core.events import EventBus, Events
from modules.sampling.rate_gate import SampleRateGate, SamplingConfig
from modules.sampling.joint_sampler import JointSampler
from modules.sampling.differencer import MotionDifferencer
from modules.recognition.window_buffer import SlidingWindowBuffer, WindowConfig
from modules.recognition.feature_flattener import FeatureFlattener
from modules.recognition.decision_engine import GestureDecisionEngine, DecisionConfig

logger = logging.getLogger(__name__)


class PipelineResult:
    """Result of a single pipeline tick."""

    __slots__ = (
        "source_ready", "tracking", "sampled", "frame_pushed",
        "decision", "alert_expired", "window_length",
    )

    def __init__(self):
        self.source_ready = False
        self.tracking = False
        self.sampled = False
        self.frame_pushed = False
        self.decision: Decision = None
        self.alert_expired = False
        self.window_length = 0

    def __repr__(self):
        return (f"PipelineResult(tracking={self.tracking}, sampled={self.sampled}, "
                f"window={self.window_length}, decision={self.decision!r})")

    @property
    def alert(self) -> bool:
        return self.decision is not None and self.decision.alert


class GesturePipeline:
    """Not-ok gesture detection for one hand."""

    def __init__(
        self,
        source,
        classifier,
        hand: Handedness = Handedness.RIGHT,
        sampling: SamplingConfig = None,
        window: WindowConfig = None,
        decision: DecisionConfig = None,
        event_bus: EventBus = None,
        alert_display=None,
        performance_monitor=None,
    ):
        """
        Args:
            source: HandTrackingSource (may start out unavailable)
            classifier: object with ``predict(vector) -> GestureProbabilities``
            hand: which hand to follow
            sampling: period and joint-count settings
            window: window capacity
            decision: threshold and alert settings
            event_bus: bus for pipeline events (a private one by default)
            alert_display: optional ``set_text`` collaborator
            performance_monitor: optional PerformanceMonitor timing the
                classification stage; sample counting is left to the host
        """
        self._source = source
        self._hand = hand
        self._sampling = sampling or SamplingConfig()
        self._window_cfg = window or WindowConfig()
        self._bus = event_bus or EventBus()

        self._gate = SampleRateGate(self._sampling.period_s)
        self._sampler = JointSampler(self._sampling.joint_count,
                                     self._sampling.strict_orientation)
        self._differencer = MotionDifferencer()
        self._flattener = FeatureFlattener(self._window_cfg.size, self._sampling.joint_count)
        self._engine = GestureDecisionEngine(
            classifier,
            self._flattener,
            config=decision or DecisionConfig(),
            event_bus=self._bus,
            alert_display=alert_display,
            performance_monitor=performance_monitor,
            hand=hand.value,
        )

        self._state = PipelineState(
            SlidingWindowBuffer(self._window_cfg.size, self._sampling.joint_count)
        )

    def tick(self, delta: float) -> PipelineResult:
        """Run one host update.

        Args:
            delta: Seconds since the previous tick (unscaled wall time).

        Raises:
            ClassifierError: inference failed; detection cannot continue.
        """
        state = self._state
        result = PipelineResult()

        # --- 1. Alert countdown (independent of the window) ---
        result.alert_expired = self._engine.update_alert(state, delta)

        # --- 2. Wait for the tracking source ---
        if state.source_state is SourceState.UNINITIALIZED:
            if self._source is None or not self._source.is_available():
                return result
            state.source_state = SourceState.READY
            logger.info("Tracking source ready (%s hand)", self._hand.value)
            self._bus.emit(Events.SOURCE_READY, hand=self._hand.value)
        result.source_ready = True

        # --- 3. Joints for this hand ---
        joints = self._source.try_get_entire_hand(self._hand)
        try:
            positions = self._sampler.sample(joints)
        except TrackingUnavailableError as e:
            self._on_tracking_lost(str(e))
            result.window_length = len(state.window)
            return result

        if not state.tracking:
            state.tracking = True
            self._bus.emit(Events.TRACKING_ACQUIRED, hand=self._hand.value)
        result.tracking = True

        # --- 4. Fixed-rate gate ---
        due, state.time_accumulator = self._gate.advance(state.time_accumulator, delta)
        if not due:
            result.window_length = len(state.window)
            return result
        result.sampled = True
        state.accepted_samples += 1

        # --- 5. Difference against the baseline ---
        frame = self._differencer.step(state, positions)
        if frame is not None:
            state.window.push_front(frame)
            result.frame_pushed = True

            # --- 6. Classify once the window is full ---
            if state.window.is_full():
                result.decision = self._engine.decide(state)

        result.window_length = len(state.window)
        return result

    def _on_tracking_lost(self, reason: str):
        state = self._state
        state.reset_tracking()
        if state.tracking:
            state.tracking = False
            logger.debug("Tracking lost (%s hand): %s", self._hand.value, reason)
            self._bus.emit(Events.TRACKING_LOST, hand=self._hand.value, reason=reason)

    def reset(self):
        """Forget motion state and any visible alert; keep source readiness."""
        self._state.reset_tracking()
        self._state.time_accumulator = 0.0
        if self._state.alert_active:
            self._engine.update_alert(self._state, self._state.alert_remaining)

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def hand(self) -> Handedness:
        return self._hand

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def flattener(self) -> FeatureFlattener:
        return self._flattener
