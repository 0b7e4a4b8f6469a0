"""
Gesture decision state machine.

Classifies each full window and applies the retention policy:

    p(not_ok) >  threshold  → alert, clear the window (baseline kept)
    p(not_ok) <= threshold  → evict the oldest frame, wait for one more

Evicting a single frame means only one new sample is needed before the
next attempt, which keeps detection latency at one sampling period.
The random-gesture probability is reported but never acted upon.

The alert countdown runs independently of the window: it is started or
refreshed by an alert and clears the displayed text when it expires.
"""

import logging
from dataclasses import dataclass

from core.events import EventBus, Events
from core.types import ClassifierError, Decision, GestureProbabilities
from modules.recognition.feature_flattener import FeatureFlattener

logger = logging.getLogger(__name__)


@dataclass
class DecisionConfig:
    """Decision configuration settings."""
    threshold: float = 0.6
    alert_duration_s: float = 2.0
    alert_text: str = "NOT_OK GEST !!"

    def __post_init__(self):
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {self.threshold}")
        if self.alert_duration_s < 0:
            raise ValueError(f"alert duration cannot be negative, got {self.alert_duration_s}")

    @classmethod
    def from_dict(cls, config: dict) -> "DecisionConfig":
        """Create config from dictionary."""
        return cls(
            threshold=float(config.get("threshold", 0.6)),
            alert_duration_s=float(config.get("alert_duration_s", 2.0)),
            alert_text=str(config.get("alert_text", "NOT_OK GEST !!")),
        )


class GestureDecisionEngine:
    """Turns classifier output into alerts and window retention."""

    def __init__(self, classifier, flattener: FeatureFlattener,
                 config: DecisionConfig = None, event_bus: EventBus = None,
                 alert_display=None, performance_monitor=None, hand: str = "right"):
        """
        Args:
            classifier: Object with ``predict(vector) -> GestureProbabilities``.
            flattener: Window → feature vector serializer.
            config: Threshold and alert settings.
            event_bus: Bus receiving alert/classification events.
            alert_display: Optional object with ``set_text(str)``.
            performance_monitor: Optional PerformanceMonitor; the
                classification stage is timed under "classification".
            hand: Label attached to emitted events.
        """
        self._classifier = classifier
        self._flattener = flattener
        self._config = config or DecisionConfig()
        self._bus = event_bus or EventBus()
        self._display = alert_display
        self._perf = performance_monitor
        self._hand = hand

    @property
    def config(self) -> DecisionConfig:
        return self._config

    def decide(self, state) -> Decision:
        """Classify the full window held by ``state`` and apply the policy.

        Raises:
            ValueError: if the window is not full.
            ClassifierError: if inference fails; detection cannot continue.
        """
        window = state.window
        if not window.is_full():
            raise ValueError(
                "decide() needs a full window (%d/%d)" % (len(window), window.capacity)
            )

        probabilities = self._classify(self._flattener.flatten(window))
        state.classifications += 1

        alert = probabilities.not_ok > self._config.threshold
        if alert:
            window.clear()
            self._raise_alert(state, probabilities)
        else:
            window.evict_oldest()

        logger.debug("Window classified: %r -> %s (window=%d)",
                     probabilities, "alert" if alert else "slide", len(window))
        self._bus.emit(Events.WINDOW_CLASSIFIED, hand=self._hand,
                       probabilities=probabilities, alert=alert)

        return Decision(probabilities, alert, len(window))

    def _classify(self, features) -> GestureProbabilities:
        try:
            if self._perf is not None:
                with self._perf.measure("classification"):
                    return self._classifier.predict(features)
            return self._classifier.predict(features)
        except Exception as e:
            logger.error("Classifier failed, not-ok detection disabled: %s", e)
            self._bus.emit(Events.CLASSIFIER_FAILED, hand=self._hand, error=e)
            if isinstance(e, ClassifierError):
                raise
            raise ClassifierError(str(e)) from e

    def _raise_alert(self, state, probabilities: GestureProbabilities):
        state.alerts += 1
        state.alert_remaining = self._config.alert_duration_s
        state.alert_text = self._config.alert_text
        if self._display is not None:
            self._display.set_text(self._config.alert_text)

        logger.warning("Not-ok gesture detected (%s hand, p=%.3f)",
                       self._hand, probabilities.not_ok)
        self._bus.emit(Events.ALERT_RAISED, hand=self._hand,
                       probability=probabilities.not_ok, text=self._config.alert_text)

    def update_alert(self, state, delta: float) -> bool:
        """Run the alert countdown for one tick.

        Returns:
            True if the alert expired on this tick.
        """
        if state.alert_remaining <= 0.0:
            return False

        state.alert_remaining -= delta
        if state.alert_remaining > 0.0:
            return False

        state.alert_remaining = 0.0
        state.alert_text = ""
        if self._display is not None:
            self._display.set_text("")
        self._bus.emit(Events.ALERT_CLEARED, hand=self._hand)
        return True
