#!/usr/bin/env python3
"""
Not-OK Gesture Guard
Main application entry point.

Feeds a hand-tracking stream through one GesturePipeline per hand and
raises a short-lived alert whenever the not-ok gesture is recognised.

Usage:
    python main.py --replay data/session.npz                 # replay a recording
    python main.py --replay data/session.npz --show          # with OpenCV overlay
    python main.py --replay data/session.npz --hand both     # both hands
    python main.py --mode benchmark --model models/weights/motion_net.pth
"""

import sys
import time
import signal
import argparse
import logging

import cv2
import numpy as np

from core.types import Handedness, ClassifierError
from core.events import EventBus, Events
from core.pipeline import GesturePipeline
from models.classifier import TorchGestureClassifier, ClassifierConfig
from modules.control.alert_display import AlertOverlay
from modules.detection.tracking import ReplayTrackingSource
from modules.recognition.decision_engine import DecisionConfig
from modules.recognition.window_buffer import WindowConfig
from modules.sampling.rate_gate import SamplingConfig
from modules.utils.config import Config
from modules.utils.logger import setup_logging, AlertLogger
from modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class GestureGuardApp:
    """Wires tracking, classifier, pipelines and displays together."""

    def __init__(self, config: Config, hands, source=None, show: bool = False,
                 realtime: bool = False):
        self._config = config
        self._source = source
        self._show = show
        self._realtime = realtime
        self._running = False

        self._sampling = SamplingConfig.from_dict(config.sampling)
        self._window = WindowConfig.from_dict(config.window)
        self._decision = DecisionConfig.from_dict(config.decision)

        classifier_cfg = ClassifierConfig.from_dict(config.classifier)
        classifier_cfg.input_dim = self._window.size * self._sampling.joint_count * 3
        self._classifier = TorchGestureClassifier.from_checkpoint(classifier_cfg)

        self._perf = PerformanceMonitor(
            window_size=config.get("performance.metrics_window", 100),
            budget_ms=self._sampling.period_s * 1000.0,
        )
        self._alert_logger = AlertLogger()

        self._pipelines = []
        self._overlays = {}
        for hand in hands:
            bus = EventBus()
            overlay = AlertOverlay(config.get_section("visualization"))
            bus.subscribe(Events.ALERT_RAISED, self._alert_logger.on_alert)
            bus.subscribe(Events.CLASSIFIER_FAILED, self._on_classifier_failed)
            pipeline = GesturePipeline(
                source,
                self._classifier,
                hand=hand,
                sampling=self._sampling,
                window=self._window,
                decision=self._decision,
                event_bus=bus,
                alert_display=overlay,
                performance_monitor=self._perf,
            )
            self._pipelines.append(pipeline)
            self._overlays[hand] = overlay

        logger.info("GestureGuard initialized (hands: %s, device: %s)",
                    ", ".join(h.value for h in hands), self._classifier.device)

    def _on_classifier_failed(self, hand=None, error=None, **kwargs):
        logger.critical("Classifier failure on %s hand: %s", hand, error)
        self._running = False

    def run_replay(self):
        """Drive all pipelines from the replay source until it is exhausted."""
        self._running = True
        for pipeline in self._pipelines:
            pipeline.event_bus.emit(Events.SYSTEM_STARTED, hand=pipeline.hand.value)
        window_name = self._config.get("visualization.window_name", "Not-OK Gesture Guard")

        try:
            while self._running:
                delta = self._source.step()
                if delta is None:
                    break

                with self._perf.measure("total"):
                    results = [pipeline.tick(delta) for pipeline in self._pipelines]
                # One host tick counts once, however many hands sampled on it
                if any(r.sampled for r in results):
                    self._perf.tick()

                if self._show:
                    for pipeline in self._pipelines:
                        cv2.imshow("%s (%s)" % (window_name, pipeline.hand.value),
                                   self._render(pipeline))
                    if cv2.waitKey(1) & 0xFF == ord("q"):
                        break

                if self._realtime and delta > 0:
                    time.sleep(delta)
        finally:
            self._shutdown()

    def _render(self, pipeline):
        overlay = self._overlays[pipeline.hand]
        joints = self._source.try_get_entire_hand(pipeline.hand)
        positions = np.stack([j.position for j in joints]) if joints else None
        return overlay.render(overlay.new_canvas(), positions, pipeline.state.to_dict())

    def run_benchmark(self, iterations: int = 500):
        """Time the classifier on random windows against the sampling budget."""
        dim = self._window.size * self._sampling.joint_count * 3
        rng = np.random.default_rng(0)
        logger.info("=== BENCHMARK MODE === (%d windows)", iterations)
        self._running = True
        try:
            for i in range(iterations):
                if not self._running:
                    logger.info("Benchmark interrupted at %d/%d", i, iterations)
                    break
                features = rng.normal(0.0, 0.005, size=dim).astype(np.float32)
                with self._perf.measure("total"):
                    with self._perf.measure("classification"):
                        self._classifier.predict(features)
                if i % 100 == 0:
                    logger.info("Benchmark progress: %d/%d", i, iterations)
        finally:
            self._shutdown()

    def _shutdown(self):
        logger.info("Shutting down...")
        self._running = False
        self._classifier.release()
        if self._show:
            cv2.destroyAllWindows()

        for pipeline in self._pipelines:
            pipeline.event_bus.emit(Events.SYSTEM_SHUTDOWN, hand=pipeline.hand.value)
            state = pipeline.state
            logger.info("%-5s hand: %d samples, %d classifications, %d alerts",
                        pipeline.hand.value, state.accepted_samples,
                        state.classifications, state.alerts)
        self._perf.print_report()
        logger.info("Shutdown complete (%d alerts).", self._alert_logger.total_alerts)

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Not-OK Gesture Guard - real-time disallowed hand gesture detection"
    )
    parser.add_argument(
        "--mode", choices=["run", "benchmark"], default="run",
        help="Operating mode"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--replay", type=str, default=None,
        help="Recorded joint stream (.npz) to run the detector on"
    )
    parser.add_argument(
        "--model", type=str, default=None,
        help="Classifier model path (overrides classifier.model_path)"
    )
    parser.add_argument(
        "--hand", choices=["left", "right", "both"], default=None,
        help="Hand to monitor (overrides tracking.hand)"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Logging level (overrides logging.level)"
    )
    parser.add_argument(
        "--show", action="store_true",
        help="Show the OpenCV alert overlay"
    )
    parser.add_argument(
        "--realtime", action="store_true",
        help="Pace replay at the recorded timestamps"
    )
    args = parser.parse_args(argv)
    if args.mode == "run" and not args.replay:
        parser.error("--replay is required in run mode")
    return args


def main(argv=None):
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    if args.model:
        config.set("classifier.model_path", args.model)
    if args.log_level:
        config.set("logging.level", args.log_level)
    if args.hand:
        config.set("tracking.hand", args.hand)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  NOT-OK GESTURE GUARD")
    logger.info("  Version: %s", config.get("system.version", "1.0.0"))
    logger.info("  Mode: %s", args.mode)
    logger.info("=" * 60)

    hand_name = config.get("tracking.hand", "right")
    if hand_name == "both":
        hands = [Handedness.RIGHT, Handedness.LEFT]
    else:
        hands = [Handedness.from_string(hand_name)]

    source = ReplayTrackingSource.from_file(args.replay) if args.replay else None

    try:
        app = GestureGuardApp(config, hands, source=source,
                              show=args.show, realtime=args.realtime)
    except ClassifierError as e:
        logger.error("Cannot start: %s", e)
        return 1

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    try:
        if args.mode == "benchmark":
            app.run_benchmark()
        else:
            app.run_replay()
    except ClassifierError as e:
        logger.error("Detection stopped: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
