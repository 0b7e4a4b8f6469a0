"""
Structured logging with alert event logging.
"""

import os
import logging
import logging.handlers
import time
from collections import deque


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure structured logging for the application."""
    # Compact console format
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    # Verbose format for log file
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class AlertLogger:
    """Records not-ok alerts for the session summary.

    Subscribe ``on_alert`` to ``Events.ALERT_RAISED`` on each pipeline bus.
    """

    def __init__(self, max_history=1000):
        self.logger = logging.getLogger("gesture_events")
        self._alert_history = deque(maxlen=max_history)
        self._total_alerts = 0

    def on_alert(self, hand=None, probability=0.0, text="", **kwargs):
        """Event handler for an alert."""
        self.log_alert(hand, probability, text)

    def log_alert(self, hand, probability, text=""):
        entry = {
            "timestamp": time.time(),
            "hand": hand,
            "probability": probability,
            "text": text,
        }
        self._alert_history.append(entry)
        self._total_alerts += 1
        self.logger.info(
            "Alert: %-6s | p(not_ok): %.3f | %s",
            hand or "?",
            probability,
            text,
        )

    def get_history(self, last_n=None):
        """Get recent alert history."""
        history = list(self._alert_history)
        if last_n:
            return history[-last_n:]
        return history

    @property
    def total_alerts(self):
        """Alerts logged this session, including ones dropped from history."""
        return self._total_alerts
