"""Status side-channel: short progress texts with a severity, delivered to a callback."""

import logging
import threading
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class StatusLevel(str, Enum):
    PROGRESS = "progress"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    IDLE = "idle"  # clear any status shown


StatusCallback = Callable[[StatusLevel, str], None]


class StatusReporter:
    """
    Forwards session status to an optional callback.

    Callback failures are logged, never propagated into the protocol flow.
    """

    def __init__(self, callback: StatusCallback | None = None) -> None:
        self._callback = callback

    def __call__(self, level: StatusLevel, text: str) -> None:
        logger.debug("status %s: %s", level.value, text)
        if self._callback is None:
            return
        try:
            self._callback(level, text)
        except Exception as e:
            logger.warning("Status callback failed: %s", e)

    def clear_after(self, delay: float) -> threading.Timer | None:
        """Emit IDLE after ``delay`` seconds so the last status stays visible briefly."""
        if self._callback is None:
            return None
        if delay <= 0:
            self(StatusLevel.IDLE, "")
            return None
        timer = threading.Timer(delay, self, args=(StatusLevel.IDLE, ""))
        timer.daemon = True
        timer.start()
        return timer
