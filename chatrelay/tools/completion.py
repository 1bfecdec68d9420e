"""Completion detection for a response that has no explicit "done" event."""

import time
from typing import Callable, Optional

from chatrelay.errors import ResponseTimeout
from chatrelay.utils.logging import SessionLogger


class BusyDetector:
    """Decides whether the remote is still producing its answer.

    The surface is busy while the stop button is visible or a known busy
    marker appears in the page chrome. Text inside transcript units is never
    matched: the caller's message and earlier answers may quote a marker.
    """

    def __init__(
        self,
        markers: list[str],
        stop_selector: Optional[str] = None,
        transcript_selector: Optional[str] = None,
    ):
        """Initialize detector.

        Args:
            markers: Transient texts shown while the answer is in progress
            stop_selector: Selector of the stop/cancel button, if any
            transcript_selector: Selector of the message units excluded from
                marker matching
        """
        self.markers = list(markers)
        self.stop_selector = stop_selector
        self.transcript_selector = transcript_selector

    def is_busy(self, surface) -> bool:
        if self.stop_selector and surface.visible(self.stop_selector):
            return True
        text = self.chrome_text(surface)
        return any(marker in text for marker in self.markers)

    def chrome_text(self, surface) -> str:
        """Page text with every transcript unit cut out."""
        text = surface.body_text()
        if self.transcript_selector:
            for unit in surface.texts(self.transcript_selector):
                if unit:
                    text = text.replace(unit, "")
        return text


class CompletionWaiter:
    """Polls a ``BusyDetector`` until the surface has been quiet twice in a row."""

    def __init__(
        self,
        detector: BusyDetector,
        poll_interval: float,
        quiet_interval: float,
        timeout: float,
        settle_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[SessionLogger] = None,
    ):
        """Initialize waiter.

        Args:
            detector: Busy detection heuristic
            poll_interval: Seconds between busy checks
            quiet_interval: Seconds between the two idle checks that confirm completion
            timeout: Wall-clock budget in seconds
            settle_delay: Seconds to wait before the first check, so the busy
                markers of a just-submitted message have time to appear
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
            logger: Optional session logger
        """
        self.detector = detector
        self.poll_interval = poll_interval
        self.quiet_interval = quiet_interval
        self.timeout = timeout
        self.settle_delay = settle_delay
        self.sleep = sleep
        self.clock = clock
        self.logger = logger

    def wait(self, surface) -> float:
        """Block until the response is complete.

        Args:
            surface: Page surface to observe

        Returns:
            Seconds spent waiting

        Raises:
            ResponseTimeout: If the quiet condition is not reached within the budget
        """
        start = self.clock()
        deadline = start + self.timeout
        polls = 0

        if self.settle_delay:
            self.sleep(self.settle_delay)

        while self.clock() < deadline:
            polls += 1
            if not self.detector.is_busy(surface):
                # Reject flicker: the markers must stay gone across a quiet interval
                self.sleep(self.quiet_interval)
                if not self.detector.is_busy(surface):
                    elapsed = self.clock() - start
                    if self.logger:
                        self.logger.log_event("response_complete", polls=polls, seconds=elapsed)
                    return elapsed
            self.sleep(self.poll_interval)

        if self.logger:
            self.logger.log_event("response_timeout", polls=polls, budget=self.timeout)
        raise ResponseTimeout(
            f"Response still in progress after {self.timeout:.0f}s"
        )
