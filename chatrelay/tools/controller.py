"""Interaction Controller: one complete request/response cycle on the remote surface."""

import time
from typing import Callable, Optional

from chatrelay.config import Config
from chatrelay.errors import AutomationFailure, LoginRequired
from chatrelay.models import InteractionResult, InteractionScript
from chatrelay.resolver import ContinueConversation, TargetMode
from chatrelay.tools.completion import BusyDetector, CompletionWaiter
from chatrelay.tools.extract import extract_result
from chatrelay.utils.logging import SessionLogger


class InteractionController:
    """Drives navigation, mode selection, submission, completion and extraction.

    ``run`` is a single bounded operation. A failure at any step aborts the
    whole attempt; nothing is resumed and nothing is persisted here.
    """

    def __init__(
        self,
        surface,
        config: Config,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[SessionLogger] = None,
    ):
        """Initialize controller.

        Args:
            surface: Page surface (exclusively owned while ``run`` executes)
            config: Timeouts, intervals and the canonical entry URL
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
            logger: Optional session logger
        """
        self.surface = surface
        self.config = config
        self.sleep = sleep
        self.clock = clock
        self.logger = logger

    def run(
        self,
        mode: str,
        message: str,
        target: TargetMode,
        script: InteractionScript,
    ) -> InteractionResult:
        """Perform one request/response cycle.

        Args:
            mode: Requested mode
            message: Message text, submitted exactly as given
            target: New conversation or continuation handle
            script: Selectors and markers describing the surface

        Returns:
            InteractionResult (empty text when no answer was rendered)

        Raises:
            LoginRequired: The surface redirected to authentication
            AutomationFailure: An expected affordance was missing
            ResponseTimeout: The answer never completed within budget
        """
        continuing = isinstance(target, ContinueConversation)

        self.navigate(target)
        self.check_authentication(script)

        if not continuing and mode != script.default_mode:
            self.select_mode(mode, script)

        self.submit(message, script)
        self.wait_for_completion(script)

        units = self.surface.texts(script.transcript_selector)
        if not units:
            # At least the submitted message must be there
            raise AutomationFailure(
                f"Transcript {script.transcript_selector} matched nothing after submitting"
            )
        result = extract_result(
            units,
            self.surface.url,
            script.role_prefixes,
            script.button_captions,
        )
        self._log(
            "extracted",
            units=len(units),
            chars=len(result.response_text),
            handle=result.result_handle,
        )
        return result

    def navigate(self, target: TargetMode) -> None:
        url = target.handle if isinstance(target, ContinueConversation) else self.config.entry_url
        self._log("navigate", url=url)
        self.surface.goto(url)

    def check_authentication(self, script: InteractionScript) -> None:
        url = self.surface.url
        if script.is_login_url(url):
            self._log("login_required", url=url)
            raise LoginRequired(f"Authentication required (redirected to {url})")

    def select_mode(self, mode: str, script: InteractionScript) -> None:
        """Click through the mode-selection steps for ``mode``."""
        steps = script.mode_steps.get(mode)
        if not steps:
            raise AutomationFailure(f"No mode-selection steps known for mode '{mode}'")

        for index, selector in enumerate(steps, start=1):
            if not self.surface.exists(selector):
                raise AutomationFailure(
                    f"Mode selection for '{mode}' failed at step {index}: {selector} not found"
                    + (" (unverified path)" if mode in script.unverified_modes else "")
                )
            self.surface.click(selector)
        self._log("mode_selected", mode=mode, steps=len(steps))

    def submit(self, message: str, script: InteractionScript) -> None:
        if not self.surface.exists(script.input_selector):
            raise AutomationFailure(f"Input {script.input_selector} not found")

        self.surface.fill(script.input_selector, message)

        if script.submit_selector:
            if not self.surface.exists(script.submit_selector):
                raise AutomationFailure(f"Submit control {script.submit_selector} not found")
            self.surface.click(script.submit_selector)
        else:
            self.surface.press(script.input_selector, "Enter")
        self._log("submitted", chars=len(message))

    def wait_for_completion(self, script: InteractionScript) -> None:
        waiter = CompletionWaiter(
            BusyDetector(script.busy_markers, script.stop_selector, script.transcript_selector),
            poll_interval=self.config.poll_interval,
            quiet_interval=self.config.quiet_interval,
            timeout=self.config.response_timeout,
            settle_delay=self.config.settle_delay,
            sleep=self.sleep,
            clock=self.clock,
            logger=self.logger,
        )
        waiter.wait(self.surface)

    def _log(self, event: str, **data) -> None:
        if self.logger:
            self.logger.log_event(event, **data)
