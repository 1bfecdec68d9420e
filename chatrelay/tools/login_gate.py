"""Login Gate: wait for a human to authenticate in the browser window."""

import time
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlparse

from rich.console import Console

from chatrelay.errors import LoginTimeout
from chatrelay.models import InteractionScript
from chatrelay.utils.logging import SessionLogger

console = Console()


class GateState(str, Enum):
    CHECKING = "checking"
    WAITING = "waiting"
    TIMED_OUT = "timed_out"
    RESUMED = "resumed"


class LoginGate:
    """Suspends the request until the authentication gate clears.

    The gate never navigates while waiting, so a human can type credentials
    undisturbed. It only observes: the gate is clear once the location has left
    the authentication pages and is back on the service (same host as the
    entry point) or shows the message input. Whether the rest of the page
    still matches the script is for the next attempt to find out.
    """

    def __init__(
        self,
        surface,
        poll_interval: float,
        timeout: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[SessionLogger] = None,
        entry_url: Optional[str] = None,
    ):
        """Initialize login gate.

        Args:
            surface: Page surface the human is logging in on
            poll_interval: Seconds between checks
            timeout: Wall-clock budget in seconds
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
            logger: Optional session logger
            entry_url: Entry point of the service; its host marks a finished login
        """
        self.surface = surface
        self.entry_host = urlparse(entry_url).netloc if entry_url else None
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock
        self.logger = logger
        self.state = GateState.CHECKING

    def is_authenticated(self, script: InteractionScript) -> bool:
        url = self.surface.url
        if script.is_login_url(url):
            return False
        if self.entry_host and urlparse(url).netloc == self.entry_host:
            return True
        # Off the login pages but elsewhere (e.g. a single sign-on provider)
        return self.surface.visible(script.input_selector)

    def wait(self, script: InteractionScript) -> GateState:
        """Block until the login completes.

        Args:
            script: Current script (login markers and input selector)

        Returns:
            GateState.RESUMED

        Raises:
            LoginTimeout: If the gate does not clear within the budget
        """
        self.state = GateState.WAITING
        deadline = self.clock() + self.timeout
        polls = 0

        console.print(
            "[yellow]🔐 Login required. Log in in the browser window; "
            f"waiting up to {self.timeout:.0f}s...[/yellow]"
        )
        if self.logger:
            self.logger.log_event("login_wait", url=self.surface.url, budget=self.timeout)

        while self.clock() < deadline:
            self.sleep(self.poll_interval)
            polls += 1
            if self.is_authenticated(script):
                self.state = GateState.RESUMED
                console.print("[green]✓ Login detected, retrying request[/green]")
                if self.logger:
                    self.logger.log_event("login_resumed", polls=polls)
                return self.state

        self.state = GateState.TIMED_OUT
        if self.logger:
            self.logger.log_event("login_timeout", polls=polls)
        raise LoginTimeout(
            f"No login completed within {self.timeout:.0f}s. "
            "Run `chatrelay login`, sign in, then retry the request."
        )
