"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path

import pytest

from chatrelay.config import Config
from chatrelay.constants import (
    DEFAULT_ENTRY_URL,
    DEFAULT_INPUT_SELECTOR,
    DEFAULT_MODE_STEPS,
    DEFAULT_STOP_SELECTOR,
    DEFAULT_SUBMIT_SELECTOR,
    DEFAULT_TRANSCRIPT_SELECTOR,
)
from chatrelay.errors import AutomationFailure
from chatrelay.store import StateStore

LOGIN_URL = "https://auth.openai.com/log-in"


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of blocking."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self.listeners = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        for listener in self.listeners:
            listener()


class FakeChatSurface:
    """In-memory stand-in for the chat page.

    Selectors in ``present`` exist and are visible. Clicking the submit
    control (or pressing Enter in the input) appends the filled message and
    ``answer`` to the transcript, then keeps the page busy for
    ``busy_ticks`` clock ticks. A new chat gets a conversation URL on submit.
    """

    def __init__(self, clock: FakeClock, entry_url: str = DEFAULT_ENTRY_URL):
        self.clock = clock
        self.entry_url = entry_url
        self._url = "about:blank"

        self.present = {
            DEFAULT_INPUT_SELECTOR,
            DEFAULT_SUBMIT_SELECTOR,
            *DEFAULT_MODE_STEPS["pro"],
        }
        self.input_selector = DEFAULT_INPUT_SELECTOR
        self.submit_selector = DEFAULT_SUBMIT_SELECTOR
        self.transcript_selectors = {DEFAULT_TRANSCRIPT_SELECTOR}
        self.stop_selector = DEFAULT_STOP_SELECTOR

        self.answer = "ChatGPT said:\nThought for 12s\nThe answer is 42.\nCopy\nGood response"
        self.busy_ticks = 2
        self.busy_marker = "Stop generating"
        self.conversation_id = "68f1c0de-1234"

        self.logged_in = True
        self.login_after_ticks = None
        self.redirect_always = False

        self.inventory_items = []
        self.transcript = []
        self.visited = []
        self.clicks = []
        self.filled = []
        self.busy = 0

        clock.listeners.append(self.tick)

    # Simulation hooks

    def tick(self) -> None:
        if self.busy > 0:
            self.busy -= 1
        if not self.logged_in and self.login_after_ticks is not None:
            self.login_after_ticks -= 1
            if self.login_after_ticks <= 0:
                # The human finished logging in; the site lands on the app
                self.logged_in = True
                self._url = self.entry_url

    def _submit(self) -> None:
        message = self.filled[-1][1] if self.filled else ""
        if self.answer is None:
            # The message shows up but no answer is ever rendered
            self.transcript.append(message)
            return
        self.transcript.extend([message, self.answer])
        self.busy = self.busy_ticks
        if self._url.rstrip("/") == self.entry_url.rstrip("/"):
            self._url = f"{self.entry_url}c/{self.conversation_id}"

    # Surface operations

    @property
    def url(self) -> str:
        return self._url

    def goto(self, url: str) -> None:
        self.visited.append(url)
        if not self.logged_in or self.redirect_always:
            self.logged_in = False
            self._url = LOGIN_URL
            return
        self._url = url
        if url.rstrip("/") == self.entry_url.rstrip("/"):
            self.transcript = []

    def exists(self, selector: str, timeout_ms=None) -> bool:
        return self.visible(selector)

    def visible(self, selector: str) -> bool:
        if selector == self.stop_selector:
            return self.busy > 0
        if self._url == LOGIN_URL:
            return False
        return selector in self.present

    def count(self, selector: str) -> int:
        if selector in self.transcript_selectors:
            return len(self.transcript)
        return 1 if self.visible(selector) else 0

    def click(self, selector: str) -> None:
        if not self.visible(selector):
            raise AutomationFailure(f"Cannot click {selector}")
        self.clicks.append(selector)
        if selector == self.submit_selector:
            self._submit()

    def fill(self, selector: str, text: str) -> None:
        if not self.visible(selector):
            raise AutomationFailure(f"Cannot fill {selector}")
        self.filled.append((selector, text))

    def press(self, selector: str, key: str) -> None:
        if key == "Enter" and selector == self.input_selector:
            self._submit()

    def texts(self, selector: str) -> list[str]:
        if selector in self.transcript_selectors:
            return list(self.transcript)
        return []

    def body_text(self) -> str:
        text = "\n".join(self.transcript)
        if self.busy > 0:
            text += f"\n{self.busy_marker}"
        return text

    def screenshot(self) -> bytes:
        return b"\x89PNG fake"

    def inventory(self) -> list[dict]:
        return list(self.inventory_items)


def drift(surface: FakeChatSurface) -> None:
    """Rename the page's controls so the built-in selectors stop matching."""
    surface.input_selector = "div#composer textarea"
    surface.submit_selector = '[data-testid="composer-submit-button"]'
    surface.transcript_selectors = {'article[data-testid^="conversation-turn"]'}
    surface.present = {surface.input_selector, surface.submit_selector}
    surface.inventory_items = [
        {
            "tag": "a", "role": "", "id": "", "testid": "", "aria_label": "",
            "placeholder": "", "text": "New chat", "editable": False,
            "disabled": False, "selector": 'a[href="/"]',
        },
        {
            "tag": "textarea", "role": "", "id": "", "testid": "",
            "aria_label": "Chat with the assistant", "placeholder": "Ask anything",
            "text": "", "editable": True, "disabled": False,
            "selector": surface.input_selector,
        },
        {
            "tag": "button", "role": "", "id": "", "testid": "composer-submit-button",
            "aria_label": "Send prompt", "placeholder": "", "text": "",
            "editable": False, "disabled": False, "selector": surface.submit_selector,
        },
    ]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    """Fake clock; its ``sleep`` advances time."""
    return FakeClock()


@pytest.fixture
def surface(clock):
    """Logged-in chat page with the built-in selectors."""
    return FakeChatSurface(clock)


@pytest.fixture
def mock_config(temp_dir):
    """Create a mock configuration with short intervals."""
    return Config(
        anthropic_api_key=None,
        home=temp_dir,
        poll_interval=1.0,
        quiet_interval=1.0,
        settle_delay=0.0,
        response_timeout=30.0,
        login_poll_interval=1.0,
        login_timeout=10.0,
        max_login_cycles=2,
    )


@pytest.fixture
def store(mock_config):
    """State store inside the temp home."""
    return StateStore(mock_config.state_path)
