"""Playwright launch helpers and the page surface the relay drives.

The browser runs from a persistent Chromium profile so that the remote
service's login survives between runs. ``PageSurface`` is the only place that
talks to Playwright; everything above it sees a small set of page operations
and ``AutomationFailure`` when one of them does not work.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

from playwright.sync_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    sync_playwright,
)

from chatrelay.constants import (
    DEFAULT_ACTION_TIMEOUT_MS,
    DEFAULT_NAV_TIMEOUT_MS,
    INVENTORY_TEXT_LIMIT,
)
from chatrelay.errors import AutomationFailure

# Collects visible interactive elements with a usable CSS selector for each
INVENTORY_JS = """
(textLimit) => {
  const cssEscape = (v) => (window.CSS && CSS.escape) ? CSS.escape(v) : v.replace(/"/g, '\\\\"');
  const selectorFor = (el) => {
    if (el.id) return '#' + cssEscape(el.id);
    const testid = el.getAttribute('data-testid');
    if (testid) return '[data-testid="' + testid + '"]';
    const label = el.getAttribute('aria-label');
    if (label) return el.tagName.toLowerCase() + '[aria-label="' + label + '"]';
    const name = el.getAttribute('name');
    if (name) return el.tagName.toLowerCase() + '[name="' + name + '"]';
    const parts = [];
    let node = el;
    while (node && node.nodeType === 1 && node !== document.body) {
      let idx = 1;
      let sib = node.previousElementSibling;
      while (sib) { if (sib.tagName === node.tagName) idx++; sib = sib.previousElementSibling; }
      parts.unshift(node.tagName.toLowerCase() + ':nth-of-type(' + idx + ')');
      node = node.parentElement;
    }
    return 'body > ' + parts.join(' > ');
  };
  const isVisible = (el) => {
    const r = el.getBoundingClientRect();
    const s = window.getComputedStyle(el);
    return r.width > 0 && r.height > 0 && s.visibility !== 'hidden' && s.display !== 'none';
  };
  const query = 'button, a[href], input, textarea, select, [role="button"], [role="textbox"], '
    + '[role="menuitem"], [role="option"], [contenteditable="true"], [data-testid]';
  const out = [];
  for (const el of document.querySelectorAll(query)) {
    if (!isVisible(el)) continue;
    out.push({
      tag: el.tagName.toLowerCase(),
      role: el.getAttribute('role') || '',
      id: el.id || '',
      testid: el.getAttribute('data-testid') || '',
      aria_label: el.getAttribute('aria-label') || '',
      placeholder: el.getAttribute('placeholder') || el.getAttribute('data-placeholder') || '',
      text: (el.innerText || el.value || '').trim().slice(0, textLimit),
      editable: el.isContentEditable || el.tagName === 'TEXTAREA'
        || (el.tagName === 'INPUT' && ['text', 'search', ''].includes(el.type)),
      disabled: !!el.disabled,
      selector: selectorFor(el),
    });
  }
  return out;
}
"""


def launch_persistent(
    profile_dir: Path,
    *,
    headless: bool = False,
) -> Tuple[Playwright, BrowserContext, Page]:
    """Launch a persistent Chromium context backed by ``profile_dir``.

    The directory is created when missing so repeated runs reuse the same
    cookies and local storage. The UI stays visible by default because the
    login gate expects a human to authenticate in that window.
    """
    profile_dir.mkdir(parents=True, exist_ok=True)

    playwright = sync_playwright().start()
    try:
        context = playwright.chromium.launch_persistent_context(
            str(profile_dir),
            headless=headless,
        )
    except PlaywrightError:
        playwright.stop()
        raise

    page = context.pages[0] if context.pages else context.new_page()
    return playwright, context, page


def shutdown(playwright: Optional[Playwright], context: Optional[BrowserContext]) -> None:
    """Dispose of Playwright resources used by ``launch_persistent``."""
    try:
        if context:
            context.close()
    finally:
        if playwright:
            playwright.stop()


class PageSurface:
    """Page operations used by the controller, login gate and recovery."""

    def __init__(
        self,
        page: Page,
        nav_timeout_ms: int = DEFAULT_NAV_TIMEOUT_MS,
        action_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS,
    ):
        self.page = page
        self.nav_timeout_ms = nav_timeout_ms
        self.action_timeout_ms = action_timeout_ms

    @property
    def url(self) -> str:
        return self.page.url

    def goto(self, url: str) -> None:
        try:
            self.page.goto(url, wait_until="domcontentloaded", timeout=self.nav_timeout_ms)
        except PlaywrightError as e:
            raise AutomationFailure(f"Navigation to {url} failed: {e}") from e

    def exists(self, selector: str, timeout_ms: Optional[int] = None) -> bool:
        """Wait up to ``timeout_ms`` for a visible match of ``selector``."""
        wait_ms = self.action_timeout_ms if timeout_ms is None else timeout_ms
        if wait_ms <= 0:
            # Playwright treats a zero timeout as "wait forever"
            return self.visible(selector)
        try:
            self.page.locator(selector).first.wait_for(state="visible", timeout=wait_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError:
            # Malformed selector
            return False

    def visible(self, selector: str) -> bool:
        """Check visibility right now, without waiting."""
        try:
            return self.page.locator(selector).first.is_visible()
        except PlaywrightError:
            return False

    def count(self, selector: str) -> int:
        try:
            return self.page.locator(selector).count()
        except PlaywrightError:
            return 0

    def click(self, selector: str) -> None:
        try:
            self.page.locator(selector).first.click(timeout=self.action_timeout_ms)
        except PlaywrightError as e:
            raise AutomationFailure(f"Cannot click {selector}: {e}") from e

    def fill(self, selector: str, text: str) -> None:
        try:
            self.page.locator(selector).first.fill(text, timeout=self.action_timeout_ms)
        except PlaywrightError as e:
            raise AutomationFailure(f"Cannot fill {selector}: {e}") from e

    def press(self, selector: str, key: str) -> None:
        try:
            self.page.locator(selector).first.press(key, timeout=self.action_timeout_ms)
        except PlaywrightError as e:
            raise AutomationFailure(f"Cannot press {key} in {selector}: {e}") from e

    def texts(self, selector: str) -> list[str]:
        try:
            return self.page.locator(selector).all_inner_texts()
        except PlaywrightError as e:
            raise AutomationFailure(f"Cannot read {selector}: {e}") from e

    def body_text(self) -> str:
        try:
            return self.page.inner_text("body", timeout=self.action_timeout_ms)
        except PlaywrightError as e:
            raise AutomationFailure(f"Cannot read page text: {e}") from e

    def screenshot(self) -> bytes:
        try:
            return self.page.screenshot(full_page=True)
        except PlaywrightError as e:
            raise AutomationFailure(f"Screenshot failed: {e}") from e

    def inventory(self) -> list[dict]:
        try:
            return self.page.evaluate(INVENTORY_JS, INVENTORY_TEXT_LIMIT)
        except PlaywrightError as e:
            raise AutomationFailure(f"Element inventory failed: {e}") from e
