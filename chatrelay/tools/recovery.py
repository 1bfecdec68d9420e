"""Fallback Recovery: rediscover the surface when the stored script no longer fits."""

import json
import time
from typing import Callable, Optional

from anthropic import APIError
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from rich.markup import escape

from chatrelay.config import Config
from chatrelay.constants import (
    INVENTORY_LLM_LIMIT,
    MODE_OPTION_PATH,
    TRANSCRIPT_CANDIDATES,
)
from chatrelay.errors import AutomationFailure
from chatrelay.llm import LLM, image_block, text_block
from chatrelay.models import InteractionResult, InteractionScript, Request, utcnow
from chatrelay.resolver import ContinueConversation, TargetMode
from chatrelay.tools.controller import InteractionController
from chatrelay.tools.extract import extract_result
from chatrelay.utils.logging import SessionLogger

console = Console()

RECOVERY_SYSTEM_PROMPT = (
    "You repair browser automation for a chat web application. The stored CSS "
    "selectors stopped working. From the element inventory (and screenshot, when "
    "given) choose selectors for the message input, the send button, the "
    "conversation message units, the stop button shown while an answer streams "
    "and the button that opens the model/mode menu. Prefer selectors taken "
    "verbatim from the inventory's 'selector' field. Leave a field out rather "
    "than guess."
)

PROPOSE_SELECTORS_TOOL = {
    "name": "propose_selectors",
    "description": "Propose CSS selectors for the chat page's controls",
    "input_schema": {
        "type": "object",
        "properties": {
            "input_selector": {"type": "string"},
            "submit_selector": {"type": "string"},
            "transcript_selector": {"type": "string"},
            "stop_selector": {"type": "string"},
            "mode_switcher_selector": {"type": "string"},
            "notes": {"type": "string"},
        },
        "required": ["input_selector"],
    },
}


class SelectorProposal(BaseModel):
    """Element references discovered on the live page."""

    input_selector: Optional[str] = Field(None, description="Message input (textarea or contenteditable)")
    submit_selector: Optional[str] = Field(None, description="Button that sends the message")
    transcript_selector: Optional[str] = Field(
        None, description="Selector matching every message unit of the conversation"
    )
    stop_selector: Optional[str] = Field(None, description="Button shown while an answer streams")
    mode_switcher_selector: Optional[str] = Field(None, description="Button opening the model/mode menu")
    notes: str = Field("", description="Anything unusual about the page")


def _haystack(element: dict) -> str:
    parts = [
        element.get("id", ""),
        element.get("testid", ""),
        element.get("aria_label", ""),
        element.get("placeholder", ""),
        element.get("text", ""),
    ]
    return " ".join(p for p in parts if p).lower()


def _is_button(element: dict) -> bool:
    return element.get("tag") == "button" or element.get("role") == "button"


def score_input(element: dict) -> int:
    if not element.get("editable") or element.get("disabled"):
        return 0
    hay = _haystack(element)
    score = 1
    if any(k in hay for k in ("prompt", "composer", "message", "ask", "chat")):
        score += 3
    if element.get("tag") == "textarea" or element.get("role") == "textbox":
        score += 1
    if element.get("placeholder"):
        score += 1
    return score


def score_submit(element: dict) -> int:
    if not _is_button(element):
        return 0
    hay = _haystack(element)
    if "stop" in hay:
        return 0
    score = 0
    if "send" in hay:
        score += 4
    if "submit" in hay:
        score += 3
    if score and element.get("testid"):
        score += 1
    return score


def score_stop(element: dict) -> int:
    if not _is_button(element):
        return 0
    hay = _haystack(element)
    if "stop" not in hay:
        return 0
    return 4 if element.get("testid") else 3


def score_switcher(element: dict) -> int:
    if not _is_button(element):
        return 0
    hay = _haystack(element)
    score = 0
    if "switcher" in hay:
        score += 4
    if "model" in hay:
        score += 3
    if "mode" in hay and "model" not in hay:
        score += 2
    if score and "dropdown" in hay:
        score += 1
    return score


def best_selector(inventory: list[dict], scorer: Callable[[dict], int]) -> Optional[str]:
    """Selector of the highest-scoring element (first wins ties), or None."""
    best, best_score = None, 0
    for element in inventory:
        score = scorer(element)
        if score > best_score:
            best, best_score = element.get("selector"), score
    return best


def rule_based_proposal(inventory: list[dict]) -> SelectorProposal:
    """Score inventory entries for each role the controller needs."""
    return SelectorProposal(
        input_selector=best_selector(inventory, score_input),
        submit_selector=best_selector(inventory, score_submit),
        stop_selector=best_selector(inventory, score_stop),
        mode_switcher_selector=best_selector(inventory, score_switcher),
    )


class FallbackRecovery:
    """Rebuilds the interaction script from what the page shows right now.

    Recovery owns the page for the whole request: it observes, discovers
    element references, then performs the request's steps itself with those
    references. The candidate script is only handed back after that run
    succeeds end to end.
    """

    def __init__(
        self,
        surface,
        config: Config,
        llm: Optional[LLM] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[SessionLogger] = None,
    ):
        """Initialize recovery.

        Args:
            surface: Page surface
            config: Configuration object
            llm: Optional LLM consulted for selector proposals
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
            logger: Optional session logger
        """
        self.surface = surface
        self.config = config
        self.llm = llm
        self.logger = logger
        self.controller = InteractionController(surface, config, sleep, clock, logger)

    def recover(
        self,
        request: Request,
        target: TargetMode,
        script: InteractionScript,
        reason: str,
    ) -> tuple[InteractionResult, InteractionScript]:
        """Complete ``request`` on a drifted surface and derive a new script.

        Args:
            request: The caller's request
            target: New conversation or continuation handle
            script: The script that just failed
            reason: Why the controller failed

        Returns:
            Tuple of (result, replacement script)

        Raises:
            AutomationFailure: If the page cannot be driven even after rediscovery
            LoginRequired: If the surface asks for authentication
            ResponseTimeout: If the answer never completes
        """
        console.print(f"[yellow]🩺 Page did not match the stored script ({escape(reason)}); exploring...[/yellow]")
        self._log("recover_start", reason=reason, script_version=script.version)

        try:
            return self._recover(request, target, script, reason)
        except AutomationFailure as e:
            self._log("recover_failed", error=str(e))
            raise AutomationFailure(f"Recovery failed: {e}") from e

    def _recover(
        self,
        request: Request,
        target: TargetMode,
        script: InteractionScript,
        reason: str,
    ) -> tuple[InteractionResult, InteractionScript]:
        self.controller.navigate(target)
        self.controller.check_authentication(script)

        inventory, screenshot = self.observe("initial")
        proposal = rule_based_proposal(inventory)

        if self.llm:
            advised = self.ask_llm(inventory, screenshot, reason)
            if advised:
                proposal = self.merge(proposal, self.verify(advised))

        if not proposal.input_selector:
            raise AutomationFailure("No message input found on the page")

        self._log("proposal", **proposal.model_dump())

        mode_steps = {k: list(v) for k, v in script.mode_steps.items()}
        continuing = isinstance(target, ContinueConversation)
        if not continuing and request.mode != script.default_mode:
            if not proposal.mode_switcher_selector:
                raise AutomationFailure("No mode switcher found on the page")
            # Discovery clicks through the menu, which also selects the mode
            mode_steps[request.mode] = self.discover_mode_steps(
                request.mode, proposal.mode_switcher_selector
            )

        candidate = script.model_copy(
            update={
                "version": script.version + 1,
                "source": "recovered",
                "discovered_at": utcnow(),
                "input_selector": proposal.input_selector,
                "submit_selector": proposal.submit_selector,
                "stop_selector": proposal.stop_selector or script.stop_selector,
                "mode_steps": mode_steps,
            }
        )

        self.controller.submit(request.message, candidate)
        self.controller.wait_for_completion(candidate)

        transcript_selector = self.discover_transcript(
            [proposal.transcript_selector, script.transcript_selector]
        )
        candidate = candidate.model_copy(update={"transcript_selector": transcript_selector})

        units = self.surface.texts(transcript_selector)
        result = extract_result(
            units,
            self.surface.url,
            candidate.role_prefixes,
            candidate.button_captions,
        )

        if self.logger:
            self.logger.save_script(candidate.model_dump(mode="json"))
        self._log("recover_done", version=candidate.version, handle=result.result_handle)
        console.print(f"[green]✓ Recovered; new script version {candidate.version}[/green]")
        return result, candidate

    def observe(self, label: str) -> tuple[list[dict], bytes]:
        """Full-page capture, then structured element inventory."""
        screenshot = self.surface.screenshot()
        inventory = self.surface.inventory()
        if self.logger:
            self.logger.save_artifact(f"{label}_screenshot", screenshot)
            self.logger.save_artifact(f"{label}_inventory", inventory)
        return inventory, screenshot

    def discover_mode_steps(self, mode: str, switcher: str) -> list[str]:
        """Click the switcher and the menu entries for ``mode``, recording each click."""
        labels = MODE_OPTION_PATH.get(mode)
        if not labels:
            raise AutomationFailure(f"Unknown mode '{mode}'")

        self.surface.click(switcher)
        steps = [switcher]

        for label in labels:
            inventory, _ = self.observe(f"menu_{label}")
            option = self._find_option(inventory, label, exclude=set(steps))
            if not option:
                raise AutomationFailure(f"Menu entry '{label}' for mode '{mode}' not found")
            self.surface.click(option)
            steps.append(option)

        self._log("mode_steps_discovered", mode=mode, steps=steps)
        return steps

    def _find_option(self, inventory: list[dict], label: str, exclude: set[str]) -> Optional[str]:
        wanted = label.lower()

        def score(element: dict) -> int:
            if element.get("selector") in exclude:
                return 0
            text = (element.get("text") or element.get("aria_label") or "").strip().lower()
            hay = _haystack(element)
            if wanted not in hay:
                return 0
            value = 1
            if element.get("role") in ("menuitem", "menuitemradio", "option"):
                value += 3
            if text.startswith(wanted):
                value += 2
            return value

        return best_selector(inventory, score)

    def discover_transcript(self, preferred: list[Optional[str]]) -> str:
        """Pick a selector that matches at least one full exchange."""
        candidates = [c for c in preferred if c] + TRANSCRIPT_CANDIDATES
        seen = set()
        for selector in candidates:
            if selector in seen:
                continue
            seen.add(selector)
            if self.surface.count(selector) >= 2:
                return selector
        raise AutomationFailure("Could not locate the transcript after submitting")

    def verify(self, proposal: SelectorProposal) -> SelectorProposal:
        """Drop proposed selectors that match nothing on the live page.

        Transcript and stop selectors are kept unchecked: neither is expected
        to match before a message is sent.
        """
        checked = {}
        for name in ("input_selector", "submit_selector", "mode_switcher_selector"):
            selector = getattr(proposal, name)
            if selector and self.surface.count(selector) > 0:
                checked[name] = selector
            else:
                checked[name] = None
        return proposal.model_copy(update=checked)

    @staticmethod
    def merge(base: SelectorProposal, override: SelectorProposal) -> SelectorProposal:
        """Overlay the non-empty fields of ``override`` on ``base``."""
        data = base.model_dump()
        for name, value in override.model_dump().items():
            if value:
                data[name] = value
        return SelectorProposal(**data)

    def ask_llm(
        self,
        inventory: list[dict],
        screenshot: bytes,
        reason: str,
    ) -> Optional[SelectorProposal]:
        """Ask the LLM to map the page's elements to the roles the controller needs."""
        content = []
        image = image_block(screenshot)
        if image:
            content.append(image)
        content.append(text_block(
            f"Failure: {reason}\n\n"
            f"Element inventory ({min(len(inventory), INVENTORY_LLM_LIMIT)} of {len(inventory)}):\n"
            f"{json.dumps(inventory[:INVENTORY_LLM_LIMIT], ensure_ascii=False)}"
        ))

        try:
            arguments = self.llm.call_tool(RECOVERY_SYSTEM_PROMPT, content, PROPOSE_SELECTORS_TOOL)
        except APIError as e:
            self._log("llm_error", error=str(e))
            console.print(f"[dim]LLM unavailable ({escape(str(e))}); using rule-based discovery only[/dim]")
            return None

        if arguments is None:
            return None
        try:
            proposal = SelectorProposal(**arguments)
        except (TypeError, ValidationError) as e:
            self._log("llm_bad_proposal", error=str(e))
            return None
        self._log("llm_proposal", **proposal.model_dump())
        return proposal

    def _log(self, event: str, **data) -> None:
        if self.logger:
            self.logger.log_event(event, **data)
