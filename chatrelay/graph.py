"""LangGraph orchestration of a relay request."""

import time
from typing import Callable, Optional

from langgraph.graph import END, StateGraph
from rich.console import Console

from chatrelay.config import Config
from chatrelay.errors import (
    AutomationFailure,
    LoginRequired,
    LoginTimeout,
    ResponseTimeout,
)
from chatrelay.llm import LLM
from chatrelay.models import (
    ConversationThread,
    InteractionScript,
    RelayOutcome,
    Request,
    utcnow,
)
from chatrelay.resolver import resolve_target, resolve_thread_name
from chatrelay.state import RelayState
from chatrelay.store import StateStore
from chatrelay.tools.controller import InteractionController
from chatrelay.tools.login_gate import LoginGate
from chatrelay.tools.recovery import FallbackRecovery
from chatrelay.utils.logging import SessionLogger

console = Console()


class RelayGraph:
    """Manages the LangGraph workflow for chatrelay.

    resolve -> attempt -> commit | login_gate | recover | END
    login_gate -> attempt | END
    recover -> commit | login_gate | END
    commit -> END
    """

    def __init__(
        self,
        surface,
        config: Config,
        store: Optional[StateStore] = None,
        llm: Optional[LLM] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[SessionLogger] = None,
    ):
        """Initialize the graph.

        Args:
            surface: Page surface shared by controller, login gate and recovery
            config: Configuration object
            store: State store (defaults to the config's state path)
            llm: Optional LLM for recovery
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
            logger: Optional session logger
        """
        self.surface = surface
        self.config = config
        self.store = store or StateStore(config.state_path)
        self.logger = logger

        self.controller = InteractionController(surface, config, sleep, clock, logger)
        self.login_gate = LoginGate(
            surface,
            poll_interval=config.login_poll_interval,
            timeout=config.login_timeout,
            sleep=sleep,
            clock=clock,
            logger=logger,
            entry_url=config.entry_url,
        )
        self.recovery = FallbackRecovery(surface, config, llm, sleep, clock, logger)

        self.app = self.build_graph()

    @classmethod
    def llm_from_config(cls, config: Config) -> Optional[LLM]:
        """Build the recovery LLM, or None when no Anthropic key is set."""
        if not config.anthropic_api_key:
            return None
        return LLM(LLM.parse_model_string(config.default_model), config.anthropic_api_key)

    def build_graph(self):
        """Build the LangGraph workflow.

        Returns:
            Compiled StateGraph
        """
        workflow = StateGraph(RelayState)

        workflow.add_node("resolve", self.resolve_node)
        workflow.add_node("attempt", self.attempt_node)
        workflow.add_node("login_gate", self.login_gate_node)
        workflow.add_node("recover", self.recover_node)
        workflow.add_node("commit", self.commit_node)

        workflow.set_entry_point("resolve")
        workflow.add_edge("resolve", "attempt")
        workflow.add_conditional_edges(
            "attempt",
            self._route,
            {
                "success": "commit",
                "login_required": "login_gate",
                "structural": "recover",
                "failed": END,
            },
        )
        workflow.add_conditional_edges(
            "login_gate",
            self._route,
            {"resumed": "attempt", "failed": END},
        )
        workflow.add_conditional_edges(
            "recover",
            self._route,
            {"success": "commit", "login_required": "login_gate", "failed": END},
        )
        workflow.add_edge("commit", END)

        return workflow.compile()

    @staticmethod
    def _route(state: RelayState) -> str:
        return state["outcome"]

    def resolve_node(self, state: RelayState) -> dict:
        """Pick the target conversation and the name the result registers under."""
        request = state["request"]
        threads = state["session"].threads
        target = resolve_target(request.thread, threads)
        thread = resolve_thread_name(request.thread, threads)
        self._log("resolved", thread=thread, target=type(target).__name__)
        return {"target": target, "thread": thread, "trail": ["resolve"]}

    def attempt_node(self, state: RelayState) -> dict:
        """One full controller attempt, classified by how it ended."""
        request = state["request"]
        console.print(f"[dim]💬 Sending to {self.config.entry_url} ({request.mode})...[/dim]")
        try:
            result = self.controller.run(
                request.mode, request.message, state["target"], state["script"]
            )
        except LoginRequired as e:
            return {"outcome": "login_required", "failure": e, "trail": ["attempt"]}
        except AutomationFailure as e:
            return {"outcome": "structural", "failure": e, "trail": ["attempt"]}
        except ResponseTimeout as e:
            return {"outcome": "failed", "failure": e, "trail": ["attempt"]}
        return {"outcome": "success", "result": result, "failure": None, "trail": ["attempt"]}

    def login_gate_node(self, state: RelayState) -> dict:
        """Wait for a human login, then hand back to a fresh attempt."""
        cycles = state.get("login_cycles", 0) + 1
        if cycles > self.config.max_login_cycles:
            error = LoginTimeout(
                f"Still redirected to login after {self.config.max_login_cycles} waits. "
                "Run `chatrelay login`, sign in, then retry the request."
            )
            return {"outcome": "failed", "failure": error, "login_cycles": cycles, "trail": ["login_gate"]}

        try:
            self.login_gate.wait(state["script"])
        except LoginTimeout as e:
            return {"outcome": "failed", "failure": e, "login_cycles": cycles, "trail": ["login_gate"]}
        return {"outcome": "resumed", "failure": None, "login_cycles": cycles, "trail": ["login_gate"]}

    def recover_node(self, state: RelayState) -> dict:
        """Rediscover the surface and finish the request with fresh references."""
        try:
            result, new_script = self.recovery.recover(
                state["request"],
                state["target"],
                state["script"],
                str(state["failure"]),
            )
        except LoginRequired as e:
            return {"outcome": "login_required", "failure": e, "trail": ["recover"]}
        except (AutomationFailure, ResponseTimeout) as e:
            return {"outcome": "failed", "failure": e, "trail": ["recover"]}
        # Markers added by local config stay in config
        new_script = new_script.model_copy(
            update={"busy_markers": list(state["stored_script"].busy_markers)}
        )
        return {
            "outcome": "success",
            "result": result,
            "new_script": new_script,
            "recovered": True,
            "failure": None,
            "trail": ["recover"],
        }

    def commit_node(self, state: RelayState) -> dict:
        """Persist the thread handle (and a recovered script) in one write."""
        session = state["session"]
        result = state["result"]
        thread = state["thread"]
        now = utcnow()

        threads = dict(session.threads)
        # An empty answer on a fresh chat leaves no conversation to point at
        if thread in threads or result.result_handle.rstrip("/") != self.config.entry_url.rstrip("/"):
            threads[thread] = ConversationThread(remote_handle=result.result_handle, last_used=now)

        update = {"threads": threads, "last_updated": now}
        if state.get("new_script") is not None:
            update["current_script"] = state["new_script"]

        self.store.save(session.model_copy(update=update))
        self._log(
            "committed",
            thread=thread,
            handle=result.result_handle,
            script_replaced="current_script" in update,
        )
        return {"trail": ["commit"]}

    def handle_ask(self, request: Request) -> RelayOutcome:
        """Relay one request end to end.

        Args:
            request: Accepted caller request

        Returns:
            RelayOutcome (success with result, or the failure kind)
        """
        session = self.store.load()
        stored_script = session.effective_script()
        script = stored_script.with_busy_markers(self.config.extra_busy_markers)
        self._log("request", mode=request.mode, thread=request.thread, script_version=script.version)

        initial: RelayState = {
            "request": request,
            "session": session,
            "script": script,
            "stored_script": stored_script,
            "result": None,
            "new_script": None,
            "failure": None,
            "login_cycles": 0,
            "recovered": False,
            "trail": [],
        }
        final = self.app.invoke(
            initial,
            config={"recursion_limit": 12 + 6 * self.config.max_login_cycles},
        )

        failure = final.get("failure")
        if failure is not None:
            self._log("failed", kind=failure.kind, error=str(failure), trail=final.get("trail"))
            return RelayOutcome(
                success=False,
                request=request,
                thread=final["thread"],
                failure_kind=failure.kind,
                error=str(failure),
            )

        return RelayOutcome(
            success=True,
            request=request,
            thread=final["thread"],
            result=final["result"],
            recovered=final.get("recovered", False),
        )

    def handle_login(self) -> bool:
        """Open the entry point and wait for a login if one is needed.

        Returns:
            True if the page was already authenticated
        """
        session = self.store.load()
        script = session.effective_script()
        self.surface.goto(self.config.entry_url)
        if not script.is_login_url(self.surface.url):
            return True
        self.login_gate.wait(script)
        return False

    def _log(self, event: str, **data) -> None:
        if self.logger:
            self.logger.log_event(event, **data)


def forget_thread(store: StateStore, name: str) -> bool:
    """Remove a thread from the state file. Returns True if it existed."""
    session = store.load()
    if name not in session.threads:
        return False
    threads = {k: v for k, v in session.threads.items() if k != name}
    store.save(session.model_copy(update={"threads": threads, "last_updated": utcnow()}))
    return True


def reset_script(store: StateStore) -> Optional[InteractionScript]:
    """Drop the stored script override, returning the one removed."""
    session = store.load()
    previous = session.current_script
    if previous is not None:
        store.save(session.model_copy(update={"current_script": None, "last_updated": utcnow()}))
    return previous
