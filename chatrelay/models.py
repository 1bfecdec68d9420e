"""Data models for requests, threads, interaction scripts and session state."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatrelay.constants import (
    DEFAULT_BUSY_MARKERS,
    DEFAULT_BUTTON_CAPTIONS,
    DEFAULT_INPUT_SELECTOR,
    DEFAULT_LOGIN_URL_MARKERS,
    DEFAULT_MODE,
    DEFAULT_MODE_STEPS,
    DEFAULT_ROLE_PREFIXES,
    DEFAULT_STOP_SELECTOR,
    DEFAULT_SUBMIT_SELECTOR,
    DEFAULT_TRANSCRIPT_SELECTOR,
    DEFAULT_UNVERIFIED_MODES,
)

Mode = Literal["thinking", "thinking-extended", "pro"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Request(BaseModel):
    """A caller request. Immutable once accepted."""

    model_config = ConfigDict(frozen=True)

    mode: Mode = Field(DEFAULT_MODE, description="Capability tier to use")
    message: str = Field(description="Opaque text sent to the remote unmodified")
    thread: Optional[str] = Field(None, description="Thread name to continue or register")

    @field_validator("message")
    @classmethod
    def _message_not_empty(cls, value: str) -> str:
        # Only checked, never stripped: the message is a verbatim payload
        if not value.strip():
            raise ValueError("message must not be empty")
        return value

    @field_validator("thread")
    @classmethod
    def _thread_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class ConversationThread(BaseModel):
    """A caller-named handle to one remote conversation."""

    model_config = ConfigDict(populate_by_name=True)

    remote_handle: str = Field(alias="remoteHandle", description="URL of the remote conversation")
    last_used: Optional[datetime] = Field(None, alias="lastUsed")


class InteractionScript(BaseModel):
    """Everything the controller needs to drive the surface.

    A script is a value: recovery builds a whole new one and the store swaps
    it in, so a stored script is always complete and runnable on its own.
    """

    version: int = Field(1, description="Bumped on every replacement")
    source: Literal["builtin", "recovered"] = "builtin"
    discovered_at: Optional[datetime] = None

    login_url_markers: list[str] = Field(default_factory=lambda: list(DEFAULT_LOGIN_URL_MARKERS))
    input_selector: str = DEFAULT_INPUT_SELECTOR
    submit_selector: Optional[str] = Field(
        DEFAULT_SUBMIT_SELECTOR, description="None means press Enter in the input"
    )
    transcript_selector: str = DEFAULT_TRANSCRIPT_SELECTOR
    stop_selector: Optional[str] = DEFAULT_STOP_SELECTOR
    busy_markers: list[str] = Field(default_factory=lambda: list(DEFAULT_BUSY_MARKERS))

    default_mode: Mode = DEFAULT_MODE
    mode_steps: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_MODE_STEPS.items()},
        description="Selectors clicked in order to select a non-default mode",
    )
    unverified_modes: list[str] = Field(default_factory=lambda: list(DEFAULT_UNVERIFIED_MODES))

    role_prefixes: list[str] = Field(default_factory=lambda: list(DEFAULT_ROLE_PREFIXES))
    button_captions: list[str] = Field(default_factory=lambda: list(DEFAULT_BUTTON_CAPTIONS))

    def is_login_url(self, url: str) -> bool:
        return any(marker in url for marker in self.login_url_markers)

    def with_busy_markers(self, extra: list[str]) -> "InteractionScript":
        """Return a copy whose busy markers include ``extra`` (order kept, no duplicates)."""
        markers = list(self.busy_markers)
        for marker in extra:
            if marker not in markers:
                markers.append(marker)
        return self.model_copy(update={"busy_markers": markers})


class SessionState(BaseModel):
    """The persisted document: threads, current script, freshness stamp."""

    model_config = ConfigDict(populate_by_name=True)

    threads: dict[str, ConversationThread] = Field(default_factory=dict)
    current_script: Optional[InteractionScript] = Field(None, alias="currentScript")
    last_updated: Optional[datetime] = Field(None, alias="lastUpdated")

    @field_validator("threads", mode="before")
    @classmethod
    def _accept_bare_handles(cls, value: Any) -> Any:
        # A thread may be stored as just its URL
        if isinstance(value, dict):
            return {
                name: {"remoteHandle": entry} if isinstance(entry, str) else entry
                for name, entry in value.items()
            }
        return value

    def effective_script(self) -> InteractionScript:
        """The stored script, or the built-in default when none was stored."""
        return self.current_script or InteractionScript()


@dataclass
class InteractionResult:
    """Result of one successful request/response cycle."""

    response_text: str
    side_metadata: dict[str, str] = field(default_factory=dict)
    result_handle: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.response_text


@dataclass
class RelayOutcome:
    """What a relay request produced, success or tagged failure."""

    success: bool
    request: Request
    thread: str
    result: Optional[InteractionResult] = None
    failure_kind: Optional[str] = None
    error: Optional[str] = None
    recovered: bool = False
