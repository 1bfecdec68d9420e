"""Thread Resolver: new conversation or continuation."""

import uuid
from dataclasses import dataclass
from typing import Optional, Union

from chatrelay.models import ConversationThread


@dataclass(frozen=True)
class NewConversation:
    """Start a fresh conversation at the service's entry point."""


@dataclass(frozen=True)
class ContinueConversation:
    """Reopen an existing conversation at its remote handle."""

    handle: str


TargetMode = Union[NewConversation, ContinueConversation]


def resolve_target(
    thread: Optional[str], threads: dict[str, ConversationThread]
) -> TargetMode:
    """Decide which remote conversation a request targets.

    Unknown thread names start fresh; the name gets registered once the
    interaction succeeds.

    Args:
        thread: Requested thread name, if any
        threads: Known threads from the session state

    Returns:
        NewConversation or ContinueConversation
    """
    if thread and thread in threads:
        return ContinueConversation(threads[thread].remote_handle)
    return NewConversation()


def new_thread_name(threads: dict[str, ConversationThread]) -> str:
    """Allocate a thread name that no existing thread uses."""
    while True:
        name = f"thread-{uuid.uuid4().hex[:8]}"
        if name not in threads:
            return name


def resolve_thread_name(
    thread: Optional[str], threads: dict[str, ConversationThread]
) -> str:
    """The name the result will be registered under."""
    return thread if thread else new_thread_name(threads)
