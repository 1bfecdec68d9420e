"""State models for LangGraph."""

from operator import add
from typing import Annotated, Optional, TypedDict

from chatrelay.errors import RelayError
from chatrelay.models import InteractionResult, InteractionScript, Request, SessionState
from chatrelay.resolver import TargetMode


class RelayState(TypedDict, total=False):
    """The state object passed through the relay workflow.

    Attributes:
        request: The accepted caller request
        session: Session state as loaded at the start of the request
        script: Script the controller runs (stored one or built-in default,
            plus busy markers from local config)
        stored_script: The stored or built-in script without config additions
        thread: Name the result is registered under
        target: New conversation or continuation handle
        outcome: Routing tag set by the last node
        result: Interaction result on success
        new_script: Replacement script produced by recovery
        failure: Terminal failure, if any
        login_cycles: Number of login waits so far
        recovered: Whether the result came from recovery
        trail: Names of the nodes visited, in order
    """

    request: Request
    session: SessionState
    script: InteractionScript
    stored_script: InteractionScript
    thread: str
    target: TargetMode
    outcome: str
    result: Optional[InteractionResult]
    new_script: Optional[InteractionScript]
    failure: Optional[RelayError]
    login_cycles: int
    recovered: bool
    trail: Annotated[list[str], add]
