"""Typed failures raised while driving the remote surface."""


class RelayError(Exception):
    """Base class for relay failures. ``kind`` is the reported failure tag."""

    kind = "RELAY_ERROR"


class LoginRequired(RelayError):
    """The surface redirected to an authentication page."""

    kind = "LOGIN_REQUIRED"


class ResponseTimeout(RelayError):
    """Busy markers never cleared within the completion budget."""

    kind = "RESPONSE_TIMEOUT"


class AutomationFailure(RelayError):
    """An expected affordance was missing or behaved unexpectedly."""

    kind = "AUTOMATION_FAILURE"


class LoginTimeout(RelayError):
    """Nobody completed the login within the login-wait budget."""

    kind = "LOGIN_TIMEOUT"


class StateFileError(Exception):
    """The persisted state file exists but cannot be parsed."""
