"""chatrelay - relay messages to a chat web UI and return complete answers."""

__version__ = "0.1.0"
