"""State Store: load and save the persisted session document."""

import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from chatrelay.errors import StateFileError
from chatrelay.models import SessionState


class StateStore:
    """Reads and writes ``SessionState`` as one JSON document.

    Writes replace the whole file at once (temporary file + ``os.replace``),
    so a reader never sees a partially written document.
    """

    def __init__(self, path: Path):
        """Initialize store.

        Args:
            path: Location of the state file
        """
        self.path = path

    def load(self) -> SessionState:
        """Load the session state.

        Returns:
            SessionState (empty when the file does not exist)

        Raises:
            StateFileError: If the file exists but is not a valid document
        """
        if not self.path.exists():
            return SessionState()

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return SessionState.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise StateFileError(f"Cannot read state file {self.path}: {e}") from e

    def save(self, state: SessionState) -> None:
        """Replace the state file with ``state``.

        Args:
            state: Complete session state to persist
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = state.model_dump_json(by_alias=True, indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=".state-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
