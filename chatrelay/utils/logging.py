"""Session logging utilities."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional


class SessionLogger:
    """Handles logging for a chatrelay run."""

    def __init__(self, home: Path, run_id: Optional[str] = None):
        """Initialize session logger.

        Args:
            home: chatrelay home directory
            run_id: Optional run ID (generated if not provided)
        """
        self.home = home
        self.run_id = run_id or datetime.now().strftime("%Y%m%d_%H%M%S_%f")

        # Create logs directory
        self.log_dir = home / "runs" / self.run_id
        self.log_dir.mkdir(parents=True, exist_ok=True)

        # Log files
        self.events_path = self.log_dir / "events.ndjson"
        self.script_path = self.log_dir / "script.json"
        self.artifacts_dir = self.log_dir / "artifacts"

        self.artifacts_dir.mkdir(exist_ok=True)

    def log_event(self, event: str, **data: Any) -> None:
        """Append one event line.

        Args:
            event: Event name (navigate, submit, login_wait, recover, ...)
            **data: JSON-serializable details
        """
        entry = {
            "ts": datetime.now().isoformat(),
            "event": event,
            **data,
        }

        with open(self.events_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def save_artifact(self, label: str, payload: bytes | str | list | dict) -> Path:
        """Save a screenshot, inventory or other capture.

        Args:
            label: Artifact label, used in the filename
            payload: Raw bytes (saved as .png), text, or JSON data

        Returns:
            Path of the written file
        """
        timestamp = datetime.now().strftime("%H%M%S_%f")
        safe_label = "".join(c if c.isalnum() else "_" for c in label[:40])

        if isinstance(payload, bytes):
            path = self.artifacts_dir / f"{timestamp}_{safe_label}.png"
            path.write_bytes(payload)
        elif isinstance(payload, str):
            path = self.artifacts_dir / f"{timestamp}_{safe_label}.txt"
            path.write_text(payload, encoding="utf-8")
        else:
            path = self.artifacts_dir / f"{timestamp}_{safe_label}.json"
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

        return path

    def save_script(self, script: dict) -> None:
        """Save a recovered interaction script next to the run's events.

        Args:
            script: Script dictionary
        """
        with open(self.script_path, "w", encoding="utf-8") as f:
            json.dump(script, f, indent=2, default=str)

    def get_log_path(self) -> str:
        """Get the path to the log directory.

        Returns:
            Absolute path to log directory
        """
        return str(self.log_dir.absolute())
