"""Result Formatter: the report shown to the caller."""

from chatrelay.constants import MODE_LABELS
from chatrelay.errors import LoginTimeout
from chatrelay.models import RelayOutcome

LOGIN_RETRY_HINT = (
    "Run `chatrelay login`, sign in in the browser window, then send the "
    "request again."
)


def format_report(outcome: RelayOutcome) -> str:
    """Render an outcome as Markdown.

    Args:
        outcome: Outcome of a relay request

    Returns:
        Markdown report
    """
    mode_label = MODE_LABELS.get(outcome.request.mode, outcome.request.mode)

    if not outcome.success:
        lines = [
            f"## ✗ Relay failed: {outcome.failure_kind}",
            "",
            f"- **Mode:** {mode_label}",
            f"- **Thread:** `{outcome.thread}`",
            "",
            outcome.error or "",
        ]
        if outcome.failure_kind == LoginTimeout.kind:
            lines.extend(["", LOGIN_RETRY_HINT])
        return "\n".join(lines)

    result = outcome.result
    lines = [
        "## Response",
        "",
        f"- **Mode:** {mode_label}",
        f"- **Thread:** `{outcome.thread}`",
    ]

    elapsed = result.side_metadata.get("elapsed")
    if elapsed:
        lines.append(f"- **Reasoning:** {elapsed}")
    if outcome.recovered:
        lines.append("- **Note:** page layout changed; interaction script was updated")

    lines.extend(["", "---", ""])
    lines.append(result.response_text if result.response_text else "_(empty response)_")
    lines.extend([
        "",
        "---",
        "",
        f"Continue this conversation with `--thread {outcome.thread}`.",
    ])
    return "\n".join(lines)


def to_dict(outcome: RelayOutcome) -> dict:
    """Convert an outcome to a JSON-serializable dictionary."""
    data = {
        "success": outcome.success,
        "mode": outcome.request.mode,
        "thread": outcome.thread,
    }

    if outcome.success:
        data.update({
            "response": outcome.result.response_text,
            "metadata": outcome.result.side_metadata,
            "handle": outcome.result.result_handle,
            "recovered": outcome.recovered,
        })
    else:
        data.update({
            "failure": outcome.failure_kind,
            "error": outcome.error,
        })
        if outcome.failure_kind == LoginTimeout.kind:
            data["hint"] = LOGIN_RETRY_HINT

    return data
