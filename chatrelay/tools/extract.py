"""Transcript extraction: pick the latest answer and strip UI chrome from it."""

import re
from typing import Iterable, Optional

from chatrelay.constants import (
    DEFAULT_BUTTON_CAPTIONS,
    DEFAULT_ROLE_PREFIXES,
    ELAPSED_LABEL_PATTERN,
)
from chatrelay.models import InteractionResult

_ELAPSED_LINE_RE = re.compile(rf"^\s*({ELAPSED_LABEL_PATTERN})\s*$")


def _chrome_bounds(
    lines: list[str],
    role_prefixes: Iterable[str],
    button_captions: Iterable[str],
) -> tuple[int, int, Optional[str]]:
    """Locate the substantive lines of a transcript unit.

    Returns:
        Tuple of (start, end, first_line): ``lines[start:end]`` is the body and
        ``first_line`` replaces ``lines[start]`` when an inline role label was
        cut from it (None otherwise)
    """
    prefixes = sorted(role_prefixes, key=len, reverse=True)
    captions = {c.strip() for c in button_captions}

    start = 0
    first_line = None
    while start < len(lines):
        stripped = lines[start].strip()
        if not stripped or _ELAPSED_LINE_RE.match(stripped) or stripped in prefixes:
            start += 1
            continue
        # Inline label ("ChatGPT said: Hello") only when it ends with a colon
        prefix = next((p for p in prefixes if p.endswith(":") and stripped.startswith(p)), None)
        if prefix is not None:
            first_line = lines[start].lstrip()[len(prefix):].lstrip()
        break

    end = len(lines)
    while end > start:
        stripped = lines[end - 1].strip()
        if not stripped or stripped in captions or _ELAPSED_LINE_RE.match(stripped):
            end -= 1
            continue
        break

    return start, end, first_line


def find_elapsed_label(
    raw: str,
    role_prefixes: Iterable[str] = DEFAULT_ROLE_PREFIXES,
    button_captions: Iterable[str] = DEFAULT_BUTTON_CAPTIONS,
) -> Optional[str]:
    """Return the elapsed-reasoning label (e.g. "Thought for 12s") shown above
    or below the answer, if any. The answer body itself is never searched."""
    lines = raw.splitlines()
    start, end, _ = _chrome_bounds(lines, role_prefixes, button_captions)
    for line in lines[:start] + lines[end:]:
        match = _ELAPSED_LINE_RE.match(line.strip())
        if match:
            return match.group(1).strip()
    return None


def clean_response_text(
    raw: str,
    role_prefixes: Iterable[str] = DEFAULT_ROLE_PREFIXES,
    button_captions: Iterable[str] = DEFAULT_BUTTON_CAPTIONS,
) -> str:
    """Strip presentational artifacts from one transcript unit.

    Removes, from the top, blank lines, role-prefix labels and elapsed-time
    labels; from the bottom, blank lines, button captions and elapsed-time
    footers. Lines between the first and last substantive line are returned
    exactly as they appear in ``raw``.

    Args:
        raw: Inner text of a transcript unit
        role_prefixes: Labels such as "ChatGPT said:"
        button_captions: Captions of the action buttons under an answer

    Returns:
        The substantive answer text
    """
    lines = raw.splitlines()
    start, end, first_line = _chrome_bounds(lines, role_prefixes, button_captions)
    body = lines[start:end]
    if body and first_line is not None:
        body[0] = first_line
    return "\n".join(body)


def extract_result(
    units: list[str],
    url: str,
    role_prefixes: Iterable[str] = DEFAULT_ROLE_PREFIXES,
    button_captions: Iterable[str] = DEFAULT_BUTTON_CAPTIONS,
) -> InteractionResult:
    """Build the interaction result from the transcript units.

    Fewer than two units means no exchange happened; that is an empty but
    successful result.

    Args:
        units: Inner text of every transcript unit, oldest first
        url: Current location (becomes the thread's remote handle)

    Returns:
        InteractionResult
    """
    if len(units) < 2:
        return InteractionResult(response_text="", side_metadata={}, result_handle=url)

    raw = units[-1]
    metadata = {}
    elapsed = find_elapsed_label(raw, role_prefixes, button_captions)
    if elapsed:
        metadata["elapsed"] = elapsed

    return InteractionResult(
        response_text=clean_response_text(raw, role_prefixes, button_captions),
        side_metadata=metadata,
        result_handle=url,
    )
