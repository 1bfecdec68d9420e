"""Tests for the result formatter."""

from chatrelay.models import InteractionResult, RelayOutcome, Request
from chatrelay.report import LOGIN_RETRY_HINT, format_report, to_dict


def success(text="The answer is 42.", metadata=None, recovered=False):
    return RelayOutcome(
        success=True,
        request=Request(message="q", mode="pro"),
        thread="research",
        result=InteractionResult(text, metadata or {}, "https://chatgpt.com/c/abc"),
        recovered=recovered,
    )


def test_success_report():
    """Test the sections of a successful report."""
    report = format_report(success(metadata={"elapsed": "Thought for 12s"}))

    assert "**Mode:** Pro" in report
    assert "`research`" in report
    assert "**Reasoning:** Thought for 12s" in report
    assert "The answer is 42." in report
    assert "--thread research" in report


def test_response_text_verbatim():
    """Test that the response is embedded unchanged."""
    text = "# Heading\n\n```\ncode  \n```\n\n| a | b |"

    assert text in format_report(success(text=text))


def test_empty_response_report():
    """Test the placeholder for an empty answer."""
    report = format_report(success(text=""))

    assert "_(empty response)_" in report


def test_recovered_note():
    """Test that a recovered run says so."""
    assert "interaction script was updated" in format_report(success(recovered=True))
    assert "interaction script was updated" not in format_report(success())


def test_failure_report():
    """Test that a failure names its kind."""
    outcome = RelayOutcome(
        success=False,
        request=Request(message="q"),
        thread="thread-1234abcd",
        failure_kind="RESPONSE_TIMEOUT",
        error="Response still in progress after 180s",
    )

    report = format_report(outcome)

    assert "RESPONSE_TIMEOUT" in report
    assert "Response still in progress" in report
    assert LOGIN_RETRY_HINT not in report


def test_login_timeout_has_retry_hint():
    """Test that a login timeout tells the caller how to retry."""
    outcome = RelayOutcome(
        success=False,
        request=Request(message="q"),
        thread="t",
        failure_kind="LOGIN_TIMEOUT",
        error="No login completed within 300s.",
    )

    assert LOGIN_RETRY_HINT in format_report(outcome)
    assert to_dict(outcome)["hint"] == LOGIN_RETRY_HINT


def test_to_dict_success():
    """Test the JSON form of a success."""
    data = to_dict(success(metadata={"elapsed": "Thought for 3s"}))

    assert data == {
        "success": True,
        "mode": "pro",
        "thread": "research",
        "response": "The answer is 42.",
        "metadata": {"elapsed": "Thought for 3s"},
        "handle": "https://chatgpt.com/c/abc",
        "recovered": False,
    }
