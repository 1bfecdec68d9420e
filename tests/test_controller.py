"""Tests for the interaction controller."""

import pytest
from conftest import LOGIN_URL

from chatrelay.constants import DEFAULT_INPUT_SELECTOR, DEFAULT_MODE_STEPS, DEFAULT_SUBMIT_SELECTOR
from chatrelay.errors import AutomationFailure, LoginRequired, ResponseTimeout
from chatrelay.models import InteractionScript
from chatrelay.resolver import ContinueConversation, NewConversation
from chatrelay.tools.controller import InteractionController


def make_controller(surface, config, clock):
    return InteractionController(surface, config, sleep=clock.sleep, clock=clock)


def test_new_conversation_round_trip(surface, mock_config, clock):
    """Test a complete cycle on a fresh conversation."""
    controller = make_controller(surface, mock_config, clock)

    result = controller.run("thinking", "What is six times seven?", NewConversation(), InteractionScript())

    assert surface.visited == [mock_config.entry_url]
    assert result.response_text == "The answer is 42."
    assert result.side_metadata == {"elapsed": "Thought for 12s"}
    assert result.result_handle == "https://chatgpt.com/c/68f1c0de-1234"


def test_message_submitted_verbatim(surface, mock_config, clock):
    """Test that the message reaches the input exactly as given."""
    message = "  leading spaces\n\n- bullet\n\ttab\ntrailing  \n"
    controller = make_controller(surface, mock_config, clock)

    controller.run("thinking", message, NewConversation(), InteractionScript())

    assert surface.filled == [(DEFAULT_INPUT_SELECTOR, message)]


def test_default_mode_skips_selection(surface, mock_config, clock):
    """Test that the default mode clicks nothing but submit."""
    controller = make_controller(surface, mock_config, clock)

    controller.run("thinking", "hi", NewConversation(), InteractionScript())

    assert surface.clicks == [DEFAULT_SUBMIT_SELECTOR]


def test_pro_mode_selected_on_new_conversation(surface, mock_config, clock):
    """Test that a non-default mode clicks through its steps before submitting."""
    controller = make_controller(surface, mock_config, clock)

    controller.run("pro", "hi", NewConversation(), InteractionScript())

    assert surface.clicks == DEFAULT_MODE_STEPS["pro"] + [DEFAULT_SUBMIT_SELECTOR]


def test_continuation_never_selects_mode(surface, mock_config, clock):
    """Test that continuing a thread keeps the conversation's mode."""
    handle = "https://chatgpt.com/c/existing"
    controller = make_controller(surface, mock_config, clock)

    result = controller.run("pro", "follow-up", ContinueConversation(handle), InteractionScript())

    assert surface.visited == [handle]
    assert surface.clicks == [DEFAULT_SUBMIT_SELECTOR]
    assert result.result_handle == handle


def test_login_redirect_raises_before_fill(surface, mock_config, clock):
    """Test that an authentication page stops the attempt before any input."""
    surface.logged_in = False
    controller = make_controller(surface, mock_config, clock)

    with pytest.raises(LoginRequired):
        controller.run("thinking", "hi", NewConversation(), InteractionScript())

    assert surface.url == LOGIN_URL
    assert surface.filled == []


def test_missing_input_is_automation_failure(surface, mock_config, clock):
    """Test that a missing input is reported as a structural failure."""
    surface.present.discard(DEFAULT_INPUT_SELECTOR)
    controller = make_controller(surface, mock_config, clock)

    with pytest.raises(AutomationFailure):
        controller.run("thinking", "hi", NewConversation(), InteractionScript())

    assert surface.filled == []


def test_missing_mode_step_is_automation_failure(surface, mock_config, clock):
    """Test that a mode step that cannot be found aborts before submitting."""
    controller = make_controller(surface, mock_config, clock)

    with pytest.raises(AutomationFailure, match="unverified path"):
        controller.run("thinking-extended", "hi", NewConversation(), InteractionScript())

    assert surface.filled == []


def test_enter_submits_when_no_submit_selector(surface, mock_config, clock):
    """Test pressing Enter when the script has no submit control."""
    controller = make_controller(surface, mock_config, clock)

    result = controller.run(
        "thinking", "hi", NewConversation(), InteractionScript(submit_selector=None)
    )

    assert surface.clicks == []
    assert result.response_text == "The answer is 42."


def test_no_exchange_is_empty_result(surface, mock_config, clock):
    """Test that nothing rendered yields an empty, successful result."""
    surface.answer = None
    controller = make_controller(surface, mock_config, clock)

    result = controller.run("thinking", "hi", NewConversation(), InteractionScript())

    assert result.is_empty
    assert result.result_handle == mock_config.entry_url


def test_never_completing_answer_times_out(surface, mock_config, clock):
    """Test that a page that stays busy raises a response timeout."""
    surface.busy_ticks = 10_000
    controller = make_controller(surface, mock_config, clock)

    with pytest.raises(ResponseTimeout):
        controller.run("thinking", "hi", NewConversation(), InteractionScript())

    assert clock.now >= mock_config.response_timeout


def test_transcript_matching_nothing_is_automation_failure(surface, mock_config, clock):
    """Test that a transcript selector that no longer matches is a structural failure."""
    surface.transcript_selectors = {'article[data-testid^="conversation-turn"]'}
    controller = make_controller(surface, mock_config, clock)

    with pytest.raises(AutomationFailure, match="Transcript"):
        controller.run("thinking", "hi", NewConversation(), InteractionScript())

    assert surface.filled == [(DEFAULT_INPUT_SELECTOR, "hi")]
