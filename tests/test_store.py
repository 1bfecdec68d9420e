"""Tests for the state store and session models."""

import json

import pytest

from chatrelay.errors import StateFileError
from chatrelay.models import ConversationThread, InteractionScript, SessionState, utcnow


def test_load_missing_file_is_empty(store):
    """Test that a missing state file loads as empty state."""
    state = store.load()

    assert state.threads == {}
    assert state.current_script is None
    assert state.last_updated is None


def test_save_and_load(store):
    """Test saving then loading threads and script."""
    now = utcnow()
    state = SessionState(
        threads={"research": ConversationThread(remote_handle="https://chatgpt.com/c/abc", last_used=now)},
        current_script=InteractionScript(version=3, source="recovered", input_selector="textarea"),
        last_updated=now,
    )

    store.save(state)
    loaded = store.load()

    assert loaded.threads["research"].remote_handle == "https://chatgpt.com/c/abc"
    assert loaded.current_script.version == 3
    assert loaded.current_script.input_selector == "textarea"
    assert loaded.last_updated == now


def test_saved_document_uses_camel_case_keys(store):
    """Test the on-disk layout of the state file."""
    store.save(SessionState(
        threads={"t": ConversationThread(remote_handle="https://chatgpt.com/c/1")},
        last_updated=utcnow(),
    ))

    data = json.loads(store.path.read_text())

    assert set(data) == {"threads", "currentScript", "lastUpdated"}
    assert data["threads"]["t"]["remoteHandle"] == "https://chatgpt.com/c/1"
    assert data["currentScript"] is None


def test_bare_string_thread_entries(store):
    """Test that a thread stored as just its URL is accepted."""
    store.path.write_text(json.dumps({
        "threads": {"old": "https://chatgpt.com/c/legacy"},
        "currentScript": None,
        "lastUpdated": None,
    }))

    state = store.load()

    assert state.threads["old"].remote_handle == "https://chatgpt.com/c/legacy"
    assert state.threads["old"].last_used is None


def test_corrupt_file_raises(store):
    """Test that an unreadable state file is reported, not silently reset."""
    store.path.write_text("{not json")

    with pytest.raises(StateFileError):
        store.load()

    # Left untouched for the user to inspect
    assert store.path.read_text() == "{not json"


def test_invalid_document_raises(store):
    """Test that a well-formed but invalid document is reported."""
    store.path.write_text(json.dumps({"threads": {"x": {"lastUsed": "yesterday"}}}))

    with pytest.raises(StateFileError):
        store.load()


def test_save_leaves_no_temp_files(store, temp_dir):
    """Test that the whole-file replacement cleans up after itself."""
    store.save(SessionState())
    store.save(SessionState(last_updated=utcnow()))

    assert sorted(p.name for p in temp_dir.iterdir() if p.is_file()) == ["state.json"]


def test_effective_script_defaults_to_builtin():
    """Test that no stored script means the built-in one."""
    script = SessionState().effective_script()

    assert script.source == "builtin"
    assert script.version == 1


def test_with_busy_markers_appends_without_duplicates():
    """Test extending busy markers from configuration."""
    script = InteractionScript(busy_markers=["Stop generating"])

    extended = script.with_busy_markers(["Stop generating", "Still working"])

    assert extended.busy_markers == ["Stop generating", "Still working"]
    assert script.busy_markers == ["Stop generating"]
