"""Tests for configuration loading."""

import json

from chatrelay.config import Config


def test_defaults_are_valid(temp_dir):
    """Test that the default configuration validates."""
    assert Config(home=temp_dir).validate() == []


def test_paths_under_home(temp_dir):
    """Test state and profile locations."""
    config = Config(home=temp_dir)

    assert config.state_path == temp_dir / "state.json"
    assert config.profile_dir == temp_dir / "profile"


def test_load_from_environment(temp_dir, monkeypatch):
    """Test environment overrides."""
    monkeypatch.setenv("CHATRELAY_ENTRY_URL", "https://chat.example.com/")
    monkeypatch.setenv("CHATRELAY_HEADLESS", "true")
    monkeypatch.setenv("CHATRELAY_RESPONSE_TIMEOUT", "600")
    monkeypatch.setenv("CHATRELAY_MAX_LOGIN_CYCLES", "3")

    config = Config.load(home=temp_dir)

    assert config.entry_url == "https://chat.example.com/"
    assert config.headless is True
    assert config.response_timeout == 600.0
    assert config.max_login_cycles == 3


def test_home_from_environment(temp_dir, monkeypatch):
    """Test CHATRELAY_HOME."""
    monkeypatch.setenv("CHATRELAY_HOME", str(temp_dir))

    assert Config.load().home == temp_dir


def test_busy_markers_from_home_config(temp_dir):
    """Test extra busy markers from the home config file."""
    (temp_dir / "config.json").write_text(json.dumps({"busy_markers": ["Searching the web"]}))

    config = Config.load(home=temp_dir)

    assert config.extra_busy_markers == ["Searching the web"]


def test_invalid_home_config_ignored(temp_dir):
    """Test that a broken home config falls back to defaults."""
    (temp_dir / "config.json").write_text("{broken")

    assert Config.load(home=temp_dir).extra_busy_markers == []


def test_validate_errors(temp_dir):
    """Test validation messages."""
    config = Config(
        home=temp_dir,
        entry_url="chatgpt.com",
        response_timeout=0,
        login_poll_interval=0.5,
        poll_interval=2.0,
        max_login_cycles=0,
    )

    errors = config.validate()

    assert any("entry_url" in e for e in errors)
    assert any("response_timeout" in e for e in errors)
    assert any("login_poll_interval" in e for e in errors)
    assert any("max_login_cycles" in e for e in errors)
