import os

from pytest_gatekeeper.config import Settings, load_settings


def test_defaults(monkeypatch):
    for name in list(os.environ):
        if name.startswith("GATEKEEPER_"):
            monkeypatch.delenv(name)

    settings = load_settings()
    assert settings.state_dir == os.getcwd()
    assert settings.wait_timeout_ms == 30000.0
    assert settings.poll_interval_s == 0.1
    assert settings.lock_timeout_s == 5.0
    assert settings.write_retries == 3
    assert settings.verbose is False


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("GATEKEEPER_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("GATEKEEPER_WAIT_TIMEOUT_MS", "1500")
    monkeypatch.setenv("GATEKEEPER_POLL_INTERVAL_MS", "25")
    monkeypatch.setenv("GATEKEEPER_WRITE_RETRIES", "5")
    monkeypatch.setenv("GATEKEEPER_VERBOSE", "yes")

    settings = load_settings()
    assert settings.state_dir == str(tmp_path)
    assert settings.wait_timeout_s == 1.5
    assert settings.poll_interval_ms == 25.0
    assert settings.write_retries == 5
    assert settings.verbose is True


def test_bad_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("GATEKEEPER_WAIT_TIMEOUT_MS", "soon")
    monkeypatch.setenv("GATEKEEPER_LOCK_TIMEOUT_MS", "-4")
    monkeypatch.setenv("GATEKEEPER_WRITE_RETRIES", "0")

    settings = load_settings()
    assert settings.wait_timeout_ms == Settings().wait_timeout_ms
    assert settings.lock_timeout_ms == 5000.0
    assert settings.write_retries == 3
