from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from flowfn_sdk.config import DEFAULT_REGISTRY_PREFIX, FlowFnSettings, get_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "FLOWFN_BASE_URL",
        "FLOWFN_APP_CODE",
        "FLOWFN_API_KEY",
        "FLOWFN_POLL_INTERVAL",
        "FLOWFN_MAX_POLL_TIMEOUT",
        "FLOWFN_REGISTRY_BACKEND",
        "FLOWFN_REGISTRY_PATH",
        "FLOWFN_REGISTRY_PREFIX",
        "FLOWFN_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults() -> None:
    settings = FlowFnSettings()

    assert settings.base_url == "http://localhost:3000"
    assert settings.registry_backend == "memory"
    assert settings.registry_prefix == DEFAULT_REGISTRY_PREFIX
    options = settings.poll_options()
    assert options.poll_interval_seconds == 2
    assert options.max_timeout_seconds == 120


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("FLOWFN_BASE_URL", "https://api.flowfn.test/ ")
    monkeypatch.setenv("FLOWFN_APP_CODE", "app-9")
    monkeypatch.setenv("FLOWFN_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("FLOWFN_MAX_POLL_TIMEOUT", "45")
    monkeypatch.setenv("FLOWFN_REGISTRY_BACKEND", "chroma")
    monkeypatch.setenv("FLOWFN_LOG_LEVEL", "debug")

    settings = FlowFnSettings()

    assert settings.base_url == "https://api.flowfn.test"
    assert settings.app_code == "app-9"
    assert settings.registry_backend == "chroma"
    assert settings.log_level == "DEBUG"
    assert settings.poll_options().poll_interval_seconds == 0.5
    assert settings.poll_options().max_timeout_seconds == 45


def test_env_file_is_read(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("FLOWFN_API_KEY=from-file\n", encoding="utf-8")

    assert FlowFnSettings().api_key == "from-file"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("FLOWFN_LOG_LEVEL", "chatty"),
        ("FLOWFN_POLL_INTERVAL", "0"),
        ("FLOWFN_MAX_POLL_TIMEOUT", "-1"),
        ("FLOWFN_REGISTRY_BACKEND", "redis"),
        ("FLOWFN_REGISTRY_PREFIX", "  "),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name, value) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        FlowFnSettings()


def test_get_settings_caches_and_resolves_registry_path(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FLOWFN_REGISTRY_PATH", "registry")

    settings = get_settings()

    assert settings is get_settings()
    assert settings.registry_path == (tmp_path / "registry").resolve()
