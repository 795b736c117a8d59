"""Tests for the settings models and loader."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from cjcatalog.config import Settings, load_settings
from cjcatalog.config.loader import SettingsLoader
from cjcatalog.shared.constants import APIConfig, TokenConfig


@pytest.fixture
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in an empty directory with no CJCATALOG_ or CJ_ variables set."""
    monkeypatch.chdir(tmp_path)
    # setenv first so teardown also removes values loaded from .env files
    monkeypatch.setenv("CJ_API_KEY", "")
    monkeypatch.delenv("CJ_API_KEY")
    monkeypatch.delenv("CJCATALOG_API__MAX_CONCURRENT", raising=False)
    return tmp_path


class TestSettingsDefaults:
    def test_defaults(self, isolated_cwd):
        settings = Settings()

        assert settings.api.max_attempts == 3
        assert settings.api.retry_base_delay == pytest.approx(1.1)
        assert settings.api.max_concurrent == APIConfig.DEFAULT_MAX_CONCURRENT
        assert settings.api.search_page_size_limit == 200
        assert settings.auth.refresh_buffer_seconds == 3600
        assert settings.auth.stale_token_grace_seconds == 900
        assert settings.token_store.backend == "sqlite"
        assert settings.cache.enabled is True

    def test_token_store_default_paths(self, isolated_cwd):
        assert Settings().token_store.resolved_path() == TokenConfig.DEFAULT_SQLITE_PATH
        file_store = Settings(token_store={"backend": "file"}).token_store

        assert file_store.resolved_path() == TokenConfig.DEFAULT_FILE_PATH


class TestSettingsValidation:
    @pytest.mark.parametrize(
        "api",
        [{"max_attempts": 0}, {"max_concurrent": 0}, {"request_timeout": -1}],
    )
    def test_rejects_invalid_api_values(self, isolated_cwd, api):
        with pytest.raises(ValidationError):
            Settings(api=api)

    def test_rejects_unknown_backend(self, isolated_cwd):
        with pytest.raises(ValidationError):
            Settings(token_store={"backend": "redis"})


class TestEnvironmentOverrides:
    def test_nested_env_override(self, isolated_cwd, monkeypatch):
        monkeypatch.setenv("CJCATALOG_API__MAX_CONCURRENT", "10")

        assert Settings().api.max_concurrent == 10

    def test_api_key_from_env(self, isolated_cwd, monkeypatch):
        monkeypatch.setenv("CJ_API_KEY", "  secret-key  ")

        assert load_settings().api.api_key == "secret-key"

    def test_configured_key_wins_over_env(self, isolated_cwd, monkeypatch):
        config = isolated_cwd / "cjcatalog.toml"
        config.write_text('[api]\napi_key = "from-file"\n')
        monkeypatch.setenv("CJ_API_KEY", "from-env")

        assert load_settings().api.api_key == "from-file"

    def test_dotenv_file(self, isolated_cwd):
        (isolated_cwd / ".env").write_text("CJ_API_KEY=dotenv-key\n")

        settings = load_settings()

        assert settings.api.api_key == "dotenv-key"

    def test_missing_key_is_not_an_error(self, isolated_cwd):
        assert load_settings().api.api_key == ""


class TestTomlFiles:
    def test_round_trip(self, isolated_cwd):
        path = isolated_cwd / "config" / "cjcatalog.toml"
        original = Settings(api={"max_concurrent": 7}, token_store={"backend": "file"})

        original.to_toml_file(path)
        loaded = Settings.from_toml_file(path)

        assert loaded.api.max_concurrent == 7
        assert loaded.token_store.backend == "file"

    def test_environment_overrides_file_values(self, isolated_cwd, monkeypatch):
        path = isolated_cwd / "cjcatalog.toml"
        path.write_text('[api]\nmax_concurrent = 7\nmax_attempts = 2\n\n[cache]\nenabled = false\n')
        monkeypatch.setenv("CJCATALOG_API__MAX_CONCURRENT", "10")

        settings = load_settings(path)

        assert settings.api.max_concurrent == 10
        assert settings.api.max_attempts == 2
        assert settings.cache.enabled is False

    def test_explicit_missing_file(self, isolated_cwd):
        with pytest.raises(FileNotFoundError):
            load_settings(isolated_cwd / "absent.toml")


class TestSecrets:
    def test_api_key_masked_in_repr(self, isolated_cwd):
        settings = Settings(api={"api_key": "super-secret"})

        assert "super-secret" not in repr(settings.api)
        assert "super-secret" not in repr(settings)


class TestSettingsLoader:
    def test_concurrent_get_config_loads_once(self, isolated_cwd):
        loader = SettingsLoader()
        calls = []
        lock = threading.Lock()

        def counting_load():
            with lock:
                calls.append(1)
            return Settings()

        with patch("cjcatalog.config.loader.load_settings", side_effect=counting_load):
            with ThreadPoolExecutor(max_workers=8) as pool:
                results = list(pool.map(lambda _: loader.get_config(), range(32)))

        assert len(calls) == 1
        assert all(result is results[0] for result in results)

    def test_reload_replaces_instance(self, isolated_cwd):
        loader = SettingsLoader()
        first = loader.get_config()

        assert loader.reload_config() is not first
