"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from tuneremote.config.settings import (
    AutomationConfig,
    ServerConfig,
    Settings,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run each test in an empty directory with no override variables set."""
    monkeypatch.chdir(tmp_path)
    for name in ("TOKEN", "CDP_HOST", "CDP_PORT", "PORT", "TUNEREMOTE_AUTH_TOKEN"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_default_settings(self) -> None:
        """Default Settings should be valid."""
        settings = Settings()
        assert settings.auth_token.get_secret_value() == "tuneremote-token"
        assert settings.automation.endpoint_port == 9222
        assert settings.server.port == 3002
        assert settings.logging.level == "INFO"

    def test_automation_defaults(self) -> None:
        """Automation settings default to the standard timings."""
        config = AutomationConfig()
        assert config.endpoint_host == "localhost"
        assert config.cache_duration_ms == 2000
        assert config.reconnect_base_delay_ms == 3000
        assert config.max_reconnect_attempts == 10
        assert config.auto_connect is True
        assert config.reconnect_check_interval == 300.0

    def test_server_defaults(self) -> None:
        """Server settings bind every interface and allow any origin."""
        config = ServerConfig()
        assert config.host == "0.0.0.0"
        assert len(config.public_ip_services) == 4
        assert config.cors_origins == ["*"]

    def test_invalid_port_rejected(self) -> None:
        """Out-of-range ports fail validation."""
        with pytest.raises(ValidationError):
            AutomationConfig(endpoint_port=70000)

    def test_token_is_not_printed(self) -> None:
        """The token is masked in the settings repr."""
        settings = Settings(auth_token="hunter2")
        assert "hunter2" not in repr(settings)


class TestLoadSettings:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        """A missing config file yields defaults."""
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.automation.endpoint_port == 9222

    def test_yaml_file(self, tmp_path: Path) -> None:
        """Values are read from the YAML file."""
        path = tmp_path / "tuneremote.yaml"
        path.write_text(
            "auth_token: from-yaml\n"
            "automation:\n"
            "  endpoint_host: 10.0.0.5\n"
            "  max_reconnect_attempts: 3\n"
            "server:\n"
            "  port: 4000\n"
        )
        settings = load_settings(path)

        assert settings.auth_token.get_secret_value() == "from-yaml"
        assert settings.automation.endpoint_host == "10.0.0.5"
        assert settings.automation.max_reconnect_attempts == 3
        assert settings.server.port == 4000

    def test_empty_yaml(self, tmp_path: Path) -> None:
        """An empty YAML file yields defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path).server.port == 3002

    def test_env_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables fill keys absent from the file."""
        monkeypatch.setenv("TOKEN", "from-env")
        monkeypatch.setenv("CDP_HOST", "player.lan")
        monkeypatch.setenv("CDP_PORT", "9333")
        monkeypatch.setenv("PORT", "8080")

        settings = load_settings(tmp_path / "nonexistent.yaml")

        assert settings.auth_token.get_secret_value() == "from-env"
        assert settings.automation.endpoint_host == "player.lan"
        assert settings.automation.endpoint_port == 9333
        assert settings.server.port == 8080

    def test_yaml_address_wins_over_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Addresses set in the file win over the environment."""
        path = tmp_path / "tuneremote.yaml"
        path.write_text("automation:\n  endpoint_port: 9444\n")
        monkeypatch.setenv("CDP_PORT", "9333")

        assert load_settings(path).automation.endpoint_port == 9444

    def test_dotenv_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Variables from a .env file are applied."""
        # Registered so the value written by the loader is undone afterwards
        monkeypatch.setenv("TOKEN", "")
        (tmp_path / ".env").write_text("# local overrides\nTOKEN=from-dotenv\n")
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.auth_token.get_secret_value() == "from-dotenv"
