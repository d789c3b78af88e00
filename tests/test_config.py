"""Tests for settings loading and the CLI."""

import pytest
from typer.testing import CliRunner

from geminimcp import __version__
from geminimcp.cli import app
from geminimcp.config import load_settings
from geminimcp.errors import ConfigurationError

runner = CliRunner()


class TestLoadSettings:
    def test_minimal(self):
        settings = load_settings({"GOOGLE_GEMINI_API_KEY": "secret"})
        assert settings.api_key == "secret"
        assert settings.default_model is None
        assert settings.session_ttl_seconds == 3600
        assert settings.max_sessions == 100
        assert settings.log_level == "INFO"

    def test_all_values(self):
        settings = load_settings(
            {
                "GOOGLE_GEMINI_API_KEY": " secret ",
                "GOOGLE_GEMINI_MODEL": "gemini-1.5-pro",
                "GEMINI_MCP_SESSION_TTL": "0",
                "GEMINI_MCP_MAX_SESSIONS": "5",
                "GEMINI_MCP_LOG_LEVEL": "debug",
            }
        )
        assert settings.api_key == "secret"
        assert settings.default_model == "gemini-1.5-pro"
        assert settings.session_ttl_seconds == 0
        assert settings.max_sessions == 5
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("env", [{}, {"GOOGLE_GEMINI_API_KEY": "   "}])
    def test_missing_key(self, env):
        with pytest.raises(ConfigurationError):
            load_settings(env)

    def test_blank_model_is_unset(self):
        settings = load_settings({"GOOGLE_GEMINI_API_KEY": "k", "GOOGLE_GEMINI_MODEL": ""})
        assert settings.default_model is None

    @pytest.mark.parametrize(
        "env",
        [
            {"GEMINI_MCP_SESSION_TTL": "soon"},
            {"GEMINI_MCP_MAX_SESSIONS": "-1"},
        ],
    )
    def test_invalid_numbers(self, env):
        with pytest.raises(ConfigurationError):
            load_settings({"GOOGLE_GEMINI_API_KEY": "k", **env})

    def test_reads_process_environment(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GOOGLE_GEMINI_API_KEY", "from-env")
        monkeypatch.setenv("GOOGLE_GEMINI_MODEL", "gemini-env")
        settings = load_settings()
        assert settings.api_key == "from-env"
        assert settings.default_model == "gemini-env"


class TestCLI:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_config_masks_key(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GOOGLE_GEMINI_API_KEY", "abcd-very-secret-wxyz")
        monkeypatch.setenv("GOOGLE_GEMINI_MODEL", "gemini-1.5-flash")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "very-secret" not in result.stdout
        assert "gemini-1.5-flash" in result.stdout

    def test_config_without_key(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GOOGLE_GEMINI_API_KEY", raising=False)
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 1
        assert "GOOGLE_GEMINI_API_KEY" in result.stdout

    def test_serve_without_key(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GOOGLE_GEMINI_API_KEY", raising=False)
        result = runner.invoke(app, ["serve"])
        assert result.exit_code == 1
