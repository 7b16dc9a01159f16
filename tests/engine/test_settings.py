"""Tests for engine settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from mcpx.engine.settings import ENV_CONFIG_PATH, EngineSettings, SettingsLoader, expand_env, parse_settings
from mcpx.errors import ConfigError
from mcpx.sandbox.models import Backend


class TestDefaults:
    def test_values(self) -> None:
        settings = EngineSettings()

        assert settings.tools_dir == Path("tools")
        assert settings.language == "ts"
        assert settings.max_tools == 5
        assert settings.match_threshold == 0.2
        assert settings.security_tier == "standard"
        assert settings.sandbox.backend is Backend.PROCESS
        assert not settings.cleanup.enabled
        assert not settings.telemetry.enabled

    def test_language_aliases(self) -> None:
        assert EngineSettings(language="Python").language == "py"
        assert EngineSettings(language="typescript").language == "ts"

    def test_tier_lowercased(self) -> None:
        assert EngineSettings(security_tier=" HIGH ").security_tier == "high"


class TestParseSettings:
    def test_yaml(self) -> None:
        settings = parse_settings(
            "language: py\n"
            "max_tools: 3\n"
            "sandbox:\n"
            "  backend: container\n"
            "  resource_limits:\n"
            "    memory: 256M\n"
            "cleanup:\n"
            "  enabled: true\n"
            "  interval_seconds: 30\n"
        )

        assert settings.language == "py"
        assert settings.max_tools == 3
        assert settings.sandbox.backend is Backend.CONTAINER
        assert settings.sandbox.resource_limits.memory == "256M"
        assert settings.sandbox.resource_limits.timeout_ms == 30_000
        assert settings.cleanup.enabled
        assert settings.cleanup.interval_seconds == 30

    def test_json(self) -> None:
        settings = parse_settings('{"security_tier": "high"}', format="json")
        assert settings.security_tier == "high"

    def test_empty_document_gives_defaults(self) -> None:
        assert parse_settings("") == EngineSettings()

    def test_env_expansion(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MCPX_TEST_HOME", "/srv/mcpx")

        settings = parse_settings("audit_log: ${MCPX_TEST_HOME}/audit.jsonl\ntools_dir: $NOPE_NOT_SET/tools\n")

        assert settings.audit_log == Path("/srv/mcpx/audit.jsonl")
        assert settings.tools_dir == Path("$NOPE_NOT_SET/tools")

    def test_unparseable(self) -> None:
        with pytest.raises(ConfigError, match="cannot parse settings"):
            parse_settings("key: [unclosed", source="bad.yaml")

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ConfigError, match="settings must be a mapping, got list"):
            parse_settings("- a\n- b\n")

    def test_validation_errors_listed(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            parse_settings("max_tools: 0\nlanguage: go\n", source="mcpx.yaml")

        error = exc_info.value
        assert str(error) == "mcpx.yaml: invalid settings"
        assert len(error.errors) == 2
        assert error.errors[0].startswith("language:")
        assert "Unsupported target language" in error.errors[0]
        assert error.errors[1].startswith("max_tools:")


class TestExpandEnv:
    def test_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MCPX_TEST_X", "x")
        assert expand_env({"a": ["$MCPX_TEST_X", 1], "b": {"c": "${MCPX_TEST_X}y"}}) == {
            "a": ["x", 1],
            "b": {"c": "xy"},
        }


class TestSettingsLoader:
    def test_no_file_gives_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(ENV_CONFIG_PATH, raising=False)
        loader = SettingsLoader(search_dir=tmp_path)

        assert loader.resolve() is None
        assert loader.load() == EngineSettings()

    def test_finds_default_filename(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(ENV_CONFIG_PATH, raising=False)
        (tmp_path / "mcpx.yml").write_text("language: py\n")

        settings = SettingsLoader(search_dir=tmp_path).load()

        assert settings.language == "py"

    def test_env_variable_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.json"
        path.write_text('{"max_tools": 2}')
        monkeypatch.setenv(ENV_CONFIG_PATH, str(path))

        assert SettingsLoader(search_dir=tmp_path).load().max_tools == 2

    def test_explicit_path_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("max_tools: 4\n")
        other = tmp_path / "other.yaml"
        other.write_text("max_tools: 9\n")
        monkeypatch.setenv(ENV_CONFIG_PATH, str(other))

        assert SettingsLoader(explicit).load().max_tools == 4

    def test_relative_paths_resolved_against_file(self, tmp_path: Path) -> None:
        path = tmp_path / "conf" / "mcpx.yaml"
        path.parent.mkdir()
        path.write_text("tools_dir: schemas\naudit_log: /var/log/mcpx.jsonl\npatterns_file: p.json\n")

        settings = SettingsLoader(path).load()

        assert settings.tools_dir == tmp_path / "conf" / "schemas"
        assert settings.patterns_file == tmp_path / "conf" / "p.json"
        assert settings.audit_log == Path("/var/log/mcpx.jsonl")

    def test_unreadable_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read settings file"):
            SettingsLoader(tmp_path / "missing.yaml").load()
