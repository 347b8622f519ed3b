"""Unit tests for layered configuration.

Precedence: CLI argument > S3PIPE_<KEY> environment variable > config file > default.
The autouse ``isolated_config`` fixture points S3PIPE_CONFIG at a temp file.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from s3pipe.config import (
    DEFAULTS,
    coerce_value,
    get_config_path,
    get_setting,
    list_settings,
    load_config,
    save_config,
    set_setting,
    unset_setting,
)
from s3pipe.errors import ConfigError, ConfigParseError


class TestConfigFile:
    """Loading and saving the YAML file."""

    @pytest.mark.unit
    def test_path_follows_env_override(self, isolated_config: Path) -> None:
        assert get_config_path() == isolated_config

    @pytest.mark.unit
    def test_default_path_under_home(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("S3PIPE_CONFIG")

        assert get_config_path() == Path.home() / ".config" / "s3pipe" / "config.yaml"

    @pytest.mark.unit
    def test_missing_file_is_empty(self) -> None:
        assert load_config() == {}

    @pytest.mark.unit
    def test_blank_file_is_empty(self, isolated_config: Path) -> None:
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("\n  \n")

        assert load_config() == {}

    @pytest.mark.unit
    def test_save_then_load(self, isolated_config: Path) -> None:
        save_config({"concurrency": 4, "profile": "backups"})

        assert isolated_config.exists()
        assert load_config() == {"concurrency": 4, "profile": "backups"}

    @pytest.mark.unit
    @pytest.mark.parametrize("content", ["key: [unclosed", "- just\n- a list\n"])
    def test_invalid_file_raises(self, isolated_config: Path, content: str) -> None:
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(content)

        with pytest.raises(ConfigParseError) as exc_info:
            load_config()

        assert str(isolated_config) in exc_info.value.message


class TestCoercion:
    """String values from env vars and `config set` are typed."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("key", "raw", "expected"),
        [
            ("concurrency", "8", 8),
            ("part_size_mb", " 128 ", 128),
            ("dualstack", "true", True),
            ("dualstack", "Off", False),
            ("dualstack", "1", True),
            ("profile", "backups", "backups"),
            ("unknown", "raw", "raw"),
            ("concurrency", None, None),
        ],
    )
    def test_coerce(self, key: str, raw: str | None, expected: object) -> None:
        assert coerce_value(key, raw) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize(("key", "raw"), [("concurrency", "four"), ("dualstack", "maybe")])
    def test_invalid_values_raise(self, key: str, raw: str) -> None:
        with pytest.raises(ConfigError):
            coerce_value(key, raw)


class TestPrecedence:
    """CLI > env > file > default."""

    @pytest.mark.unit
    def test_default(self) -> None:
        assert get_setting("part_size_mb") == DEFAULTS["part_size_mb"] == 64
        assert get_setting("concurrency") == 1
        assert get_setting("profile") is None
        assert get_setting("dualstack") is False

    @pytest.mark.unit
    def test_file_beats_default(self) -> None:
        save_config({"concurrency": 3})

        assert get_setting("concurrency") == 3

    @pytest.mark.unit
    def test_env_beats_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        save_config({"concurrency": 3})
        monkeypatch.setenv("S3PIPE_CONCURRENCY", "6")

        assert get_setting("concurrency") == 6

    @pytest.mark.unit
    def test_cli_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("S3PIPE_CONCURRENCY", "6")

        assert get_setting("concurrency", cli_value=2) == 2

    @pytest.mark.unit
    def test_cli_false_is_a_value(self) -> None:
        save_config({"dualstack": True})

        assert get_setting("dualstack", cli_value=False) is False

    @pytest.mark.unit
    def test_explicit_path(self, tmp_path: Path) -> None:
        other = tmp_path / "other.yaml"
        save_config({"region": "eu-west-1"}, other)

        assert get_setting("region", config_path=other) == "eu-west-1"
        assert get_setting("region") is None


class TestSetUnsetList:
    """Mutating the config file."""

    @pytest.mark.unit
    def test_set_coerces_and_persists(self) -> None:
        stored = set_setting("part_size_mb", "128")

        assert stored == 128
        assert load_config() == {"part_size_mb": 128}

    @pytest.mark.unit
    def test_set_rejects_bad_value(self) -> None:
        with pytest.raises(ConfigError):
            set_setting("concurrency", "lots")

        assert load_config() == {}

    @pytest.mark.unit
    def test_unset(self) -> None:
        set_setting("profile", "backups")

        assert unset_setting("profile") is True
        assert unset_setting("profile") is False
        assert load_config() == {}

    @pytest.mark.unit
    def test_list_reports_sources(self, monkeypatch: pytest.MonkeyPatch) -> None:
        set_setting("profile", "backups")
        set_setting("custom", "x")
        monkeypatch.setenv("S3PIPE_CONCURRENCY", "5")

        settings = list_settings()

        assert settings["profile"] == {"value": "backups", "source": "file"}
        assert settings["concurrency"] == {"value": 5, "source": "env"}
        assert settings["part_size_mb"] == {"value": 64, "source": "default"}
        assert settings["custom"] == {"value": "x", "source": "file"}
        assert list(settings) == sorted(settings)
