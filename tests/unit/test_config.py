"""Unit tests for configuration loading."""

import logging
from pathlib import Path

import pytest

from examcustody.config import (
    DEV_TOKEN_SECRET,
    ConfigError,
    CustodyConfig,
    load_config,
)
from examcustody.engine import CustodyEngine


@pytest.mark.unit
class TestCustodyConfigFromDict:
    """Tests for CustodyConfig.from_dict."""

    def test_defaults(self) -> None:
        """An empty mapping yields the defaults."""
        config = CustodyConfig.from_dict({})

        assert config.database.path == "examcustody.db"
        assert config.tokens.secret == DEV_TOKEN_SECRET
        assert config.tokens.is_development_secret
        assert config.tokens.max_age_hours is None
        assert config.logging.dir == "logs"
        assert config.logging.level == "INFO"
        assert config.logging.console is True
        assert config.logging.audit_file == "custody-audit.log"
        assert config.database.busy_timeout_ms == 5000

    def test_full_config(self) -> None:
        """Every section is read."""
        config = CustodyConfig.from_dict(
            {
                "database": {"path": "data/custody.db", "busy_timeout_ms": 250},
                "tokens": {"secret": "s3cret", "max_age_hours": 12},
                "logging": {
                    "dir": "/var/log/custody",
                    "level": "debug",
                    "console": False,
                    "audit_file": "audit.log",
                    "max_bytes": 4096,
                    "backup_count": 0,
                },
            }
        )

        assert config.database.path == "data/custody.db"
        assert config.tokens.secret == "s3cret"
        assert not config.tokens.is_development_secret
        assert config.tokens.max_age_hours == 12.0
        assert config.logging.dir == "/var/log/custody"
        assert config.logging.level == "DEBUG"
        assert config.logging.console is False
        assert config.logging.audit_file == "audit.log"
        assert config.logging.max_bytes == 4096
        assert config.logging.backup_count == 0
        assert config.database.busy_timeout_ms == 250

    def test_section_must_be_mapping(self) -> None:
        """Non-mapping sections are rejected."""
        with pytest.raises(ConfigError, match="tokens"):
            CustodyConfig.from_dict({"tokens": ["secret"]})

    def test_empty_secret_rejected(self) -> None:
        """An empty secret is rejected."""
        with pytest.raises(ConfigError, match="secret"):
            CustodyConfig.from_dict({"tokens": {"secret": ""}})

    @pytest.mark.parametrize("value", ["soon", 0, -5])
    def test_invalid_max_age(self, value) -> None:
        """max_age_hours must be a positive number."""
        with pytest.raises(ConfigError, match="max_age_hours"):
            CustodyConfig.from_dict({"tokens": {"max_age_hours": value}})

    @pytest.mark.parametrize("level", ["LOUD", "", 10])
    def test_invalid_log_level(self, level) -> None:
        """Only the standard level names are accepted."""
        with pytest.raises(ConfigError, match="logging.level"):
            CustodyConfig.from_dict({"logging": {"level": level}})

    @pytest.mark.parametrize(
        ("section", "key", "value"),
        [
            ("database", "busy_timeout_ms", -1),
            ("database", "busy_timeout_ms", "forever"),
            ("logging", "max_bytes", 0),
            ("logging", "backup_count", True),
        ],
    )
    def test_invalid_integer_settings(self, section: str, key: str, value) -> None:
        """Numeric settings must be integers within range."""
        with pytest.raises(ConfigError, match=f"{section}.{key}"):
            CustodyConfig.from_dict({section: {key: value}})


@pytest.mark.unit
class TestApplyEnv:
    """Tests for environment overrides."""

    def test_env_overrides(self) -> None:
        """Environment variables win over file values."""
        config = CustodyConfig.from_dict({"tokens": {"secret": "from-file"}}).apply_env(
            {
                "EXAMCUSTODY_TOKEN_SECRET": "from-env",
                "EXAMCUSTODY_DB_PATH": "/tmp/custody.db",
                "EXAMCUSTODY_TOKEN_MAX_AGE_HOURS": "6",
            }
        )

        assert config.tokens.secret == "from-env"
        assert config.database.path == "/tmp/custody.db"
        assert config.tokens.max_age_hours == 6.0

    def test_log_env_overrides(self) -> None:
        """Log directory and level can be set from the environment."""
        config = CustodyConfig.from_dict({"logging": {"level": "INFO"}}).apply_env(
            {"EXAMCUSTODY_LOG_DIR": "/srv/custody/logs", "EXAMCUSTODY_LOG_LEVEL": "warning"}
        )

        assert config.logging.dir == "/srv/custody/logs"
        assert config.logging.level == "WARNING"

    def test_invalid_env_log_level(self) -> None:
        """A bad level in the environment is a configuration error."""
        with pytest.raises(ConfigError, match="logging.level"):
            CustodyConfig.from_dict({}).apply_env({"EXAMCUSTODY_LOG_LEVEL": "chatty"})

    def test_empty_env_values_ignored(self) -> None:
        """Blank variables leave the config alone."""
        config = CustodyConfig.from_dict({}).apply_env({"EXAMCUSTODY_TOKEN_SECRET": ""})

        assert config.tokens.secret == DEV_TOKEN_SECRET


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config."""

    def test_load_yaml(self, tmp_path: Path) -> None:
        """Values are read from the YAML file."""
        path = tmp_path / "examcustody.yaml"
        path.write_text("database:\n  path: exams.db\ntokens:\n  secret: yaml-secret\n")

        config = load_config(path, environ={})

        assert config.database.path == "exams.db"
        assert config.tokens.secret == "yaml-secret"

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty file means defaults."""
        path = tmp_path / "examcustody.yaml"
        path.write_text("")

        assert load_config(path, environ={}).database.path == "examcustody.db"

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        """A missing explicit file is an error."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml", environ={})

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Unparseable YAML is an error."""
        path = tmp_path / "examcustody.yaml"
        path.write_text("database: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path, environ={})

    def test_non_mapping_document(self, tmp_path: Path) -> None:
        """A YAML list is not a configuration."""
        path = tmp_path / "examcustody.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, environ={})

    def test_default_file_in_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """examcustody.yaml in the working directory is picked up."""
        (tmp_path / "examcustody.yaml").write_text("tokens:\n  secret: cwd-secret\n")
        monkeypatch.chdir(tmp_path)

        assert load_config(environ={}).tokens.secret == "cwd-secret"

    def test_no_file_uses_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without a file, the environment alone configures the engine."""
        monkeypatch.chdir(tmp_path)

        config = load_config(environ={"EXAMCUSTODY_TOKEN_SECRET": "env-only"})

        assert config.tokens.secret == "env-only"

    def test_dev_secret_warning(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Falling back to the development secret logs a warning."""
        monkeypatch.chdir(tmp_path)

        with caplog.at_level(logging.WARNING, logger="examcustody.config"):
            load_config(environ={})

        assert "development token secret" in caplog.text


@pytest.mark.unit
class TestEngineFromConfig:
    """Tests for CustodyEngine.from_config."""

    def test_settings_reach_engine(self, tmp_path: Path) -> None:
        """Database path, busy timeout and token age come from the config."""
        config = CustodyConfig.from_dict(
            {
                "database": {"path": str(tmp_path / "custody.db"), "busy_timeout_ms": 750},
                "tokens": {"secret": "config-secret", "max_age_hours": 2},
            }
        )

        engine = CustodyEngine.from_config(config)
        try:
            assert engine.db.db_path == str(tmp_path / "custody.db")
            assert engine.db.pragma("busy_timeout") == 750
            assert engine.codec.max_age_hours == 2.0
        finally:
            engine.close()
