"""
Tests for tool settings (hostprov.yml + HOSTPROV_* overrides) and logging setup.
"""

import logging
import textwrap

import pytest

from hostprov.core.config.settings import ProvisionSettings, load_settings
from hostprov.core.errors import SettingsError
from hostprov.core.observability.logging_config import resolve_level, setup_logging


class TestLoadSettings:
    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        s = load_settings(env={})
        assert s == ProvisionSettings()
        assert s.master_container == "houseunity-mysql-master"
        assert s.readiness_attempts == 30
        assert s.readiness_interval == 2.0
        assert s.ssh_service_names == ["sshd", "ssh"]

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "hostprov.yml"
        path.write_text(textwrap.dedent("""\
            project_name: Demo
            readiness_attempts: 5
            ssh_service_names: [ssh]
        """))
        s = load_settings(path, env={})
        assert s.project_name == "Demo"
        assert s.readiness_attempts == 5
        assert s.ssh_service_names == ["ssh"]

    def test_cwd_file_picked_up(self, tmp_path, monkeypatch):
        (tmp_path / "hostprov.yml").write_text("rsync_port: 8873\n")
        monkeypatch.chdir(tmp_path)
        assert load_settings(env={}).rsync_port == 8873

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "hostprov.yml"
        path.write_text("readiness_attempts: 5\n")
        s = load_settings(path, env={"HOSTPROV_READINESS_ATTEMPTS": "7"})
        assert s.readiness_attempts == 7

    def test_empty_file(self, tmp_path):
        path = tmp_path / "hostprov.yml"
        path.write_text("")
        assert load_settings(path, env={}) == ProvisionSettings()

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(SettingsError):
            load_settings(tmp_path / "nope.yml", env={})

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "hostprov.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(SettingsError, match="mapping"):
            load_settings(path, env={})

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "hostprov.yml"
        path.write_text("no_such_setting: 1\n")
        with pytest.raises(SettingsError):
            load_settings(path, env={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "hostprov.yml"
        path.write_text("a: [unclosed\n")
        with pytest.raises(SettingsError, match="Invalid YAML"):
            load_settings(path, env={})

    def test_attempts_must_be_positive(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SettingsError):
            load_settings(env={"HOSTPROV_READINESS_ATTEMPTS": "0"})


class TestLogging:
    def test_resolve_level_flags(self, monkeypatch):
        monkeypatch.delenv("HOSTPROV_LOG_LEVEL", raising=False)
        assert resolve_level(debug=True) == "DEBUG"
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"
        assert resolve_level(default="INFO") == "INFO"

    def test_resolve_level_env(self, monkeypatch):
        monkeypatch.setenv("HOSTPROV_LOG_LEVEL", "DEBUG")
        assert resolve_level(default="INFO") == "DEBUG"
        assert resolve_level(quiet=True) == "ERROR"

    def test_setup_logging_file(self, tmp_path):
        log_file = tmp_path / "run.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        logging.getLogger("hostprov.test").debug("detail line")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "detail line" in log_file.read_text()
        setup_logging("WARNING")

    def test_console_prefix(self, capsys):
        setup_logging("INFO")
        logging.getLogger("hostprov.test").warning("careful")
        logging.getLogger("hostprov.test").info("plain")
        err = capsys.readouterr().err
        assert "WARN: careful" in err
        assert "plain" in err
        setup_logging("WARNING")
