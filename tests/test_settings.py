"""
tests/test_settings.py
Layered configuration loading.
"""

import logging
import os

import pytest

from core.errors import ConfigError
from core.settings import (
    Cfg,
    CommandLineArgs,
    parse_command_line_overrides,
    resolve_home_path,
)


class TestHomePath:
    def test_explicit(self, tmp_path):
        assert resolve_home_path(str(tmp_path)) == str(tmp_path)

    def test_working_directory(self, tmp_workdir):
        assert resolve_home_path() == str(tmp_workdir)

    def test_parent_directory(self, tmp_workdir, monkeypatch):
        (tmp_workdir / "bin").mkdir()
        monkeypatch.chdir(tmp_workdir / "bin")
        assert resolve_home_path() == str(tmp_workdir)


class TestLayers:
    """Each layer overrides the previous one."""

    def test_defaults_only(self, tmp_workdir):
        cfg = Cfg().load(CommandLineArgs())
        assert cfg.home_path == str(tmp_workdir)
        assert cfg.data_path == os.path.join(str(tmp_workdir), "data")
        assert cfg.database["path"] == os.path.join(str(tmp_workdir), "data", "dashd.db")
        assert cfg.secret_key == "test-secret-key"
        assert [s.kind for s in cfg.sources] == ["file"]

    def test_missing_defaults(self, tmp_path):
        with pytest.raises(ConfigError, match="Could not find config defaults"):
            Cfg().load(CommandLineArgs(home_path=str(tmp_path)))

    def test_custom_yaml_picked_up(self, tmp_workdir):
        (tmp_workdir / "conf" / "custom.yaml").write_text(
            "security:\n  admin_user: root\n")
        cfg = Cfg().load(CommandLineArgs())
        assert cfg.admin_user == "root"
        assert cfg.secret_key == "test-secret-key"

    def test_explicit_config_file(self, tmp_workdir):
        path = tmp_workdir / "prod.yaml"
        path.write_text("database:\n  path: /srv/dashd/prod.db\n")
        cfg = Cfg().load(CommandLineArgs(config=str(path)))
        assert cfg.database["path"] == "/srv/dashd/prod.db"
        assert cfg.database["type"] == "sqlite3"

    def test_explicit_config_file_missing(self, tmp_workdir):
        with pytest.raises(ConfigError, match="config file not found"):
            Cfg().load(CommandLineArgs(config=str(tmp_workdir / "nope.yaml")))

    def test_invalid_yaml(self, tmp_workdir):
        path = tmp_workdir / "broken.yaml"
        path.write_text("security: [unclosed\n")
        with pytest.raises(ConfigError, match="failed to parse"):
            Cfg().load(CommandLineArgs(config=str(path)))

    def test_environment_overrides_file(self, tmp_workdir, monkeypatch):
        monkeypatch.setenv("DASHD_SECURITY_SECRET_KEY", "from-env")
        cfg = Cfg().load(CommandLineArgs())
        assert cfg.secret_key == "from-env"
        env_sources = [s.detail for s in cfg.sources if s.kind == "env"]
        assert env_sources == ["DASHD_SECURITY_SECRET_KEY=*********"]

    def test_command_line_overrides_environment(self, tmp_workdir, monkeypatch):
        monkeypatch.setenv("DASHD_PATHS_DATA", "/from/env")
        cfg = Cfg().load(CommandLineArgs(args=["newpw", "cfg:paths.data=/from/cli"]))
        assert cfg.data_path == "/from/cli"

    def test_command_line_default_loses_to_file(self, tmp_workdir):
        (tmp_workdir / "conf" / "custom.yaml").write_text("paths:\n  data: /from/file\n")
        cfg = Cfg().load(CommandLineArgs(args=["cfg:default.paths.data=/from/default",
                                               "cfg:default.paths.logs=/var/log/dashd"]))
        assert cfg.data_path == "/from/file"
        assert cfg.logs_path == "/var/log/dashd"

    def test_env_expansion(self, tmp_workdir, monkeypatch):
        monkeypatch.setenv("DASHD_TEST_ROOT", "/mnt/dashd")
        cfg = Cfg().load(CommandLineArgs(args=["cfg:paths.data=${DASHD_TEST_ROOT}/data"]))
        assert cfg.data_path == "/mnt/dashd/data"


class TestOverrideParsing:
    def test_split(self):
        overrides, defaults = parse_command_line_overrides(
            ["pw", "cfg:a.b=1", "cfg:default.c.d=2", "cfg:e.f="])
        assert overrides == [("a", "b", "1"), ("e", "f", "")]
        assert defaults == [("c", "d", "2")]

    @pytest.mark.parametrize("arg", ["cfg:nokey=1", "cfg:a.b", "cfg:.b=1"])
    def test_invalid(self, arg):
        with pytest.raises(ConfigError):
            parse_command_line_overrides([arg])


class TestLogSources:
    def test_logs_every_source(self, tmp_workdir, caplog):
        cfg = Cfg().load(CommandLineArgs(args=["cfg:security.admin_user=ops"]))
        with caplog.at_level(logging.INFO, logger="core.settings"):
            cfg.log_config_sources()
        text = caplog.text
        assert "Config loaded from" in text
        assert "Config overridden from command line: security.admin_user=ops" in text
        assert f"Path Home: {tmp_workdir}" in text
