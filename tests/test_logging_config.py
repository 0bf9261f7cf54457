"""
tests/test_logging_config.py
"""

import json
import logging
import os

from core.env_loader import load_dotenv
from core.logging_config import (
    StructuredFormatter,
    get_correlation_id,
    set_correlation_id,
    setup_logging,
)


def _record(msg="hello"):
    return logging.LogRecord("dashctl.test", logging.INFO, __file__, 1, msg, None, None)


class TestStructuredFormatter:
    def test_json_fields(self):
        set_correlation_id("abc123", command="dashctl plugins ls")
        entry = json.loads(StructuredFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "dashctl.test"
        assert entry["msg"] == "hello"
        assert entry["cid"] == "abc123"
        assert entry["cmd"] == "dashctl plugins ls"

    def test_generated_correlation_id(self):
        set_correlation_id()
        assert len(get_correlation_id()) == 8


class TestSetupLogging:
    def test_level_and_single_console_handler(self, restore_logging):
        setup_logging("DEBUG")
        root = setup_logging("WARNING")
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_file_handler(self, restore_logging, tmp_path, monkeypatch):
        monkeypatch.setenv("DASHCTL_LOG_FORMAT", "json")
        root = setup_logging("INFO", log_dir=str(tmp_path / "logs"))
        logging.getLogger("dashctl.test").info("to file")
        for h in root.handlers:
            h.flush()
        line = (tmp_path / "logs" / "dashctl.log").read_text().strip().splitlines()[-1]
        assert json.loads(line)["msg"] == "to file"


class TestDotenv:
    def test_loads_without_overriding(self, tmp_path, monkeypatch):
        env = tmp_path / ".env"
        env.write_text("# comment\nexport DASHD_PLUGIN_DIR='/opt/plugins'\n"
                       "DASHD_PLUGIN_REPO=https://mirror\n\nnot a pair\n")
        monkeypatch.setenv("DASHD_PLUGIN_DIR", "")
        monkeypatch.delenv("DASHD_PLUGIN_DIR")
        monkeypatch.setenv("DASHD_PLUGIN_REPO", "https://already-set")
        assert load_dotenv(str(env)) == 2
        assert os.environ["DASHD_PLUGIN_DIR"] == "/opt/plugins"
        assert os.environ["DASHD_PLUGIN_REPO"] == "https://already-set"

    def test_missing_file(self, tmp_path):
        assert load_dotenv(str(tmp_path / "nope")) == 0
