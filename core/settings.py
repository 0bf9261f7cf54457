"""
core/settings.py
Layered configuration for the dashd server, as seen by dashctl.

Layers, lowest precedence first:
  1. <homepath>/conf/defaults.yaml           (required)
  2. cfg:default.<section>.<key>=<value>     command-line defaults
  3. --config <file> or conf/custom.yaml     custom config file
  4. DASHD_<SECTION>_<KEY>                   environment variables
  5. cfg:<section>.<key>=<value>             command-line overrides

${VAR} references in values are expanded after all layers are merged.

Usage:
    cfg = Cfg().load(CommandLineArgs(config="/etc/dashd/dashd.yaml"))
    cfg.log_config_sources()
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from typing import Sequence

import yaml

from core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS_FILE = os.path.join("conf", "defaults.yaml")
CUSTOM_FILE = os.path.join("conf", "custom.yaml")
ENV_PREFIX = "DASHD_"
CFG_ARG_PREFIX = "cfg:"
CFG_DEFAULT_PREFIX = "default."

_REDACT_MARKERS = ("password", "secret", "token")


@dataclass
class CommandLineArgs:
    """Configuration inputs taken from the command line."""
    config: str = ""
    home_path: str = ""
    args: Sequence[str] = field(default_factory=tuple)


@dataclass
class ConfigSource:
    kind: str    # file | env | cli | cli-default
    detail: str


class Cfg:
    """Resolved dashd configuration."""

    def __init__(self):
        self.raw: dict = {}
        self.home_path = ""
        self.data_path = ""
        self.plugins_path = ""
        self.logs_path = ""
        self.database: dict = {}
        self.secret_key = ""
        self.admin_user = ""
        self.admin_password = ""
        self.sources: list[ConfigSource] = []

    def load(self, args: CommandLineArgs) -> "Cfg":
        """Resolve every layer. Raises ConfigError on any failure."""
        self.sources = []
        self.home_path = resolve_home_path(args.home_path)
        overrides, default_overrides = parse_command_line_overrides(args.args)

        defaults_path = os.path.join(self.home_path, DEFAULTS_FILE)
        if not os.path.isfile(defaults_path):
            raise ConfigError(
                "Could not find config defaults, make sure homepath command "
                "line parameter is set or working directory is homepath")
        raw = _read_yaml(defaults_path)
        self.sources.append(ConfigSource("file", defaults_path))

        for section, key, value in default_overrides:
            _set_value(raw, section, key, value)
            self.sources.append(ConfigSource(
                "cli-default", f"{section}.{key}={_redact(key, value)}"))

        custom_path = self._custom_config_path(args.config)
        if custom_path:
            _deep_merge(raw, _read_yaml(custom_path))
            self.sources.append(ConfigSource("file", custom_path))

        for section, values in raw.items():
            if not isinstance(values, dict):
                continue
            for key in list(values):
                env_name = f"{ENV_PREFIX}{section}_{key}".upper().replace(".", "_")
                if env_name in os.environ:
                    values[key] = os.environ[env_name]
                    self.sources.append(ConfigSource(
                        "env", f"{env_name}={_redact(key, values[key])}"))

        for section, key, value in overrides:
            _set_value(raw, section, key, value)
            self.sources.append(ConfigSource(
                "cli", f"{section}.{key}={_redact(key, value)}"))

        self.raw = _expand_env(raw)
        self._apply()
        return self

    def section(self, name: str) -> dict:
        value = self.raw.get(name) or {}
        return value if isinstance(value, dict) else {}

    def log_config_sources(self):
        """Log which files, variables and arguments produced this config."""
        labels = {
            "file": "Config loaded from",
            "cli-default": "Config overridden from command line default",
            "env": "Config overridden from environment variable",
            "cli": "Config overridden from command line",
        }
        for source in self.sources:
            logger.info("%s: %s", labels.get(source.kind, source.kind), source.detail)
        logger.info("Path Home: %s", self.home_path)
        logger.info("Path Data: %s", self.data_path)
        logger.info("Path Plugins: %s", self.plugins_path)
        logger.info("Database: %s (%s)", self.database.get("path", ""),
                    self.database.get("type", ""))

    # ── Internal ──────────────────────────────────────────────────────────

    def _custom_config_path(self, explicit: str) -> str:
        if explicit:
            path = explicit if os.path.isabs(explicit) else os.path.abspath(explicit)
            if not os.path.isfile(path):
                raise ConfigError(f"config file not found: {path}")
            return path
        path = os.path.join(self.home_path, CUSTOM_FILE)
        return path if os.path.isfile(path) else ""

    def _apply(self):
        paths = self.section("paths")
        self.data_path = _make_absolute(str(paths.get("data", "data")), self.home_path)
        self.plugins_path = _make_absolute(
            str(paths.get("plugins", os.path.join("data", "plugins"))), self.home_path)
        self.logs_path = _make_absolute(
            str(paths.get("logs", os.path.join("data", "log"))), self.home_path)

        self.database = {str(k): v for k, v in self.section("database").items()}
        self.database.setdefault("type", "sqlite3")
        db_path = str(self.database.get("path", "dashd.db"))
        if db_path != ":memory:":
            db_path = _make_absolute(db_path, self.data_path)
        self.database["path"] = db_path

        security = self.section("security")
        self.secret_key = str(security.get("secret_key", ""))
        self.admin_user = str(security.get("admin_user", "admin"))
        self.admin_password = str(security.get("admin_password", "admin"))


def resolve_home_path(explicit: str = "") -> str:
    """--homepath wins; otherwise the working directory or its parent,
    whichever holds conf/defaults.yaml."""
    if explicit:
        return os.path.abspath(explicit)
    cwd = os.path.abspath(os.getcwd())
    if os.path.isfile(os.path.join(cwd, DEFAULTS_FILE)):
        return cwd
    parent = os.path.dirname(cwd)
    if os.path.isfile(os.path.join(parent, DEFAULTS_FILE)):
        return parent
    return cwd


def parse_command_line_overrides(args: Sequence[str]):
    """Split cfg: arguments into (overrides, default_overrides).

    Each entry is (section, key, value). Other arguments are ignored.
    """
    overrides: list[tuple[str, str, str]] = []
    default_overrides: list[tuple[str, str, str]] = []
    for arg in args or ():
        if not arg.startswith(CFG_ARG_PREFIX):
            continue
        body = arg[len(CFG_ARG_PREFIX):]
        name, sep, value = body.partition("=")
        target = overrides
        if name.startswith(CFG_DEFAULT_PREFIX):
            name = name[len(CFG_DEFAULT_PREFIX):]
            target = default_overrides
        section, dot, key = name.partition(".")
        if not sep or not dot or not section or not key:
            raise ConfigError(
                f"invalid config override {arg!r}, expected cfg:<section>.<key>=<value>")
        target.append((section, key, value))
    return overrides, default_overrides


def _read_yaml(path: str) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def _deep_merge(base: dict, extra: dict) -> dict:
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _set_value(raw: dict, section: str, key: str, value: str):
    target = raw.get(section)
    if not isinstance(target, dict):
        target = raw[section] = {}
    target[key] = value


def _expand_env(value):
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str):
        return os.path.expandvars(value)
    return value


def _make_absolute(path: str, root: str) -> str:
    path = os.path.expanduser(path)
    if os.path.isabs(path):
        return path
    return os.path.join(root, path)


def _redact(key: str, value) -> str:
    if any(marker in key.lower() for marker in _REDACT_MARKERS):
        return "*********"
    return str(value)
