"""Read-only view over one parsed dashctl invocation."""
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, Sequence

from rich.console import Console

from core.plugin_repo import DEFAULT_REPO

if TYPE_CHECKING:
    from cli.runner import Runtime

DEFAULT_PLUGINS_DIR = "/var/lib/dashd/plugins"

# root flag name → (environment variable, default)
GLOBAL_FLAG_DEFAULTS = {
    "pluginsDir": ("DASHD_PLUGIN_DIR", DEFAULT_PLUGINS_DIR),
    "repo": ("DASHD_PLUGIN_REPO", DEFAULT_REPO),
    "pluginUrl": ("DASHD_PLUGIN_URL", ""),
}


def global_flag_default(name: str) -> str:
    env_name, default = GLOBAL_FLAG_DEFAULTS[name]
    return os.environ.get(env_name, default)


@dataclass
class Invocation:
    """What the parser produced for one run: namespace + matched parser."""
    namespace: argparse.Namespace
    parser: argparse.ArgumentParser
    argv: Sequence[str] = field(default_factory=tuple)


class CommandLine(Protocol):
    console: Console

    def string(self, name: str) -> str: ...

    def bool(self, name: str) -> bool: ...

    def args(self) -> list[str]: ...

    def show_help(self) -> None: ...

    def global_string(self, name: str) -> str: ...

    def plugin_directory(self) -> str: ...

    def repo_directory(self) -> str: ...

    def plugin_url(self) -> str: ...


class ContextCommandLine:
    """CommandLine backed by an argparse Invocation."""

    def __init__(self, invocation: Invocation, console: Console,
                 runtime: "Runtime | None" = None):
        self.invocation = invocation
        self.console = console
        self.runtime = runtime

    def string(self, name: str) -> str:
        value = getattr(self.invocation.namespace, name, "")
        return "" if value is None or isinstance(value, bool) else str(value)

    def bool(self, name: str) -> bool:
        return bool(getattr(self.invocation.namespace, name, False))

    def args(self) -> list[str]:
        return list(getattr(self.invocation.namespace, "args", None) or [])

    def show_help(self):
        self.console.print(self.invocation.parser.format_help(),
                           markup=False, highlight=False, soft_wrap=True, end="")

    # Root flags live on the same namespace; subparsers never redefine them.
    def global_string(self, name: str) -> str:
        return self.string(name)

    def plugin_directory(self) -> str:
        return self.global_string("pluginsDir") or global_flag_default("pluginsDir")

    def repo_directory(self) -> str:
        return self.global_string("repo") or global_flag_default("repo")

    def plugin_url(self) -> str:
        return self.global_string("pluginUrl")
