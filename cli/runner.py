"""
cli/runner.py
Execution profiles: wrap business handlers into dispatchable actions.

Two profiles:
  - PluginAction  handler(cmd), no configuration and no database
  - DbAction      handler(cmd, store), layered config and an initialized SqlStore

Actions never exit the process. They render the outcome on the runtime
console and return an exit code for main.main() to act on.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from rich.console import Console
from rich.markup import escape

from cli.commandline import CommandLine, ContextCommandLine, Invocation
from core.bus import Bus
from core.settings import Cfg, CommandLineArgs
from core.sqlstore import SqlStore
from core.theme import theme as _theme

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

RESTART_NOTICE = "Restart dashd after installing plugins . <service dashd restart>"

PluginHandler = Callable[[CommandLine], None]
DbHandler = Callable[[CommandLine, SqlStore], None]


@dataclass
class Runtime:
    """Process-wide collaborators, built once in main and passed down."""
    console: Console
    bus: Bus
    cfg_factory: Callable[[], Cfg] = Cfg
    store_factory: Callable[[Cfg, Bus], SqlStore] = SqlStore
    http_transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)

    @classmethod
    def default(cls) -> "Runtime":
        return cls(console=Console(), bus=Bus())


class Action(ABC):
    """Common callable interface for every leaf command."""

    handler: Callable

    @abstractmethod
    def __call__(self, invocation: Invocation, runtime: Runtime) -> int:
        ...

    def _fail(self, cmd: ContextCommandLine, err: Exception, cross: bool = False) -> int:
        logger.debug("%s failed: %s", type(self).__name__, type(err).__name__,
                     exc_info=err)
        console = cmd.console
        prefix = f"{_theme.cross()} " if cross else ""
        console.print()
        console.print(f"{_theme.paint('error', 'Error')}: {prefix}{escape(str(err))}")
        console.print()
        cmd.show_help()
        return EXIT_FAILURE


@dataclass
class PluginAction(Action):
    handler: PluginHandler

    def __call__(self, invocation: Invocation, runtime: Runtime) -> int:
        cmd = ContextCommandLine(invocation, runtime.console, runtime)
        try:
            self.handler(cmd)
        except Exception as e:
            return self._fail(cmd, e, cross=True)

        cmd.console.print()
        cmd.console.print(RESTART_NOTICE, markup=False)
        cmd.console.print()
        return EXIT_SUCCESS


@dataclass
class DbAction(Action):
    handler: DbHandler

    def __call__(self, invocation: Invocation, runtime: Runtime) -> int:
        cmd = ContextCommandLine(invocation, runtime.console, runtime)
        store = None
        try:
            cfg = runtime.cfg_factory()
            cfg.load(CommandLineArgs(
                config=cmd.string("config"),
                home_path=cmd.string("homepath"),
                args=cmd.args(),
            ))
            cfg.log_config_sources()

            store = runtime.store_factory(cfg, runtime.bus)
            store.init()

            self.handler(cmd, store)
        except Exception as e:
            if store is not None:
                _close_quietly(store)
            return self._fail(cmd, e)

        try:
            store.close()
        except Exception as e:
            return self._fail(cmd, e)

        cmd.console.print("\n")
        return EXIT_SUCCESS


def _close_quietly(store: SqlStore):
    """Close after a failure; the original error is the one reported."""
    try:
        store.close()
    except Exception as e:
        logger.warning("failed to close database: %s", e)


def run_plugin_command(handler: PluginHandler) -> PluginAction:
    return PluginAction(handler)


def run_db_command(handler: DbHandler) -> DbAction:
    return DbAction(handler)
