#!/usr/bin/env python3
"""
main.py  —  dashctl, the dashd administration CLI
Usage:
  dashctl plugins install <id> [version]       # install a plugin
  dashctl plugins list-remote                  # list repository plugins
  dashctl plugins list-versions <id>           # list versions of a plugin
  dashctl plugins update|upgrade <id>          # update one plugin
  dashctl plugins update-all|upgrade-all       # update every plugin
  dashctl plugins ls                           # list installed plugins
  dashctl plugins uninstall|remove <id>        # remove a plugin
  dashctl admin reset-admin-password <pw>      # reset the admin password
  dashctl admin data-migration encrypt-datasource-passwords

Global flags (before the command):
  --pluginsDir DIR   --repo URL   --pluginUrl URL   --insecure   --debug

Exit status: 0 success, 1 command failure, 2 usage error.
"""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from cli import dispatch_command
from cli.commands import COMMANDS
from cli.runner import Runtime
from core.env_loader import load_dotenv
from core.logging_config import setup_logging


def _wants_debug(argv: Sequence[str]) -> bool:
    return "--debug" in argv or "-d" in argv


def run(argv: Optional[Sequence[str]] = None, runtime: Optional[Runtime] = None) -> int:
    """Run one dashctl invocation and return its exit status."""
    argv = list(sys.argv[1:] if argv is None else argv)
    load_dotenv()
    setup_logging(level="DEBUG" if _wants_debug(argv) else "INFO")
    return dispatch_command(argv, COMMANDS, runtime or Runtime.default())


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
