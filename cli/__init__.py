"""CLI dispatcher — turns the command tree into argparse and runs the matched leaf."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING, Optional, Sequence

from cli.commandline import Invocation, global_flag_default
from cli.helpers import get_version
from cli.runner import EXIT_SUCCESS, EXIT_USAGE, Runtime
from core.logging_config import set_correlation_id

if TYPE_CHECKING:
    from cli.commands import CommandSpec

logger = logging.getLogger(__name__)

PROG = "dashctl"


class ParserExit(Exception):
    """argparse wanted to exit (usage error, --help, --version)."""

    def __init__(self, status: int):
        super().__init__(status)
        self.status = status


class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that reports exits instead of performing them."""

    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ParserExit(status)


def build_parser(commands: Sequence["CommandSpec"], prog: str = PROG) -> CommandParser:
    parser = CommandParser(prog=prog, description="dashd administration tool",
                           allow_abbrev=False)
    parser.add_argument("--version", action="version",
                        version=f"{prog} {get_version()}")
    parser.add_argument("--pluginsDir", default=global_flag_default("pluginsDir"),
                        help="path to the dashd plugin directory "
                             "(env DASHD_PLUGIN_DIR)")
    parser.add_argument("--repo", default=global_flag_default("repo"),
                        help="URL to the plugin repository (env DASHD_PLUGIN_REPO)")
    parser.add_argument("--pluginUrl", default=global_flag_default("pluginUrl"),
                        help="full URL of the plugin zip file to install, "
                             "overrides repository lookup (env DASHD_PLUGIN_URL)")
    parser.add_argument("--insecure", action="store_true",
                        help="skip TLS verification of the plugin repository")
    parser.add_argument("--debug", "-d", action="store_true",
                        help="enable debug logging")
    parser.set_defaults(_action=None, _parser=parser)
    _add_subcommands(parser, commands)
    return parser


def _add_subcommands(parser: argparse.ArgumentParser, commands: Sequence["CommandSpec"]):
    sub = parser.add_subparsers(title="commands", metavar="COMMAND")
    for spec in commands:
        child = sub.add_parser(spec.name, aliases=list(spec.aliases), allow_abbrev=False,
                               help=spec.usage, description=spec.usage)
        for flag in spec.flags:
            child.add_argument(f"--{flag.name}", default="", help=flag.usage,
                               metavar=flag.name.upper())
        if spec.is_leaf:
            child.add_argument("args", nargs="*", metavar="ARG",
                               help="command arguments")
            child.set_defaults(_action=spec.action, _parser=child)
        else:
            child.set_defaults(_action=None, _parser=child)
            _add_subcommands(child, spec.subcommands)


def parse_invocation(argv: Sequence[str], commands: Sequence["CommandSpec"]) -> Invocation:
    """Parse argv; raises ParserExit for usage errors, --help and --version."""
    parser = build_parser(commands)
    namespace = parser.parse_args(list(argv))
    return Invocation(namespace=namespace, parser=namespace._parser, argv=tuple(argv))


def dispatch_command(argv: Optional[Sequence[str]], commands: Sequence["CommandSpec"],
                     runtime: Runtime) -> int:
    """Route argv to the matched leaf action and return its exit code."""
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        invocation = parse_invocation(argv, commands)
    except ParserExit as e:
        return e.status

    action = invocation.namespace._action
    if action is None:
        # group or bare program name: show what is available
        runtime.console.print(invocation.parser.format_help(), markup=False,
                              highlight=False, soft_wrap=True, end="")
        return EXIT_SUCCESS

    set_correlation_id(command=invocation.parser.prog)
    logger.debug("dispatching %s", " ".join(argv))
    return action(invocation, runtime)


__all__ = [
    "CommandParser",
    "EXIT_USAGE",
    "ParserExit",
    "build_parser",
    "dispatch_command",
    "parse_invocation",
]
