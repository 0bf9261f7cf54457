"""
cli/commands.py
Static command tree for dashctl. Built once at import, never mutated.

  plugins  install | list-remote | list-versions | update (upgrade)
           | update-all (upgrade-all) | ls | uninstall (remove)
  admin    reset-admin-password
           data-migration  encrypt-datasource-passwords
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

from cli import admin_cmd, datamigrations, plugins_cmd
from cli.runner import Action, run_db_command, run_plugin_command
from core.errors import CommandTreeError


@dataclass(frozen=True)
class FlagSpec:
    name: str
    usage: str = ""
    kind: str = "string"


@dataclass(frozen=True)
class CommandSpec:
    """One node of the command tree: a leaf with an action or a group."""
    name: str
    usage: str = ""
    aliases: tuple[str, ...] = ()
    flags: tuple[FlagSpec, ...] = ()
    action: Optional[Action] = None
    subcommands: tuple["CommandSpec", ...] = ()

    @property
    def is_leaf(self) -> bool:
        return self.action is not None

    def names(self) -> tuple[str, ...]:
        return (self.name,) + tuple(self.aliases)


DB_COMMAND_FLAGS = (
    FlagSpec("homepath", "path to dashd install/home path, defaults to working directory"),
    FlagSpec("config", "path to config file"),
)

# command path → default handler
DEFAULT_HANDLERS: dict[str, Callable] = {
    "plugins install": plugins_cmd.install_command,
    "plugins list-remote": plugins_cmd.list_remote_command,
    "plugins list-versions": plugins_cmd.list_versions_command,
    "plugins update": plugins_cmd.upgrade_command,
    "plugins update-all": plugins_cmd.upgrade_all_command,
    "plugins ls": plugins_cmd.ls_command,
    "plugins uninstall": plugins_cmd.remove_command,
    "admin reset-admin-password": admin_cmd.reset_password_command,
    "admin data-migration encrypt-datasource-passwords":
        datamigrations.encrypt_datasource_passwords,
}


def build_commands(handlers: Optional[Mapping[str, Callable]] = None) -> tuple[CommandSpec, ...]:
    """Assemble the root commands.

    *handlers* replaces leaf handlers by command path, e.g.
    ``{"plugins update": fake}``; unknown paths raise CommandTreeError.
    """
    bound = dict(DEFAULT_HANDLERS)
    for path, handler in (handlers or {}).items():
        if path not in bound:
            raise CommandTreeError(f"no leaf command at path {path!r}")
        bound[path] = handler

    plugin_commands = (
        CommandSpec(
            name="install",
            usage="install <plugin id> <plugin version (optional)>",
            action=run_plugin_command(bound["plugins install"]),
        ),
        CommandSpec(
            name="list-remote",
            usage="list remote available plugins",
            action=run_plugin_command(bound["plugins list-remote"]),
        ),
        CommandSpec(
            name="list-versions",
            usage="list-versions <plugin id>",
            action=run_plugin_command(bound["plugins list-versions"]),
        ),
        CommandSpec(
            name="update",
            usage="update <plugin id>",
            aliases=("upgrade",),
            action=run_plugin_command(bound["plugins update"]),
        ),
        CommandSpec(
            name="update-all",
            usage="update all your installed plugins",
            aliases=("upgrade-all",),
            action=run_plugin_command(bound["plugins update-all"]),
        ),
        CommandSpec(
            name="ls",
            usage="list all installed plugins",
            action=run_plugin_command(bound["plugins ls"]),
        ),
        CommandSpec(
            name="uninstall",
            usage="uninstall <plugin id>",
            aliases=("remove",),
            action=run_plugin_command(bound["plugins uninstall"]),
        ),
    )

    admin_commands = (
        CommandSpec(
            name="reset-admin-password",
            usage="reset-admin-password <new password>",
            flags=DB_COMMAND_FLAGS,
            action=run_db_command(bound["admin reset-admin-password"]),
        ),
        CommandSpec(
            name="data-migration",
            usage="Runs a script that migrates or cleanups data in your db",
            subcommands=(
                CommandSpec(
                    name="encrypt-datasource-passwords",
                    usage="Migrates passwords from unsecured fields to secure_json_data field. "
                          "Return ok unless there is an error. Safe to execute multiple times.",
                    flags=DB_COMMAND_FLAGS,
                    action=run_db_command(
                        bound["admin data-migration encrypt-datasource-passwords"]),
                ),
            ),
        ),
    )

    commands = (
        CommandSpec(name="plugins", usage="Manage plugins for dashd",
                    subcommands=plugin_commands),
        CommandSpec(name="admin", usage="dashd admin commands",
                    subcommands=admin_commands),
    )
    validate_commands(commands)
    return commands


def validate_commands(commands: Sequence[CommandSpec], path: str = ""):
    """Raise CommandTreeError if any structural invariant is broken."""
    seen: dict[str, str] = {}
    for spec in commands:
        where = f"{path} {spec.name}".strip()
        if not spec.name:
            raise CommandTreeError(f"unnamed command under {path or 'root'!r}")
        if spec.is_leaf == bool(spec.subcommands):
            raise CommandTreeError(
                f"{where!r} must have either an action or subcommands, not both or neither")
        for name in spec.names():
            if name in seen:
                raise CommandTreeError(
                    f"{where!r}: name {name!r} collides with {seen[name]!r}")
            seen[name] = where
        flag_names = [f.name for f in spec.flags]
        if len(flag_names) != len(set(flag_names)):
            raise CommandTreeError(f"{where!r} declares duplicate flags")
        if spec.subcommands:
            validate_commands(spec.subcommands, where)


def find_command(commands: Sequence[CommandSpec], path: Sequence[str]) -> Optional[CommandSpec]:
    """Resolve a name path (aliases allowed, case-sensitive); None if unknown."""
    if not path:
        return None
    head, rest = path[0], path[1:]
    for spec in commands:
        if head in spec.names():
            if not rest:
                return spec
            return find_command(spec.subcommands, rest)
    return None


def leaf_paths(commands: Sequence[CommandSpec], prefix: tuple[str, ...] = ()):
    """Yield (path, spec) for every leaf, canonical names only."""
    for spec in commands:
        path = prefix + (spec.name,)
        if spec.is_leaf:
            yield path, spec
        else:
            yield from leaf_paths(spec.subcommands, path)


COMMANDS = build_commands()
