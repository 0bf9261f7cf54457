"""
cli/plugins_cmd.py
Plugin management handlers.

Commands:
  dashctl plugins install <id> [version]   # install from the repository
  dashctl plugins list-remote              # list repository plugins
  dashctl plugins list-versions <id>       # list versions of one plugin
  dashctl plugins update <id>              # update one installed plugin
  dashctl plugins update-all               # update every installed plugin
  dashctl plugins ls                       # list installed plugins
  dashctl plugins uninstall <id>           # remove an installed plugin

Handlers raise on failure; cli.runner renders the error.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from rich.markup import escape

from cli.commandline import CommandLine
from core.errors import PluginError, ValidationError
from core.plugin_repo import RepoClient, is_newer, latest_version, plugin_versions, select_version
from core.plugin_store import (
    ensure_plugins_dir,
    extract_zip,
    installed_plugins,
    read_plugin,
    remove_plugin,
    validate_plugin_id,
)
from core.theme import theme as _theme

logger = logging.getLogger(__name__)

def install_command(cmd: CommandLine):
    """Install a plugin and its plugin dependencies."""
    plugin_id = _first_arg(cmd, "please specify plugin to install")
    validate_plugin_id(plugin_id)
    args = cmd.args()
    version = args[1] if len(args) > 1 else ""

    plugins_dir = cmd.plugin_directory()
    ensure_plugins_dir(plugins_dir)

    with _repo_client(cmd) as client:
        install_plugin(cmd, client, plugin_id, version, plugins_dir)


def list_remote_command(cmd: CommandLine):
    with _repo_client(cmd) as client:
        plugins = client.get_all_plugins()

    for plugin in plugins:
        cmd.console.print(f"id: {plugin.get('id', '?')} version: {latest_version(plugin)}",
                          markup=False, highlight=False)


def list_versions_command(cmd: CommandLine):
    plugin_id = _first_arg(cmd, "please specify plugin to list versions for")
    with _repo_client(cmd) as client:
        plugin = client.get_plugin(plugin_id)

    for version in plugin_versions(plugin):
        cmd.console.print(version, markup=False, highlight=False)


def upgrade_command(cmd: CommandLine):
    """Reinstall one plugin if the repository has a newer version."""
    plugin_id = _first_arg(cmd, "please specify plugin to update")
    plugins_dir = cmd.plugin_directory()
    local = read_plugin(plugins_dir, plugin_id)

    with _repo_client(cmd) as client:
        latest = latest_version(client.get_plugin(plugin_id))
        if latest and is_newer(latest, local.version):
            install_plugin(cmd, client, plugin_id, "", plugins_dir)
            return

    cmd.console.print(f"{_theme.check()} {escape(plugin_id)} is up to date")


def upgrade_all_command(cmd: CommandLine):
    plugins_dir = cmd.plugin_directory()
    local = installed_plugins(plugins_dir)

    with _repo_client(cmd) as client:
        remote = {p.get("id"): p for p in client.get_all_plugins()}

        outdated = []
        for plugin in local:
            if plugin.id not in remote:
                logger.debug("%s is not in the repository, skipping", plugin.id)
                continue
            if is_newer(latest_version(remote[plugin.id]), plugin.version):
                outdated.append(plugin)

        for plugin in outdated:
            cmd.console.print(f"Updating {plugin.id}", markup=False)
            install_plugin(cmd, client, plugin.id, "", plugins_dir, use_plugin_url=False)

    if outdated:
        cmd.console.print(f"{_theme.check()} Updated {len(outdated)} plugin(s)")
    else:
        cmd.console.print(f"{_theme.check()} All plugins are up to date")


def ls_command(cmd: CommandLine):
    plugins_dir = cmd.plugin_directory()
    if not os.path.isdir(plugins_dir):
        raise PluginError(f"plugins dir {plugins_dir} does not exist")

    plugins = installed_plugins(plugins_dir)
    if not plugins:
        cmd.console.print("No plugins found")
        return

    cmd.console.print("installed plugins:")
    for plugin in plugins:
        cmd.console.print(f"{escape(plugin.id)} {_theme.paint('warning', '@')} {plugin.version}",
                          highlight=False)


def remove_command(cmd: CommandLine):
    plugin_id = _first_arg(cmd, "Missing plugin parameter")
    remove_plugin(cmd.plugin_directory(), plugin_id)
    cmd.console.print(f"{_theme.check()} Removed plugin: {escape(plugin_id)}")


# ── Install ─────────────────────────────────────────────────────────────────

def install_plugin(cmd: CommandLine, client: RepoClient, plugin_id: str, version: str,
                   plugins_dir: str, *, use_plugin_url: bool = True,
                   _seen: Optional[set] = None):
    """Download and unpack one plugin, then its missing dependencies."""
    seen = _seen if _seen is not None else set()
    if plugin_id in seen:
        return
    seen.add(plugin_id)

    plugin_url = cmd.plugin_url() if use_plugin_url else ""
    if plugin_url:
        download_url = plugin_url
        version = version or "unknown version"
    else:
        version = select_version(client.get_plugin(plugin_id), version)
        download_url = client.download_url(plugin_id, version)

    console = cmd.console
    console.print(f"installing {plugin_id} @ {version}", markup=False, highlight=False)
    console.print(f"from: {download_url}", markup=False, highlight=False)
    console.print(f"into: {plugins_dir}", markup=False, highlight=False)
    console.print()

    extract_zip(client.download(download_url), plugins_dir, plugin_id)
    console.print(f"{_theme.check()} Installed {escape(plugin_id)} successfully")
    logger.info("installed plugin %s %s into %s", plugin_id, version, plugins_dir)

    installed = read_plugin(plugins_dir, plugin_id)
    for dep in installed.dependencies:
        dep_id = dep["id"]
        if dep_id in seen:
            continue
        if os.path.isdir(os.path.join(plugins_dir, dep_id)):
            logger.debug("dependency %s of %s already installed", dep_id, plugin_id)
            continue
        install_plugin(cmd, client, dep_id, "", plugins_dir,
                       use_plugin_url=False, _seen=seen)
        console.print(f"Installed dependency: {escape(dep_id)} {_theme.check()}")


# ── Internal ────────────────────────────────────────────────────────────────

def _first_arg(cmd: CommandLine, missing_message: str) -> str:
    args = cmd.args()
    if not args or not args[0]:
        raise ValidationError(missing_message)
    return args[0]


def _repo_client(cmd: CommandLine) -> RepoClient:
    runtime = getattr(cmd, "runtime", None)
    transport = runtime.http_transport if runtime is not None else None
    return RepoClient(cmd.repo_directory(), transport=transport,
                      verify=not cmd.bool("insecure"))
