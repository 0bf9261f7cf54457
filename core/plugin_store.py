"""
core/plugin_store.py
The local plugins directory of a dashd install.

Layout:
  <pluginsDir>/{id}/
    plugin.json       id, name, info.version, dependencies.plugins
    dist/plugin.json  accepted instead of plugin.json (built plugins)
"""

from __future__ import annotations

import io
import json
import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from dataclasses import dataclass, field

from core.errors import PluginError

logger = logging.getLogger(__name__)

MANIFEST_NAMES = ("plugin.json", os.path.join("dist", "plugin.json"))


@dataclass
class InstalledPlugin:
    """Parsed plugin.json of an installed plugin."""
    id: str
    name: str = ""
    version: str = "0.0.0"
    path: str = ""
    dependencies: list[dict] = field(default_factory=list)


def validate_plugin_id(plugin_id: str):
    if not plugin_id or plugin_id in (".", "..") or "/" in plugin_id or os.sep in plugin_id:
        raise PluginError(f"invalid plugin id: {plugin_id!r}")


def ensure_plugins_dir(plugins_dir: str):
    if not plugins_dir:
        raise PluginError("missing pluginsDir flag")
    if os.path.exists(plugins_dir):
        if not os.path.isdir(plugins_dir):
            raise PluginError(f"plugins dir ({plugins_dir}) is not a directory")
        return
    os.makedirs(plugins_dir, exist_ok=True)
    logger.info("Created plugins dir: %s", plugins_dir)


def read_plugin(plugins_dir: str, plugin_id: str) -> InstalledPlugin:
    """Load the manifest of an installed plugin."""
    validate_plugin_id(plugin_id)
    plugin_path = os.path.join(plugins_dir, plugin_id)
    if not os.path.isdir(plugin_path):
        raise PluginError(f"plugin {plugin_id} is not installed")
    for name in MANIFEST_NAMES:
        manifest_path = os.path.join(plugin_path, name)
        if os.path.isfile(manifest_path):
            return _parse_manifest(manifest_path, plugin_path, plugin_id)
    raise PluginError(f"could not find plugin.json for {plugin_id} in {plugin_path}")


def installed_plugins(plugins_dir: str) -> list[InstalledPlugin]:
    """Every plugin with a readable manifest, sorted by id."""
    plugins = []
    if not os.path.isdir(plugins_dir):
        return plugins

    for name in sorted(os.listdir(plugins_dir)):
        if name.startswith(".") or name.startswith("_"):
            continue
        if not os.path.isdir(os.path.join(plugins_dir, name)):
            continue
        try:
            plugins.append(read_plugin(plugins_dir, name))
        except PluginError as e:
            logger.warning("[plugins] skipping %s: %s", name, e)
    return plugins


def extract_zip(data: bytes, plugins_dir: str, plugin_id: str) -> str:
    """Unpack a plugin archive into <plugins_dir>/<plugin_id>.

    The archive's top-level folder is replaced by the plugin id. Every entry
    is checked before anything is written, the archive is unpacked into a
    staging folder, and only a complete extraction replaces an existing
    install.
    """
    validate_plugin_id(plugin_id)
    plugins_dir = os.path.realpath(plugins_dir)
    target = os.path.join(plugins_dir, plugin_id)
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise PluginError(f"downloaded archive for {plugin_id} is not a zip file") from e

    with archive:
        entries = _plan_entries(archive, target)
        staging = tempfile.mkdtemp(prefix=f".{plugin_id}-", dir=plugins_dir)
        try:
            for member, relative in entries:
                dest = os.path.join(staging, relative)
                if member.is_dir():
                    os.makedirs(dest, exist_ok=True)
                    continue
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                with archive.open(member) as src, open(dest, "wb") as out:
                    shutil.copyfileobj(src, out)
        except (OSError, zipfile.BadZipFile, zlib.error) as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise PluginError(f"failed to unpack archive for {plugin_id}: {e}") from e

    _swap_into_place(staging, target)
    return target


def remove_plugin(plugins_dir: str, plugin_id: str):
    validate_plugin_id(plugin_id)
    plugin_path = os.path.join(plugins_dir, plugin_id)
    if not os.path.isdir(plugin_path):
        raise PluginError(f"plugin {plugin_id} is not installed")
    shutil.rmtree(plugin_path)
    logger.info("Removed plugin %s from %s", plugin_id, plugins_dir)


# ── Internal ────────────────────────────────────────────────────────────────

def _parse_manifest(manifest_path: str, plugin_path: str, plugin_id: str) -> InstalledPlugin:
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            manifest = json.load(f)
    except (OSError, ValueError) as e:
        raise PluginError(f"invalid plugin.json for {plugin_id}: {e}") from e
    if not isinstance(manifest, dict):
        raise PluginError(f"invalid plugin.json for {plugin_id}")

    info = manifest.get("info") or {}
    deps = (manifest.get("dependencies") or {}).get("plugins") or []
    return InstalledPlugin(
        id=manifest.get("id") or plugin_id,
        name=manifest.get("name", ""),
        version=str(info.get("version") or "0.0.0"),
        path=plugin_path,
        dependencies=[d for d in deps if isinstance(d, dict) and d.get("id")],
    )


def _common_root(names) -> str:
    """Shared top-level folder of all archive entries, or '' if none."""
    roots = set()
    for name in names:
        head, sep, _ = name.partition("/")
        if not sep:
            return ""
        roots.add(head)
    return roots.pop() if len(roots) == 1 else ""


def _plan_entries(archive: zipfile.ZipFile, target: str) -> list[tuple[zipfile.ZipInfo, str]]:
    """(member, path relative to the plugin folder) for every archive entry.

    Raises PluginError if any entry would land outside the plugin folder.
    """
    members = [m for m in archive.infolist() if m.filename.strip("/")]
    strip_root = _common_root(m.filename for m in members)
    entries = []
    for member in members:
        relative = member.filename
        if strip_root:
            relative = relative[len(strip_root) + 1:]
        if not relative.strip("/"):
            continue
        dest = os.path.normpath(os.path.join(target, relative))
        if not dest.startswith(target + os.sep):
            raise PluginError(
                f"archive entry {member.filename!r} is outside the plugin directory")
        entries.append((member, os.path.relpath(dest, target)))
    return entries


def _swap_into_place(staging: str, target: str):
    """Replace *target* with the fully extracted *staging* folder."""
    if not os.path.exists(target):
        os.rename(staging, target)
        return
    backup = staging + ".old"
    os.rename(target, backup)
    try:
        os.rename(staging, target)
    except OSError:
        os.rename(backup, target)
        shutil.rmtree(staging, ignore_errors=True)
        raise
    shutil.rmtree(backup, ignore_errors=True)
