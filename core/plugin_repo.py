"""
core/plugin_repo.py — dashd plugin repository client.

Endpoints (relative to the repo base URL):
    GET  /repo                               all plugins with their versions
    GET  /repo/{id}                          one plugin
    GET  /{id}/versions/{version}/download   plugin zip archive

Uses a synchronous ``httpx.Client``; every transport or status error is
raised as PluginError.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import httpx

from core.errors import PluginError

logger = logging.getLogger(__name__)

DEFAULT_REPO = "https://plugins.dashd.io/api/plugins"
USER_AGENT = "dashctl"

_VERSION_RE = re.compile(r"^v?(\d+(?:\.\d+)*)(?:-([0-9A-Za-z.-]+))?(?:\+.*)?$")


class RepoClient:
    """HTTP client for the plugin repository."""

    def __init__(self, base_url: str = DEFAULT_REPO, *,
                 transport: Optional[httpx.BaseTransport] = None,
                 verify: bool = True, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            transport=transport,
            verify=verify,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── metadata ──────────────────────────────────────────────────────────

    def get_all_plugins(self) -> list[dict]:
        """GET /repo: every plugin known to the repository."""
        data = self._get_json(f"{self.base_url}/repo")
        plugins = data.get("plugins", []) if isinstance(data, dict) else data
        return [p for p in plugins or [] if isinstance(p, dict)]

    def get_plugin(self, plugin_id: str) -> dict:
        """GET /repo/{id}."""
        try:
            data = self._get_json(f"{self.base_url}/repo/{plugin_id}")
        except _NotFound:
            raise PluginError(f"plugin {plugin_id} not found in repository") from None
        if not isinstance(data, dict):
            raise PluginError(f"unexpected repository response for {plugin_id}")
        return data

    # ── downloads ─────────────────────────────────────────────────────────

    def download_url(self, plugin_id: str, version: str) -> str:
        return f"{self.base_url}/{plugin_id}/versions/{version}/download"

    def download(self, url: str) -> bytes:
        logger.debug("downloading %s", url)
        try:
            resp = self._client.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PluginError(
                f"failed to download plugin archive ({e.response.status_code}): {url}") from e
        except httpx.HTTPError as e:
            raise PluginError(f"failed to download plugin archive: {e}") from e
        return resp.content

    # ── Internal ──────────────────────────────────────────────────────────

    def _get_json(self, url: str):
        logger.debug("GET %s", url)
        try:
            resp = self._client.get(url)
            if resp.status_code == 404:
                raise _NotFound(url)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise PluginError(
                f"plugin repository returned {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            raise PluginError(f"failed to reach plugin repository: {e}") from e
        except ValueError as e:
            raise PluginError(f"invalid JSON from plugin repository: {url}") from e


class _NotFound(Exception):
    pass


# ── Versions ──────────────────────────────────────────────────────────────

def version_key(version: str) -> tuple:
    """Sort key: dotted numeric parts, pre-releases before their release."""
    m = _VERSION_RE.match(version.strip())
    if not m:
        return ((), 0, version)
    numbers = tuple(int(p) for p in m.group(1).split("."))
    # pad so 1.2 == 1.2.0
    numbers = numbers + (0,) * max(0, 3 - len(numbers))
    pre = m.group(2)
    return (numbers, 0 if pre else 1, pre or "")


def is_newer(candidate: str, current: str) -> bool:
    return version_key(candidate) > version_key(current)


def plugin_versions(plugin: dict) -> list[str]:
    """Version strings of a repository plugin, newest first."""
    versions = [v.get("version", "") for v in plugin.get("versions", []) if isinstance(v, dict)]
    return sorted((v for v in versions if v), key=version_key, reverse=True)


def latest_version(plugin: dict) -> str:
    versions = plugin_versions(plugin)
    return versions[0] if versions else ""


def select_version(plugin: dict, requested: str = "") -> str:
    """Latest version, or *requested* if the repository has it."""
    versions = plugin_versions(plugin)
    if not versions:
        raise PluginError(f"plugin {plugin.get('id', '?')} has no published versions")
    if not requested:
        return versions[0]
    for v in versions:
        if v == requested:
            return v
    raise PluginError("Could not find the version you're looking for")
