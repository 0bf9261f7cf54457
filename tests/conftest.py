"""
tests/conftest.py
Shared fixtures for dashctl tests.
Provides an isolated home path, a recording console and a fake plugin
repository served through httpx.MockTransport.
"""

import io
import json
import logging
import os
import zipfile

import httpx
import pytest
import yaml
from rich.console import Console

from cli.runner import Runtime
from core.bus import Bus


DEFAULTS = {
    "paths": {"data": "data", "plugins": "data/plugins"},
    "database": {"type": "sqlite3", "path": "dashd.db"},
    "security": {
        "admin_user": "admin",
        "admin_password": "admin",
        "secret_key": "test-secret-key",
    },
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's DASHD_* variables out of the tests."""
    for name in list(os.environ):
        if name.startswith("DASHD_") or name.startswith("DASHCTL_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tmp_workdir(tmp_path, monkeypatch):
    """Working directory laid out as a dashd home path."""
    monkeypatch.chdir(tmp_path)
    os.makedirs("conf", exist_ok=True)
    with open(os.path.join("conf", "defaults.yaml"), "w") as f:
        yaml.dump(DEFAULTS, f)
    return tmp_path


@pytest.fixture
def plugins_dir(tmp_path):
    path = tmp_path / "plugins"
    path.mkdir()
    return path


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200, no_color=True,
                   force_terminal=False, highlight=False)


@pytest.fixture
def runtime(console):
    return Runtime(console=console, bus=Bus())


@pytest.fixture
def output(console):
    """Everything printed to the runtime console so far."""
    return lambda: console.file.getvalue()


# ── Fake plugin repository ────────────────────────────────────────────────

def make_plugin_zip(plugin_id, version, dependencies=(), root=None) -> bytes:
    """Zip laid out like a repository download: <root>/plugin.json."""
    root = root or f"{plugin_id}-{version}"
    manifest = {
        "id": plugin_id,
        "name": plugin_id.title(),
        "info": {"version": version},
        "dependencies": {"plugins": [{"id": d, "version": "1.0.0"} for d in dependencies]},
    }
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(f"{root}/", "")
        zf.writestr(f"{root}/plugin.json", json.dumps(manifest))
        zf.writestr(f"{root}/dist/module.js", "export const plugin = {};")
    return buf.getvalue()


def write_installed_plugin(plugins_dir, plugin_id, version):
    path = os.path.join(str(plugins_dir), plugin_id)
    os.makedirs(path, exist_ok=True)
    with open(os.path.join(path, "plugin.json"), "w") as f:
        json.dump({"id": plugin_id, "info": {"version": version}}, f)
    return path


@pytest.fixture
def install_local(plugins_dir):
    """Drop a plugin.json into the plugins dir as if it were installed."""
    return lambda plugin_id, version: write_installed_plugin(plugins_dir, plugin_id, version)


class FakeRepo:
    """In-memory plugin repository speaking the /repo API."""

    base_url = "https://repo.test/api/plugins"
    make_zip = staticmethod(make_plugin_zip)

    def __init__(self):
        self.plugins: dict[str, dict] = {}
        self.archives: dict[tuple[str, str], bytes] = {}
        self.requests: list[str] = []

    def add(self, plugin_id, versions, dependencies=()):
        self.plugins[plugin_id] = {
            "id": plugin_id,
            "versions": [{"version": v} for v in versions],
        }
        for v in versions:
            self.archives[(plugin_id, v)] = make_plugin_zip(plugin_id, v, dependencies)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        prefix = "/api/plugins"
        rest = path[len(prefix):].strip("/").split("/")
        if rest == ["repo"]:
            return httpx.Response(200, json={"plugins": list(self.plugins.values())})
        if len(rest) == 2 and rest[0] == "repo":
            plugin = self.plugins.get(rest[1])
            if plugin is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json=plugin)
        if len(rest) == 4 and rest[1] == "versions" and rest[3] == "download":
            data = self.archives.get((rest[0], rest[2]))
            if data is None:
                return httpx.Response(404)
            return httpx.Response(200, content=data)
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_repo():
    return FakeRepo()


@pytest.fixture
def repo_runtime(runtime, fake_repo):
    runtime.http_transport = fake_repo.transport()
    return runtime


@pytest.fixture
def restore_logging():
    """Put back the root handlers that setup_logging() replaces."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for h in root.handlers[:]:
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
