"""
tests/test_plugin_store.py
"""

import io
import zipfile

import pytest

from core.errors import PluginError
from core.plugin_store import (
    ensure_plugins_dir,
    extract_zip,
    installed_plugins,
    read_plugin,
    validate_plugin_id,
)


def _zip(entries):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buf.getvalue()


class TestExtractZip:
    def test_strips_top_level_folder(self, plugins_dir):
        data = _zip({"clock-1.0/plugin.json": '{"id": "clock"}',
                     "clock-1.0/img/logo.svg": "<svg/>"})
        target = extract_zip(data, str(plugins_dir), "clock")
        assert (plugins_dir / "clock" / "plugin.json").exists()
        assert (plugins_dir / "clock" / "img" / "logo.svg").exists()
        assert target.endswith("clock")

    def test_flat_archive(self, plugins_dir):
        extract_zip(_zip({"plugin.json": "{}", "module.js": ""}), str(plugins_dir), "flat")
        assert (plugins_dir / "flat" / "module.js").exists()

    def test_not_a_zip(self, plugins_dir):
        with pytest.raises(PluginError, match="not a zip file"):
            extract_zip(b"not a zip", str(plugins_dir), "x")

    def test_absolute_entry_rejected(self, plugins_dir):
        data = _zip({"/etc/passwd": "x", "other.txt": "y"})
        with pytest.raises(PluginError, match="outside the plugin directory"):
            extract_zip(data, str(plugins_dir), "x")

    def test_rejected_archive_leaves_existing_install(self, plugins_dir):
        extract_zip(_zip({"plugin.json": '{"info": {"version": "1.0.0"}}'}),
                    str(plugins_dir), "clock")
        data = _zip({"clock/plugin.json": "{}", "clock/../../escaped.txt": "x"})
        with pytest.raises(PluginError):
            extract_zip(data, str(plugins_dir), "clock")
        assert read_plugin(str(plugins_dir), "clock").version == "1.0.0"
        assert [p.name for p in plugins_dir.iterdir()] == ["clock"]

    def test_reinstall_replaces_contents(self, plugins_dir):
        extract_zip(_zip({"old.js": "", "plugin.json": "{}"}), str(plugins_dir), "clock")
        extract_zip(_zip({"new.js": "", "plugin.json": "{}"}), str(plugins_dir), "clock")
        contents = sorted(p.name for p in (plugins_dir / "clock").iterdir())
        assert contents == ["new.js", "plugin.json"]
        assert [p.name for p in plugins_dir.iterdir()] == ["clock"]


class TestManifests:
    def test_invalid_json_is_skipped_in_listing(self, plugins_dir, install_local):
        install_local("good", "1.0.0")
        (plugins_dir / "bad").mkdir()
        (plugins_dir / "bad" / "plugin.json").write_text("{")
        assert [p.id for p in installed_plugins(str(plugins_dir))] == ["good"]
        with pytest.raises(PluginError, match="invalid plugin.json"):
            read_plugin(str(plugins_dir), "bad")

    def test_missing_version_defaults(self, plugins_dir):
        (plugins_dir / "p").mkdir()
        (plugins_dir / "p" / "plugin.json").write_text('{"id": "p"}')
        assert read_plugin(str(plugins_dir), "p").version == "0.0.0"


@pytest.mark.parametrize("plugin_id", ["", ".", "..", "a/b", "../x"])
def test_invalid_plugin_ids(plugin_id):
    with pytest.raises(PluginError):
        validate_plugin_id(plugin_id)


def test_ensure_plugins_dir_rejects_file(tmp_path):
    path = tmp_path / "file"
    path.write_text("")
    with pytest.raises(PluginError, match="is not a directory"):
        ensure_plugins_dir(str(path))
