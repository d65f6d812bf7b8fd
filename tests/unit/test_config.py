"""Unit tests for config models, loading and watching."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError
from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from project_workspaces.config import DebouncedReloadHandler, atomic_write_json, load_config
from project_workspaces.errors import ConfigError
from project_workspaces.models import AppConfig, ProjectConfig, color_hex, normalize_id, resolve_color
from project_workspaces.ssh import parse_remote_authority, shell_escape


def project(**overrides) -> dict:
    data = {"name": "Alpha", "path": "/Users/me/src/alpha", "color": "blue"}
    data.update(overrides)
    return data


class TestProjectConfig:
    """Field validation and derived properties."""

    def test_id_derived_from_name(self):
        config = ProjectConfig.model_validate(project(name="  My Project (v2) "))

        assert config.id == "my-project-v2"
        assert config.name == "My Project (v2)"
        assert config.workspace == "ap-my-project-v2"

    def test_explicit_id_is_normalized(self):
        assert ProjectConfig.model_validate(project(id="Web_App")).id == "web-app"

    def test_reserved_id_rejected(self):
        with pytest.raises(ValidationError, match="reserved"):
            ProjectConfig.model_validate(project(name="Inbox"))

    @pytest.mark.parametrize("color", ["#1A2b3C", "Teal", "grey"])
    def test_valid_colors(self, color):
        ProjectConfig.model_validate(project(color=color))

    @pytest.mark.parametrize("color", ["#12345", "chartreuse", ""])
    def test_invalid_colors(self, color):
        with pytest.raises(ValidationError, match="color"):
            ProjectConfig.model_validate(project(color=color))

    def test_color_hex(self):
        assert color_hex("#ff8800") == "#FF8800"
        assert color_hex("orange") == "#FFA500"
        assert color_hex("nope") is None
        assert resolve_color("white") == (1.0, 1.0, 1.0)

    def test_relative_local_path_rejected(self):
        with pytest.raises(ValidationError, match="absolute"):
            ProjectConfig.model_validate(project(path="src/alpha"))

    def test_tilde_path_is_expanded(self):
        config = ProjectConfig.model_validate(project(path="~/src/alpha"))
        assert config.local_path.is_absolute()

    def test_ssh_project(self):
        config = ProjectConfig.model_validate(project(remote="ssh-remote+me@box", path="/srv/alpha"))

        assert config.is_ssh is True

    def test_ssh_project_requires_absolute_remote_path(self):
        with pytest.raises(ValidationError, match="remote path"):
            ProjectConfig.model_validate(project(remote="ssh-remote+me@box", path="srv/alpha"))

    def test_ssh_prefix_in_path_rejected(self):
        with pytest.raises(ValidationError, match="ssh-remote"):
            ProjectConfig.model_validate(project(path="ssh-remote+me@box/srv"))

    def test_ssh_and_agent_layer_conflict(self):
        with pytest.raises(ValidationError, match="Agent Layer"):
            ProjectConfig.model_validate(
                project(remote="ssh-remote+me@box", path="/srv/alpha", use_agent_layer=True)
            )

    def test_tab_urls_must_be_http(self):
        with pytest.raises(ValidationError, match="valid URL"):
            ProjectConfig.model_validate(project(chrome_pinned_tabs=["ftp://example.com"]))


class TestAppConfig:

    def test_defaults(self):
        config = AppConfig.model_validate({"projects": [project()]})

        assert config.layout.small_screen_threshold == 24
        assert config.chrome.open_git_remote is False
        assert config.project("alpha").name == "Alpha"
        assert config.project("missing") is None

    def test_agent_layer_default_inherited(self):
        config = AppConfig.model_validate({
            "agent_layer": {"enabled": True},
            "projects": [project(), project(name="Beta", use_agent_layer=False)],
        })

        assert config.project("alpha").use_agent_layer is True
        assert config.project("beta").use_agent_layer is False

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate project id: alpha"):
            AppConfig.model_validate({"projects": [project(), project(name="ALPHA")]})

    def test_layout_bounds(self):
        with pytest.raises(ValidationError):
            AppConfig.model_validate({"layout": {"window_height": 0}})
        with pytest.raises(ValidationError):
            AppConfig.model_validate({"layout": {"ide_position": "top"}})


class TestLoadConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "config.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{ nope")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(path)

    def test_validation_errors_are_listed(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"projects": [project(color="mauve")]}))

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)

        assert exc_info.value.errors
        assert "projects.0.color" in exc_info.value.errors[0]
        assert "mauve" in str(exc_info.value)

    def test_loads_valid_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"projects": [project()]}))

        assert [p.id for p in load_config(path).projects] == ["alpha"]


class TestAtomicWrite:

    def test_writes_and_replaces(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        atomic_write_json(path, {"a": 1})
        atomic_write_json(path, {"a": 2})

        assert json.loads(path.read_text()) == {"a": 2}
        assert [p.name for p in path.parent.iterdir()] == ["state.json"]

    def test_temp_file_removed_on_error(self, tmp_path):
        path = tmp_path / "state.json"

        with pytest.raises(TypeError):
            atomic_write_json(path, {"bad": object()})

        assert list(tmp_path.iterdir()) == []


class TestDebouncedReloadHandler:

    def test_without_loop_calls_immediately(self):
        callback = MagicMock()
        handler = DebouncedReloadHandler(callback, "config.json")

        handler.on_modified(FileModifiedEvent("/tmp/cfg/config.json"))

        callback.assert_called_once()

    def test_ignores_other_files_and_directories(self):
        callback = MagicMock()
        handler = DebouncedReloadHandler(callback, "config.json")

        handler.on_modified(FileModifiedEvent("/tmp/cfg/other.json"))
        handler.on_modified(DirModifiedEvent("/tmp/cfg"))

        callback.assert_not_called()

    def test_atomic_save_rename_triggers(self):
        callback = MagicMock()
        handler = DebouncedReloadHandler(callback, "config.json")

        handler.on_moved(FileMovedEvent("/tmp/cfg/.config.json.tmp", "/tmp/cfg/config.json"))

        callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_rapid_events_coalesce(self):
        callback = MagicMock()
        handler = DebouncedReloadHandler(callback, "config.json", debounce_ms=20)
        handler.set_event_loop(asyncio.get_running_loop())

        for _ in range(5):
            handler.on_modified(FileModifiedEvent("/tmp/cfg/config.json"))
        await asyncio.sleep(0.1)

        callback.assert_called_once()


class TestSsh:

    def test_parse_remote_authority(self):
        assert parse_remote_authority("ssh-remote+me@box") == "me@box"

    @pytest.mark.parametrize("authority", ["me@box", "ssh-remote+", "ssh-remote+-oProxy", "ssh-remote+me @box"])
    def test_malformed_authorities(self, authority):
        with pytest.raises(ValueError):
            parse_remote_authority(authority)

    def test_shell_escape(self):
        assert shell_escape("it's") == "'it'\\''s'"


def test_normalize_id():
    assert normalize_id("--Hello   World--") == "hello-world"
