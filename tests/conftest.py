"""Pytest configuration and shared fakes for project workspace tests."""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Union
from unittest.mock import MagicMock

import pytest

# Make the package importable without installation
package_root = Path(__file__).parent.parent
if str(package_root) not in sys.path:
    sys.path.insert(0, str(package_root))

from project_workspaces.constants import BROWSER_BUNDLE_ID, IDE_BUNDLE_ID, DataPaths
from project_workspaces.errors import AeroSpaceCommandError, AeroSpaceError, AeroSpaceParseError
from project_workspaces.models import AppConfig, CapturedFocus, ManagedWindow, WorkspaceSummary
from project_workspaces.services.chrome_tabs import ChromeTabStore
from project_workspaces.services.command_runner import CommandResult
from project_workspaces.services.project_manager import ProjectManager
from project_workspaces.services.state_stores import RecencyStore


class FakeClock:
    """Manual monotonic clock; sleeping advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep_sync(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleep_sync(seconds)


Response = Union[CommandResult, Exception, Callable[[str, List[str]], CommandResult]]


class FakeRunner:
    """Command runner double.

    Responses are matched by the longest ``(executable, *args)`` prefix
    registered with ``on``; unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: List[dict] = []
        self._responses: Dict[tuple, List[Response]] = {}

    def on(self, prefix: Sequence[str], *responses: Response) -> "FakeRunner":
        """Queue responses; the last one repeats once the queue drains."""
        self._responses[tuple(prefix)] = list(responses)
        return self

    def commands(self) -> List[List[str]]:
        return [[call["executable"], *call["args"]] for call in self.calls]

    def run(self, executable, args, timeout=None, cwd=None) -> CommandResult:
        args = list(args)
        self.calls.append({"executable": executable, "args": args, "timeout": timeout, "cwd": cwd})
        key = (executable, *args)
        match = None
        for prefix in self._responses:
            if key[: len(prefix)] == prefix and (match is None or len(prefix) > len(match)):
                match = prefix
        if match is None:
            return CommandResult(exit_code=0, stdout="", stderr="")

        queue = self._responses[match]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if callable(response) and not isinstance(response, CommandResult):
            return response(executable, args)
        return response


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(exit_code=0, stdout=stdout, stderr="")


def failed(stderr: str, exit_code: int = 1) -> CommandResult:
    return CommandResult(exit_code=exit_code, stdout="", stderr=stderr)


class FakeAeroSpace:
    """In-memory window manager exposing the ``AeroSpaceClient`` surface."""

    def __init__(self, events: Optional[List[tuple]] = None):
        self.windows: Dict[int, ManagedWindow] = {}
        self.persistent_workspaces: List[str] = ["1"]
        self.focused_workspace = "1"
        self.focused_window_id: Optional[int] = None
        self.events: List[tuple] = events if events is not None else []
        self.fail_close: Set[int] = set()
        self.fail_focus: Set[int] = set()
        self._next_id = 100

    def add_window(self, bundle_id: str, workspace: str, title: str = "", window_id: Optional[int] = None) -> ManagedWindow:
        if window_id is None:
            self._next_id += 1
            window_id = self._next_id
        window = ManagedWindow(window_id=window_id, app_bundle_id=bundle_id, workspace=workspace, window_title=title)
        self.windows[window_id] = window
        return window

    def list_workspaces(self) -> List[str]:
        names: List[str] = []
        for name in [*self.persistent_workspaces, *(w.workspace for w in self.windows.values()), self.focused_workspace]:
            if name not in names:
                names.append(name)
        return names

    def list_workspaces_with_focus(self) -> List[WorkspaceSummary]:
        return [
            WorkspaceSummary(workspace=name, is_focused=name == self.focused_workspace)
            for name in self.list_workspaces()
        ]

    def list_windows_for_app(self, bundle_id: str) -> List[ManagedWindow]:
        return [w for w in self.windows.values() if w.app_bundle_id == bundle_id]

    def list_windows_workspace(self, workspace: str) -> List[ManagedWindow]:
        return [w for w in self.windows.values() if w.workspace == workspace]

    def move_window_to_workspace(self, workspace: str, window_id: int, focus_follows: bool = False) -> None:
        self.events.append(("move", window_id, workspace, focus_follows))
        window = self.windows[window_id]
        self.windows[window_id] = window.model_copy(update={"workspace": workspace})
        if focus_follows:
            self.focused_workspace = workspace
            self.focused_window_id = window_id

    def focus_workspace(self, name: str) -> None:
        self.events.append(("focus_workspace", name))
        self.focused_workspace = name

    def focus_window(self, window_id: int) -> None:
        self.events.append(("focus_window", window_id))
        if window_id in self.fail_focus or window_id not in self.windows:
            raise AeroSpaceCommandError(f"aerospace focus --window-id {window_id}", 1, "Invalid window id")
        self.focused_window_id = window_id
        self.focused_workspace = self.windows[window_id].workspace

    def focused_window(self) -> ManagedWindow:
        if self.focused_window_id not in self.windows:
            raise AeroSpaceParseError("Expected exactly one focused window, found 0.")
        return self.windows[self.focused_window_id]

    def close_workspace(self, name: str) -> List[str]:
        self.events.append(("close_workspace", name))
        windows = self.list_windows_workspace(name)
        failures = []
        for window in windows:
            if window.window_id in self.fail_close:
                failures.append(f"window {window.window_id}: close failed")
            else:
                del self.windows[window.window_id]
        if windows and len(failures) == len(windows):
            raise AeroSpaceError(f"Failed to close {len(failures)} windows in workspace {name}.")
        return failures


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def paths(tmp_path):
    """Data paths rooted in a temporary home directory."""
    return DataPaths(tmp_path / "home")


@pytest.fixture
def events():
    return []


@pytest.fixture
def fake_aerospace(events):
    return FakeAeroSpace(events)


@pytest.fixture
def app_config(tmp_path):
    """Two local projects (alpha, beta)."""
    return AppConfig.model_validate({
        "projects": [
            {"name": "Alpha", "path": str(tmp_path / "src" / "alpha"), "color": "blue"},
            {"name": "Beta", "path": str(tmp_path / "src" / "beta"), "color": "#FF8800"},
        ],
    })


# ============================================================================
# ProjectManager wiring
# ============================================================================

TERMINAL_BUNDLE_ID = "com.apple.Terminal"


def launcher_that_opens(fake_aerospace, events, bundle_id, title_suffix, label):
    """Launcher mock whose open_new_window makes a tagged window appear in workspace 1."""
    launcher = MagicMock()

    def open_new_window(project, *args):
        project_id = project if isinstance(project, str) else project.id
        events.append(("launch", label, args))
        fake_aerospace.add_window(bundle_id, "1", f"AP:{project_id} - {title_suffix}")

    launcher.open_new_window.side_effect = open_new_window
    return launcher


@pytest.fixture
def chrome_launcher(fake_aerospace, events):
    return launcher_that_opens(fake_aerospace, events, BROWSER_BUNDLE_ID, "Google Chrome", "chrome")


@pytest.fixture
def ide_launcher(fake_aerospace, events):
    return launcher_that_opens(fake_aerospace, events, IDE_BUNDLE_ID, "main.py", "vscode")


@pytest.fixture
def agent_layer_launcher(fake_aerospace, events):
    return launcher_that_opens(fake_aerospace, events, IDE_BUNDLE_ID, "main.py", "agent_layer")


@pytest.fixture
def tab_capture():
    capture = MagicMock()
    capture.capture_tab_urls.return_value = []
    return capture


@pytest.fixture
def git_remote():
    resolver = MagicMock()
    resolver.resolve.return_value = None
    return resolver


@pytest.fixture
def tab_store(paths):
    return ChromeTabStore(paths.chrome_tabs_dir)


@pytest.fixture
def make_manager(
    fake_aerospace,
    ide_launcher,
    agent_layer_launcher,
    chrome_launcher,
    tab_store,
    tab_capture,
    git_remote,
    paths,
    app_config,
    clock,
):
    """Build a manager with the loaded app_config; extra kwargs override wiring."""
    def factory(config=None, **overrides):
        kwargs = dict(
            aerospace=fake_aerospace,
            ide_launcher=ide_launcher,
            agent_layer_launcher=agent_layer_launcher,
            chrome_launcher=chrome_launcher,
            tab_store=tab_store,
            tab_capture=tab_capture,
            git_remote=git_remote,
            recency=RecencyStore(paths.recent_projects_file),
            config_loader=lambda: config or app_config,
            sleep=clock.sleep,
            clock=clock.monotonic,
        )
        kwargs.update(overrides)
        manager = ProjectManager(**kwargs)
        manager.load_config()
        return manager
    return factory


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def terminal(fake_aerospace):
    """A focused terminal window in workspace 1."""
    window = fake_aerospace.add_window(TERMINAL_BUNDLE_ID, "1", "zsh")
    fake_aerospace.focused_window_id = window.window_id
    fake_aerospace.focused_workspace = "1"
    return window


@pytest.fixture
def terminal_focus(terminal):
    return CapturedFocus.from_window(terminal)
