"""
IDE and browser launchers.

Each launcher opens one new window whose title carries the project's
``AP:<id>`` token. Launchers only start the window; the orchestrator polls
AeroSpace until it shows up.
"""

import logging
from typing import List, Sequence

from ..constants import window_token
from ..errors import CommandError, LaunchError
from ..models import ProjectConfig
from .command_runner import CommandResult, CommandRunner, resolve_executable
from .vscode_settings import VSCodeSettingsManager

logger = logging.getLogger(__name__)

CODE_TIMEOUT_SECONDS = 10.0
AL_SYNC_TIMEOUT_SECONDS = 30.0
AL_VSCODE_TIMEOUT_SECONDS = 10.0
OSASCRIPT_TIMEOUT_SECONDS = 15.0


def applescript_escape(value: str) -> str:
    """Escape a value for a double-quoted AppleScript string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def osascript_args(lines: Sequence[str]) -> List[str]:
    args: List[str] = []
    for line in lines:
        args.extend(["-e", line])
    return args


def _check_exit(label: str, result: CommandResult) -> None:
    if result.exit_code == 0:
        return
    stderr = result.stderr.strip()
    suffix = f"\n{stderr}" if stderr else ""
    raise LaunchError(f"{label} failed with exit code {result.exit_code}.{suffix}")


def _run(runner: CommandRunner, label: str, executable: str, args: Sequence[str], **kwargs) -> None:
    try:
        result = runner.run(executable, args, **kwargs)
    except CommandError as e:
        detail = f" ({e.detail})" if e.detail else ""
        raise LaunchError(f"{e.message}{detail}") from e
    _check_exit(label, result)


class VSCodeLauncher:
    """Opens a VS Code window for a local or SSH project."""

    def __init__(self, runner: CommandRunner, settings: VSCodeSettingsManager):
        self.runner = runner
        self.settings = settings

    def open_new_window(self, project: ProjectConfig) -> None:
        """Write the title block, then run ``code --new-window``.

        Raises:
            LaunchError: Settings could not be written or ``code`` failed
        """
        self.settings.ensure_block(project)

        if project.is_ssh:
            args = ["--new-window", "--remote", project.remote, project.path]
        else:
            args = ["--new-window", str(project.local_path)]

        logger.info(f"launch.vscode project={project.id} ssh={project.is_ssh}")
        _run(self.runner, "code", "code", args, timeout=CODE_TIMEOUT_SECONDS)


class AgentLayerVSCodeLauncher:
    """Opens VS Code through the Agent Layer CLI (``al``).

    Runs ``al sync`` and then ``al vscode --no-sync --new-window``, both with
    the project directory as working directory. ``al vscode`` appends ``.``
    to its ``code`` arguments, so no path is passed explicitly.
    """

    def __init__(self, runner: CommandRunner, settings: VSCodeSettingsManager):
        self.runner = runner
        self.settings = settings

    def open_new_window(self, project: ProjectConfig) -> None:
        if project.is_ssh:
            raise LaunchError("Agent Layer launch does not support SSH remote projects.")

        project_path = project.local_path
        self.settings.write_local_settings(project_path, project.id, project.color)

        if resolve_executable("al") is None:
            raise LaunchError(
                "Agent Layer CLI (al) not found. "
                "Install the Agent Layer CLI and ensure it is on your PATH."
            )

        logger.info(f"launch.agent_layer project={project.id}")
        _run(self.runner, "al sync", "al", ["sync"], timeout=AL_SYNC_TIMEOUT_SECONDS, cwd=project_path)

        if resolve_executable("code") is None:
            raise LaunchError(
                "VS Code CLI (code) not found. "
                "Install VS Code and ensure the 'code' command is on your PATH."
            )
        _run(
            self.runner,
            "al vscode",
            "al",
            ["vscode", "--no-sync", "--new-window"],
            timeout=AL_VSCODE_TIMEOUT_SECONDS,
            cwd=project_path,
        )


class ChromeLauncher:
    """Opens a Chrome window named ``AP:<id>`` via AppleScript."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    @staticmethod
    def build_script(project_id: str, urls: Sequence[str]) -> List[str]:
        """AppleScript lines that open a window, load ``urls`` and name it.

        The first URL replaces the new-tab page of the active tab; the rest
        open as additional tabs in order.
        """
        lines = [
            'tell application "Google Chrome"',
            "set newWindow to make new window",
        ]
        if urls:
            lines.append(f'set URL of active tab of newWindow to "{applescript_escape(urls[0])}"')
            for url in urls[1:]:
                lines.append(
                    f'tell newWindow to make new tab with properties {{URL:"{applescript_escape(url)}"}}'
                )
        lines.append(f'set given name of newWindow to "{applescript_escape(window_token(project_id))}"')
        lines.append("end tell")
        return lines

    def open_new_window(self, project_id: str, urls: Sequence[str] = ()) -> None:
        """Open a tagged Chrome window.

        Raises:
            LaunchError: osascript could not run or exited non-zero
        """
        identifier = project_id.strip()
        if not identifier:
            raise LaunchError("Identifier cannot be empty.")
        if "/" in identifier:
            raise LaunchError("Identifier cannot contain '/'.")

        logger.info(f"launch.chrome project={identifier} tabs={len(urls)}")
        _run(
            self.runner,
            "osascript",
            "osascript",
            osascript_args(self.build_script(identifier, list(urls))),
            timeout=OSASCRIPT_TIMEOUT_SECONDS,
        )
