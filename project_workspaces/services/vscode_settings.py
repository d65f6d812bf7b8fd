"""
VS Code settings block management.

Injects a marked block into a project's ``.vscode/settings.json`` that sets
``window.title`` to carry the ``AP:<id>`` token (how the IDE window is found
later) plus Peacock colors. The block is replaced in place on every launch;
the rest of the file is left untouched, comments included.
"""

import base64
import logging
from pathlib import Path
from typing import List, Optional

from ..constants import window_token
from ..errors import CommandError, LaunchError
from ..models import ProjectConfig, color_hex
from ..ssh import parse_remote_authority, shell_escape
from .command_runner import CommandRunner

logger = logging.getLogger(__name__)

START_MARKER = "// >>> agent-panel"
END_MARKER = "// <<< agent-panel"
MANAGED_COMMENT = "// Managed by AgentPanel. Do not edit this block manually."
COLOR_CUSTOMIZATIONS_KEY = '"workbench.colorCustomizations"'

SSH_TIMEOUT_SECONDS = 10.0
SSH_OPTIONS = ["-o", "ConnectTimeout=5", "-o", "BatchMode=yes"]


def window_title(identifier: str) -> str:
    return (
        f"{window_token(identifier)} - "
        "${dirty}${activeEditorShort}${separator}${rootName}${separator}${appName}"
    )


def _find_block(lines: List[str]) -> Optional[tuple]:
    """Line indexes of the start and end markers, or None."""
    start = next((i for i, line in enumerate(lines) if line.strip() == START_MARKER), None)
    if start is None:
        return None
    end = next((i for i in range(start + 1, len(lines)) if lines[i].strip() == END_MARKER), None)
    if end is None:
        return None
    return start, end


def extract_color_customizations(content: str) -> Optional[str]:
    """Return the raw ``workbench.colorCustomizations`` object inside the block.

    Peacock writes its colors into this key, so the value is carried over
    verbatim when the block is rewritten.
    """
    lines = content.split("\n")
    markers = _find_block(lines)
    if markers is None or markers[1] <= markers[0] + 1:
        return None

    block_text = "\n".join(lines[markers[0] + 1:markers[1]])
    key_index = block_text.find(COLOR_CUSTOMIZATIONS_KEY)
    if key_index < 0:
        return None
    colon = block_text.find(":", key_index + len(COLOR_CUSTOMIZATIONS_KEY))
    if colon < 0:
        return None
    open_brace = block_text.find("{", colon + 1)
    if open_brace < 0:
        return None

    depth = 0
    for index in range(open_brace, len(block_text)):
        char = block_text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return block_text[open_brace:index + 1]
    return None


def _remove_block(content: str) -> str:
    lines = content.split("\n")
    markers = _find_block(lines)
    if markers is None:
        return content
    start, end = markers
    return "\n".join(lines[:start] + lines[end + 1:])


def inject_block(content: str, identifier: str, color: Optional[str] = None) -> str:
    """Insert (or replace) the managed block right after the opening ``{``.

    Args:
        content: Existing settings.json text (JSON with comments)
        identifier: Project id for the window title token
        color: Project color; Peacock keys are written only if it resolves

    Returns:
        Updated settings text

    Raises:
        ValueError: Unbalanced markers, or no opening brace
    """
    has_start = START_MARKER in content
    has_end = END_MARKER in content
    if has_start != has_end:
        raise ValueError(
            "Cannot inject settings block: unbalanced agent-panel markers in settings.json.\n"
            f"Expected both markers:\n{START_MARKER}\n{END_MARKER}\n"
            "Fix the file manually, then retry."
        )

    existing_colors = extract_color_customizations(content)
    cleaned = _remove_block(content)

    brace = cleaned.find("{")
    if brace < 0:
        raise ValueError("Cannot inject settings block: content has no opening '{'.")

    before = cleaned[:brace + 1]
    after = cleaned[brace + 1:]
    has_content_after = after.strip() != "}"

    properties = [f'  "window.title": "{window_title(identifier)}"']
    hex_color = color_hex(color) if color else None
    if hex_color:
        properties.append(f'  "peacock.color": "{hex_color}"')
        properties.append(f'  "peacock.remoteColor": "{hex_color}"')
        properties.append(f'  "workbench.colorCustomizations": {existing_colors or "{}"}')

    # Every property but the last takes a comma; the last only if JSON follows
    for index in range(len(properties)):
        if index < len(properties) - 1 or has_content_after:
            properties[index] += ","

    block = "\n".join([f"  {START_MARKER}", f"  {MANAGED_COMMENT}", *properties, f"  {END_MARKER}"])

    if not has_content_after:
        return f"{before}\n{block}\n}}"
    return f"{before}\n{block}\n{after.lstrip(chr(13) + chr(10))}"


class VSCodeSettingsManager:
    """Writes the managed block locally or over SSH."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def ensure_block(self, project: ProjectConfig) -> None:
        """Write the settings block for a project.

        Raises:
            LaunchError: If the settings file cannot be read, updated or written
        """
        if project.is_ssh:
            self.write_remote_settings(project.remote, project.path, project.id, project.color)
        else:
            self.write_local_settings(project.local_path, project.id, project.color)

    def write_local_settings(self, project_path: Path, identifier: str, color: Optional[str] = None) -> None:
        if not project_path.is_dir():
            raise LaunchError(f"Project path does not exist or is not a directory: {project_path}")

        settings_file = project_path / ".vscode" / "settings.json"
        try:
            existing = settings_file.read_text(encoding="utf-8") if settings_file.exists() else "{}\n"
        except (OSError, UnicodeDecodeError) as e:
            raise LaunchError(f"Failed to read existing .vscode/settings.json at {settings_file}: {e}") from e

        try:
            updated = inject_block(existing, identifier, color)
        except ValueError as e:
            raise LaunchError(str(e)) from e

        try:
            settings_file.parent.mkdir(parents=True, exist_ok=True)
            settings_file.write_text(updated, encoding="utf-8")
        except OSError as e:
            raise LaunchError(f"Failed to write .vscode/settings.json: {e}") from e

        logger.debug(f"vscode_settings.written project={identifier} path={settings_file}")

    def write_remote_settings(
        self,
        remote_authority: str,
        remote_path: str,
        identifier: str,
        color: Optional[str] = None,
    ) -> None:
        try:
            target = parse_remote_authority(remote_authority)
        except ValueError as e:
            raise LaunchError(f"Malformed SSH remote authority: {remote_authority}") from e

        escaped_path = shell_escape(remote_path)
        settings_path = f"{escaped_path}/.vscode/settings.json"
        require_dir = (
            f"if [ ! -d {escaped_path} ]; then "
            f"echo Remote project path missing: {escaped_path} 1>&2; exit 1; fi"
        )

        read_command = f"{require_dir}; if [ -f {settings_path} ]; then cat {settings_path}; else echo '{{}}'; fi"
        existing = self._ssh(target, read_command, "read", remote_path)

        try:
            updated = inject_block(existing, identifier, color)
        except ValueError as e:
            raise LaunchError(str(e)) from e

        # base64 output is limited to [A-Za-z0-9+/=], safe inside single quotes
        encoded = base64.b64encode(updated.encode("utf-8")).decode("ascii")
        write_command = (
            f"{require_dir} && mkdir -p {escaped_path}/.vscode && "
            f"echo '{encoded}' | base64 -d > {settings_path}"
        )
        self._ssh(target, write_command, "write", remote_path)
        logger.debug(f"vscode_settings.written_remote project={identifier} target={target}")

    def _ssh(self, target: str, command: str, action: str, remote_path: str) -> str:
        try:
            result = self.runner.run(
                "ssh", [*SSH_OPTIONS, "--", target, command], timeout=SSH_TIMEOUT_SECONDS
            )
        except CommandError as e:
            raise LaunchError(
                f"SSH {action} failed for remote settings.json: {target} {remote_path}\n{e.message}"
            ) from e
        if result.exit_code != 0:
            stderr = result.stderr.strip()
            suffix = f"\n{stderr}" if stderr else ""
            raise LaunchError(
                f"SSH {action} failed with exit code {result.exit_code}: {target} {remote_path}{suffix}"
            )
        return result.stdout
