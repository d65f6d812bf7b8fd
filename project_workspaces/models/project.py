"""
Project and configuration models.

Pydantic models for the JSON configuration file. The whole document is
validated at load time; the orchestrator only ever sees validated, frozen
instances.
"""

import re
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from ..constants import WORKSPACE_PREFIX
from ..ssh import REMOTE_AUTHORITY_PREFIX, parse_remote_authority

RESERVED_IDS = frozenset({"inbox"})

_NON_ID_CHARS = re.compile(r"[^a-z0-9]+")
_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")

# Named project colors as RGB fractions.
COLOR_PALETTE: Dict[str, Tuple[float, float, float]] = {
    "black": (0.0, 0.0, 0.0),
    "blue": (0.0, 0.0, 1.0),
    "brown": (0.6471, 0.1647, 0.1647),
    "cyan": (0.0, 1.0, 1.0),
    "gray": (0.5020, 0.5020, 0.5020),
    "grey": (0.5020, 0.5020, 0.5020),
    "green": (0.0, 0.5020, 0.0),
    "indigo": (0.2941, 0.0, 0.5098),
    "orange": (1.0, 0.6471, 0.0),
    "pink": (1.0, 0.7529, 0.7961),
    "purple": (0.5020, 0.0, 0.5020),
    "red": (1.0, 0.0, 0.0),
    "teal": (0.0, 0.5020, 0.5020),
    "white": (1.0, 1.0, 1.0),
    "yellow": (1.0, 1.0, 0.0),
}


def normalize_id(value: str) -> str:
    """Normalize a project name or workspace name into an identifier.

    Lowercases, collapses every run of characters outside ``[a-z0-9]`` into a
    single hyphen and strips leading/trailing hyphens.

    Example:
        >>> normalize_id("  My Project (v2) ")
        'my-project-v2'
    """
    return _NON_ID_CHARS.sub("-", value.strip().lower()).strip("-")


def resolve_color(value: str) -> Optional[Tuple[float, float, float]]:
    """Resolve ``#RRGGBB`` or a palette name to RGB fractions (None if invalid)."""
    trimmed = value.strip()
    if _HEX_COLOR.match(trimmed):
        raw = int(trimmed[1:], 16)
        return ((raw >> 16 & 0xFF) / 255.0, (raw >> 8 & 0xFF) / 255.0, (raw & 0xFF) / 255.0)
    return COLOR_PALETTE.get(trimmed.lower())


def color_hex(value: str) -> Optional[str]:
    """Resolve a project color to an uppercase ``#RRGGBB`` string."""
    rgb = resolve_color(value)
    if rgb is None:
        return None
    return "#{:02X}{:02X}{:02X}".format(*(int(round(c * 255.0)) for c in rgb))


def _validate_urls(urls: List[str]) -> List[str]:
    cleaned = []
    for url in urls:
        trimmed = url.strip()
        if not trimmed.startswith(("http://", "https://")):
            raise ValueError(f'"{trimmed}" is not a valid URL (must start with http:// or https://)')
        cleaned.append(trimmed)
    return cleaned


class ChromeConfig(BaseModel):
    """Global Chrome tab configuration."""

    model_config = {"frozen": True}

    pinned_tabs: List[str] = Field(default_factory=list, description="URLs opened first in every new window")
    default_tabs: List[str] = Field(default_factory=list, description="URLs opened when no tab history exists")
    open_git_remote: bool = Field(default=False, description="Open the repository's git remote as a pinned tab")

    @field_validator("pinned_tabs", "default_tabs")
    @classmethod
    def validate_urls(cls, v: List[str]) -> List[str]:
        return _validate_urls(v)


class AgentLayerConfig(BaseModel):
    """Global Agent Layer settings."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=False, description="Default use_agent_layer for projects")


class LayoutConfig(BaseModel):
    """Window layout tuning for wide screens."""

    model_config = {"frozen": True}

    small_screen_threshold: float = Field(
        default=24, gt=0, description="Physical width (inches) below which the screen is 'small'"
    )
    window_height: int = Field(default=90, ge=1, le=100, description="Window height (% of screen height)")
    max_window_width: float = Field(default=18, gt=0, description="Maximum window width (inches)")
    ide_position: Literal["left", "right"] = Field(default="left", description="IDE side")
    justification: Literal["left", "right"] = Field(default="right", description="Screen edge the pair hugs")
    max_gap: int = Field(default=10, ge=0, le=100, description="Maximum gap (% of screen width)")


class ProjectConfig(BaseModel):
    """One configured project."""

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1, description="Stable project slug")
    name: str = Field(..., min_length=1, description="Display name")
    path: str = Field(..., min_length=1, description="Absolute project path (remote path for SSH projects)")
    remote: Optional[str] = Field(default=None, description="VS Code remote authority (ssh-remote+user@host)")
    color: str = Field(..., description="#RRGGBB or palette color name")
    use_agent_layer: bool = Field(default=False, description="Launch VS Code through Agent Layer")
    chrome_pinned_tabs: List[str] = Field(default_factory=list)
    chrome_default_tabs: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def derive_id(cls, data):
        """Derive the id from the name when absent and normalize it."""
        if isinstance(data, dict):
            data = dict(data)
            raw_id = data.get("id") or data.get("name") or ""
            data["id"] = normalize_id(str(raw_id))
        return data

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if v in RESERVED_IDS:
            raise ValueError(f"project id '{v}' is reserved")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        trimmed = v.strip()
        if not trimmed:
            raise ValueError("project name must not be empty")
        return trimmed

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        trimmed = v.strip()
        if resolve_color(trimmed) is None:
            names = ", ".join(sorted(COLOR_PALETTE))
            raise ValueError(f"color '{trimmed}' must be #RRGGBB or one of: {names}")
        return trimmed

    @field_validator("remote")
    @classmethod
    def validate_remote(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_remote_authority(v)
        return v

    @field_validator("chrome_pinned_tabs", "chrome_default_tabs")
    @classmethod
    def validate_urls(cls, v: List[str]) -> List[str]:
        return _validate_urls(v)

    @model_validator(mode="after")
    def validate_path_and_remote(self):
        """Check path shape against the project kind."""
        if self.remote is not None:
            if self.use_agent_layer:
                raise ValueError("Agent Layer is not supported with SSH projects")
            if not self.path.startswith("/"):
                raise ValueError("remote path must be an absolute path (starting with /)")
        elif self.path.startswith(REMOTE_AUTHORITY_PREFIX):
            raise ValueError("ssh-remote+ prefix in path; use remote = 'ssh-remote+user@host' instead")
        elif not Path(self.path).expanduser().is_absolute():
            raise ValueError("local path must be an absolute path")
        return self

    @computed_field
    @property
    def is_ssh(self) -> bool:
        """Project opens through VS Code Remote-SSH."""
        return self.remote is not None

    @property
    def workspace(self) -> str:
        return f"{WORKSPACE_PREFIX}{self.id}"

    @property
    def local_path(self) -> Path:
        """Local filesystem path with ``~`` expanded (meaningless for SSH projects)."""
        return Path(self.path).expanduser()


class AppConfig(BaseModel):
    """Top-level configuration document."""

    model_config = {"frozen": True}

    projects: List[ProjectConfig] = Field(default_factory=list)
    chrome: ChromeConfig = Field(default_factory=ChromeConfig)
    agent_layer: AgentLayerConfig = Field(default_factory=AgentLayerConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)

    @model_validator(mode="before")
    @classmethod
    def apply_agent_layer_default(cls, data):
        """Projects without ``use_agent_layer`` inherit ``agent_layer.enabled``."""
        if not isinstance(data, dict):
            return data
        agent_layer = data.get("agent_layer") or {}
        enabled = bool(agent_layer.get("enabled", False)) if isinstance(agent_layer, dict) else False
        projects = data.get("projects")
        if isinstance(projects, list):
            data = dict(data)
            data["projects"] = [
                {**p, "use_agent_layer": enabled} if isinstance(p, dict) and "use_agent_layer" not in p else p
                for p in projects
            ]
        return data

    @model_validator(mode="after")
    def validate_unique_ids(self):
        seen = set()
        for project in self.projects:
            if project.id in seen:
                raise ValueError(f"Duplicate project id: {project.id}")
            seen.add(project.id)
        return self

    def project(self, project_id: str) -> Optional[ProjectConfig]:
        """Look up a project by id."""
        for project in self.projects:
            if project.id == project_id:
                return project
        return None
