"""Project ordering for pickers: match quality, then recency, then config order."""

from enum import IntEnum
from typing import Dict, List, Sequence

from ..models import ProjectConfig


class MatchType(IntEnum):
    NAME_PREFIX = 0
    ID_PREFIX = 1
    NAME_INFIX = 2
    ID_INFIX = 3
    NONE = 99


def match_type(project: ProjectConfig, query: str) -> MatchType:
    """Classify how a lowercased query matches a project."""
    name = project.name.lower()
    project_id = project.id.lower()
    if name.startswith(query):
        return MatchType.NAME_PREFIX
    if project_id.startswith(query):
        return MatchType.ID_PREFIX
    if query in name:
        return MatchType.NAME_INFIX
    if query in project_id:
        return MatchType.ID_INFIX
    return MatchType.NONE


def sort_projects(
    projects: Sequence[ProjectConfig],
    query: str,
    recent_ids: Sequence[str],
) -> List[ProjectConfig]:
    """Filter and order projects for a search query.

    Args:
        projects: Projects in config order
        query: Search text (empty means no filtering)
        recent_ids: Project ids, most recent first

    Returns:
        Matching projects, best first
    """
    needle = query.strip().lower()

    recency: Dict[str, int] = {}
    for rank, project_id in enumerate(recent_ids):
        recency.setdefault(project_id, rank)
    no_history = len(recent_ids)
    config_order = {project.id: index for index, project in enumerate(projects)}

    def recency_key(project: ProjectConfig):
        return recency.get(project.id, no_history), config_order[project.id]

    if not needle:
        return sorted(projects, key=recency_key)

    scored = [(match_type(p, needle), p) for p in projects]
    matched = [(m, p) for m, p in scored if m != MatchType.NONE]
    matched.sort(key=lambda item: (item[0], *recency_key(item[1])))
    return [p for _, p in matched]
