"""In-memory project store, used when no projects directory is configured."""

from typing import Iterable, Optional

from ..core import Project
from ..provider import ProjectStore


class MemoryProjectStore(ProjectStore):
    """Holds project documents in a dict keyed by id."""

    name = "memory"

    def __init__(self, projects: Iterable[Project] = ()):
        self._projects: dict[str, Project] = {}
        for project in projects:
            self.add(project)

    def add(self, project: Project) -> None:
        self._projects[project.id] = project

    async def find_project_by_id(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)
