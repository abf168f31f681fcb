"""Project store backed by a directory of JSON documents.

Layout: one ``<project id>.json`` file per project, holding the document as
the web app stores it::

    {"_id": "...", "name": "...", "users": ["..."], "fileTree": {...}}
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from ..core import Project
from ..provider import ProjectStore

logger = logging.getLogger(__name__)


class JsonProjectStore(ProjectStore):
    """Provider for projects exported as JSON files."""

    name = "json"

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def is_available(self) -> bool:
        return self.base_path.is_dir()

    async def find_project_by_id(self, project_id: str) -> Optional[Project]:
        return await asyncio.to_thread(self._load, project_id)

    # ── Private helpers ──────────────────────────────────────────────

    def _load(self, project_id: str) -> Optional[Project]:
        path = self.base_path / f"{project_id}.json"
        # Ids are validated before lookup, but never follow a path out of the store.
        if path.parent != self.base_path or not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read project file %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Project file %s does not hold an object", path)
            return None
        return _project_from_document(data, project_id)


def _project_from_document(data: dict, project_id: str) -> Project:
    users = data.get("users") or []
    file_tree = data.get("fileTree") or {}
    return Project(
        id=str(data.get("_id") or project_id),
        users=[str(u) for u in users] if isinstance(users, list) else [],
        file_tree=file_tree if isinstance(file_tree, dict) else {},
        name=str(data.get("name") or ""),
    )
