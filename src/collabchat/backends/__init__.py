"""Pick project store, code generator and sandbox backends from the environment."""

import logging
from typing import Optional

from ..config import get_ai_api_key, get_ai_model, get_projects_path, get_sandbox_path
from ..provider import CodeGenerator, ProjectStore, Sandbox
from .gemini import GeminiGenerator, UnavailableGenerator
from .jsonfile import JsonProjectStore
from .memory import MemoryProjectStore
from .sandbox import DirectorySandbox

logger = logging.getLogger(__name__)


def get_project_store() -> ProjectStore:
    """Return the JSON directory store if configured, else an empty in-memory one."""
    path = get_projects_path()
    if path is not None:
        store = JsonProjectStore(path)
        if store.is_available():
            return store
        logger.warning("Projects directory %s does not exist; using empty store", path)
    return MemoryProjectStore()


def get_generator() -> CodeGenerator:
    """Return the Gemini generator when an API key is set."""
    api_key = get_ai_api_key()
    if not api_key:
        logger.warning("No AI API key configured; @ai requests will fail")
        return UnavailableGenerator()
    return GeminiGenerator(api_key=api_key, model=get_ai_model())


def get_sandbox() -> Optional[Sandbox]:
    """Return a directory sandbox when a sandbox path is configured."""
    path = get_sandbox_path()
    if path is None:
        return None
    return DirectorySandbox(path)
