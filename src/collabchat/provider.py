"""Abstract base classes for the collaborators the chat core depends on."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .core import AIResponse, Project


class ProjectStore(ABC):
    """Read-only access to project documents.

    Each backend (in-memory, JSON directory) implements this interface so the
    authenticator can look projects up without knowing where they live.
    """

    name: str  # "memory", "json"

    @abstractmethod
    async def find_project_by_id(self, project_id: str) -> Optional[Project]:
        """Return the project with this id, or None if it does not exist."""
        ...


class CodeGenerator(ABC):
    """Turns a prompt into a structured AI response."""

    name: str  # "gemini", "unavailable"

    @abstractmethod
    async def generate(self, prompt: str) -> AIResponse:
        """Return a validated response or raise ``AIGenerationFailure``."""
        ...


class Sandbox(ABC):
    """Execution environment that generated file trees are mounted into."""

    @abstractmethod
    def mount(self, file_tree: dict) -> None:
        """Replace the sandbox contents with ``file_tree``."""
        ...

    @abstractmethod
    async def run(self, argv: list[str], on_output: Callable[[str], Any]) -> int:
        """Run ``argv`` against the mounted tree, passing each output line to ``on_output``.

        Returns the process exit code. Raises ``OSError`` if the process
        cannot be started.
        """
        ...
