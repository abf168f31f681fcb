"""Core data models for collabchat."""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Identity:
    """The principal decoded from a session token."""

    id: str
    email: str = ""


@dataclass(frozen=True)
class Human:
    """A real user sending messages."""

    id: str
    email: str = ""


@dataclass(frozen=True)
class Assistant:
    """The synthetic AI identity."""

    id = "ai"
    email = "AI"


@dataclass(frozen=True)
class System:
    """Client-local notices (sandbox output, run status)."""

    id = "system"
    email = "System"


Sender = Union[Human, Assistant, System]


@dataclass
class ChatMessage:
    """A single chat message in a room."""

    text: str
    sender: Sender
    timestamp: Optional[int] = None  # ms since epoch, the message's key within a room


@dataclass
class DeleteNotice:
    """A soft-delete request or its broadcast."""

    timestamp: int
    project_id: str
    sender: Sender


@dataclass
class Project:
    """A project document as read from the project store."""

    id: str
    users: list[str] = field(default_factory=list)
    file_tree: dict = field(default_factory=dict)
    name: str = ""


@dataclass
class AIResponse:
    """Structured output of the code generator."""

    text: str
    file_tree: Optional[dict] = None  # {path: {"file": {"contents": str}}}
    build_command: Any = None
    start_command: Any = None

    def to_dict(self) -> dict:
        data: dict = {"text": self.text}
        if self.file_tree is not None:
            data["fileTree"] = self.file_tree
        if self.build_command is not None:
            data["buildCommand"] = self.build_command
        if self.start_command is not None:
            data["startCommand"] = self.start_command
        return data


@dataclass(eq=False)
class Session:
    """One authenticated, live connection bound to a room.

    ``outbox`` holds frames waiting to be written to the connection; the
    transport drains it with a single writer task so frames leave in the
    order they were enqueued.
    """

    identity: Identity
    room_id: str
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)

    def deliver(self, frame: dict) -> None:
        self.outbox.put_nowait(frame)
