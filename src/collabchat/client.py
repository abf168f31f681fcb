"""WebSocket client for a project room.

Keeps a ``ClientReconciler`` in sync with the room: sends are logged
locally straight away and their room echo is folded in without doubling
them up.
"""

import json
import logging
from typing import Callable, Optional
from urllib.parse import urlencode

import websockets

from .auth import peek_identity
from .backends import get_sandbox
from .core import ChatMessage, DeleteNotice, Identity
from .errors import handshake_error_from_close
from .protocol import (
    CONNECT,
    DELETE_MESSAGE,
    PROJECT_MESSAGE,
    delete_frame,
    delete_from_dict,
    message_frame,
    message_from_dict,
    parse_frame,
    sender_for,
)
from .reconciler import ClientReconciler
from .router import TimestampClock

logger = logging.getLogger(__name__)


class ChatClient:
    """One connection to one project's room."""

    def __init__(
        self,
        url: str,
        project_id: str,
        token: str,
        identity: Optional[Identity] = None,
        reconciler: Optional[ClientReconciler] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.url = url
        self.project_id = project_id
        self.token = token
        self.identity = identity or peek_identity(token)
        self.reconciler = reconciler or ClientReconciler(sandbox=get_sandbox())
        self.clock = clock or TimestampClock()
        self.connection = None

    def connect_url(self) -> str:
        query = urlencode({"projectId": self.project_id, "token": self.token})
        return f"{self.url}?{query}"

    async def connect(self) -> None:
        """Open the connection and wait until the server has admitted it to the room."""
        self.connection = await websockets.connect(self.connect_url())
        try:
            raw = await self.connection.recv()
        except websockets.ConnectionClosed as e:
            self.connection = None
            close = e.rcvd
            raise handshake_error_from_close(
                close.code if close else 1006, close.reason if close else ""
            ) from e

        try:
            event, data = parse_frame(raw)
            if event != CONNECT:
                raise ValueError(f"expected connect frame, got {event}")
        except ValueError:
            await self.close()
            raise
        logger.info("Connected to project %s as %s", data.get("projectId"), data.get("connectionId"))

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    async def send_message(self, text: str) -> ChatMessage:
        msg = ChatMessage(text=text, sender=sender_for(self.identity), timestamp=self.clock())
        self.reconciler.append_local(msg)
        await self._send(message_frame(msg))
        return msg

    async def delete_message(self, timestamp: int) -> None:
        """Ask the room to drop one of this client's own messages."""
        notice = DeleteNotice(
            timestamp=timestamp,
            project_id=self.project_id,
            sender=sender_for(self.identity),
        )
        await self._send(delete_frame(notice))

    def handle_frame(self, raw) -> None:
        try:
            event, data = parse_frame(raw)
            if event == PROJECT_MESSAGE:
                self.reconciler.receive_chat(message_from_dict(data))
            elif event == DELETE_MESSAGE:
                self.reconciler.receive_delete(delete_from_dict(data))
        except ValueError as e:
            logger.warning("Ignoring bad frame: %s", e)

    async def listen(self) -> None:
        """Feed received frames to the reconciler until the connection closes."""
        if self.connection is None:
            raise RuntimeError("not connected")
        try:
            async for raw in self.connection:
                self.handle_frame(raw)
        except websockets.ConnectionClosed as e:
            logger.info("Connection to project %s closed: %s", self.project_id, e)
        self.reconciler.append_notice("Disconnected from project")

    async def run_project(self) -> Optional[int]:
        """Run the mounted tree's build command, then its start command.

        Each output line and the exit status are logged as ``System``
        notices. Stops at the first command that fails. Returns the last
        exit code, or None when nothing could be run.
        """
        sandbox = self.reconciler.sandbox
        if sandbox is None or not self.reconciler.file_tree:
            self.reconciler.append_notice("No files available to run.")
            return None
        commands = [c for c in (self.reconciler.build_command, self.reconciler.start_command) if c]
        if not commands:
            self.reconciler.append_notice("No command available to run.")
            return None

        code = None
        for command in commands:
            argv = [command["mainItem"], *command["commands"]]
            self.reconciler.append_notice("$ " + " ".join(argv))
            try:
                code = await sandbox.run(argv, self.reconciler.append_notice)
            except OSError as e:
                logger.error("Failed to run %s: %s", argv, e)
                self.reconciler.append_notice(f"Error running code: {e}")
                return None
            if code != 0:
                self.reconciler.append_notice(f"Process exited with error code {code}")
                return code
            self.reconciler.append_notice("Process exited with code 0")
        return code

    async def _send(self, frame: dict) -> None:
        if self.connection is None:
            raise RuntimeError("not connected")
        await self.connection.send(json.dumps(frame))
