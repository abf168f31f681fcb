"""Client-side message log.

One ``ClientReconciler`` per connected client. It keeps the messages the
client should display, in arrival order, and folds in room broadcasts:

- chat messages already in the log (same timestamp) are dropped, and a
  client's own message coming back through the room echo settles its
  pending local entry instead of being logged twice;
- assistant messages carrying a file tree get the tree validated entry by
  entry and mounted into the sandbox;
- delete notices remove the sender's entry with that timestamp, or do
  nothing.

The log is never re-sorted by timestamp, and logged messages are replaced
rather than changed in place.
"""

import json
import logging
from dataclasses import replace
from typing import Optional

from .core import Assistant, ChatMessage, DeleteNotice, System
from .errors import MalformedFileTreeEntry
from .provider import Sandbox

logger = logging.getLogger(__name__)


def validate_file_entry(name: str, entry) -> dict:
    """Return a clean ``{"file": {"contents": str}}`` copy of ``entry``."""
    if not isinstance(entry, dict):
        raise MalformedFileTreeEntry(f"{name}: entry is not an object")
    file_data = entry.get("file")
    if not isinstance(file_data, dict) or not isinstance(file_data.get("contents"), str):
        raise MalformedFileTreeEntry(f"{name}: missing file.contents string")
    return {"file": {"contents": file_data["contents"]}}


def validate_file_tree(file_tree: dict) -> dict:
    """Keep the well-formed entries of ``file_tree``, dropping the rest."""
    valid = {}
    for name, entry in file_tree.items():
        try:
            valid[name] = validate_file_entry(name, entry)
        except MalformedFileTreeEntry as e:
            logger.warning("Dropping file tree entry %s", e)
    return valid


def validate_command(command) -> Optional[dict]:
    """Return ``{"mainItem": str, "commands": [str, ...]}`` or None if malformed."""
    if not isinstance(command, dict):
        return None
    main_item = command.get("mainItem")
    args = command.get("commands", [])
    if not isinstance(main_item, str) or not main_item.strip():
        return None
    if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
        return None
    return {"mainItem": main_item, "commands": list(args)}


class ClientReconciler:
    """Ordered, de-duplicated view of a room's messages for one client.

    Messages this client sends stay pending until their room echo arrives.
    The echo is matched to the oldest pending entry with the same text and
    sender id, and that entry takes the echoed timestamp, which may differ
    from the local one if the server re-stamped it.

    With ``loose=True`` an incoming message is also treated as a duplicate
    when an entry with the same text and sender id is already logged.
    """

    def __init__(self, sandbox: Optional[Sandbox] = None, loose: bool = False):
        self.sandbox = sandbox
        self.loose = loose
        self.file_tree: dict = {}
        self.build_command: Optional[dict] = None
        self.start_command: Optional[dict] = None
        self._log: list[ChatMessage] = []
        self._seen: set[int] = set()
        self._pending: list[ChatMessage] = []

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._log)

    def __len__(self) -> int:
        return len(self._log)

    def append_local(self, msg: ChatMessage) -> None:
        """Optimistically log a message this client just sent."""
        self._log.append(msg)
        self._pending.append(msg)

    def append_notice(self, text: str) -> ChatMessage:
        """Log a client-local ``System`` notice; it is never echoed."""
        msg = ChatMessage(text=text, sender=System())
        self._log.append(msg)
        return msg

    def receive_chat(self, msg: ChatMessage) -> bool:
        """Fold a broadcast chat message into the log; return whether it was appended."""
        if self._is_duplicate(msg):
            return False

        if isinstance(msg.sender, Assistant):
            self._apply_ai_payload(msg.text)

        if msg.timestamp is not None:
            self._seen.add(msg.timestamp)
        self._log.append(msg)
        return True

    def receive_delete(self, notice: DeleteNotice) -> bool:
        """Remove the sender's entry with the notice's timestamp; return whether one was removed."""
        if notice.timestamp not in self._seen:
            return False
        kept = [
            m for m in self._log
            if m.timestamp != notice.timestamp or m.sender.id != notice.sender.id
        ]
        if len(kept) == len(self._log):
            return False
        self._seen.discard(notice.timestamp)
        self._log = kept
        return True

    # ── Private helpers ──────────────────────────────────────────────

    def _is_duplicate(self, msg: ChatMessage) -> bool:
        if self._adopt_echo(msg):
            return True
        if msg.timestamp is not None and msg.timestamp in self._seen:
            return True
        if self.loose:
            return any(
                entry.text == msg.text and entry.sender.id == msg.sender.id
                for entry in self._log
            )
        return False

    def _adopt_echo(self, msg: ChatMessage) -> bool:
        """Settle the pending local entry ``msg`` echoes, if there is one."""
        for i, entry in enumerate(self._pending):
            if entry.text == msg.text and entry.sender.id == msg.sender.id:
                break
        else:
            return False

        del self._pending[i]
        if msg.timestamp is not None:
            settled = replace(entry, timestamp=msg.timestamp)
            self._log = [settled if m is entry else m for m in self._log]
            self._seen.add(msg.timestamp)
        return True

    def _apply_ai_payload(self, text: str) -> None:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("AI message is not JSON: %s", e)
            return
        if not isinstance(payload, dict):
            return

        file_tree = payload.get("fileTree")
        if not isinstance(file_tree, dict) or not file_tree:
            return

        valid = validate_file_tree(file_tree)
        if not valid:
            logger.warning("AI file tree had no valid entries")
            return

        if self.sandbox is not None:
            try:
                self.sandbox.mount(valid)
            except Exception as e:
                logger.error("Failed to mount file tree: %s", e)
                return
        self.file_tree = valid
        self.build_command = validate_command(payload.get("buildCommand"))
        self.start_command = validate_command(payload.get("startCommand"))
