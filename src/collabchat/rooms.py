"""Room membership and fan-out."""

import logging

from .core import Session

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Maps a room id (a project id) to its connected sessions.

    Rooms exist only while they have members. ``broadcast`` hands the frame
    to every member, the sender included, in a single synchronous pass, so
    each member sees frames in the order they were broadcast.
    """

    def __init__(self):
        self._rooms: dict[str, dict[str, Session]] = {}

    def join(self, room_id: str, session: Session) -> list[Session]:
        members = self._rooms.setdefault(room_id, {})
        members[session.connection_id] = session
        return list(members.values())

    def leave(self, room_id: str, session: Session) -> None:
        members = self._rooms.get(room_id)
        if not members:
            return
        members.pop(session.connection_id, None)
        if not members:
            del self._rooms[room_id]

    def members(self, room_id: str) -> list[Session]:
        return list(self._rooms.get(room_id, {}).values())

    def rooms(self) -> list[str]:
        return list(self._rooms)

    def broadcast(self, room_id: str, frame: dict) -> int:
        """Deliver ``frame`` to every member; return how many accepted it."""
        delivered = 0
        for session in self.members(room_id):
            try:
                session.deliver(frame)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "Failed to deliver %s to %s in room %s: %s",
                    frame.get("event"), session.connection_id, room_id, e,
                )
        return delivered
