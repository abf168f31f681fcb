"""Routing of inbound chat and delete events to a room."""

import logging
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Optional

from .core import ChatMessage, DeleteNotice, Sender, Session
from .errors import UnauthorizedDelete
from .protocol import delete_frame, message_frame
from .rooms import RoomRegistry

if TYPE_CHECKING:
    from .relay import AIRelay

logger = logging.getLogger(__name__)

AI_DIRECTIVE = "@ai"


def extract_prompt(text: str) -> Optional[str]:
    """Return the prompt for an AI-directed message, or None.

    The first ``@ai`` is removed and the text on either side is joined with a
    single space and trimmed. Matching is case-sensitive.
    """
    head, found, tail = text.partition(AI_DIRECTIVE)
    if not found:
        return None
    return f"{head.rstrip()} {tail.lstrip()}".strip()


class TimestampClock:
    """Millisecond clock that never hands out the same value twice.

    ``observe`` moves the clock past timestamps that came from elsewhere, so
    later stamps never repeat them either.
    """

    def __init__(self, now: Optional[Callable[[], int]] = None):
        self._now = now or (lambda: int(time.time() * 1000))
        self._last = 0

    def __call__(self) -> int:
        ts = max(self._now(), self._last + 1)
        self._last = ts
        return ts

    def observe(self, ts: int) -> None:
        self._last = max(self._last, ts)


class MessageRouter:
    """Applies chat and delete policy and fans events out through the registry.

    Chat messages are broadcast before any AI work starts; AI-directed ones
    are then handed to the relay, which posts its answer back through
    ``post``.

    A timestamp identifies one message within a room. A client-supplied
    timestamp is kept unless the room has already used it, in which case
    the message is re-stamped before it is broadcast.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        relay: Optional["AIRelay"] = None,
        clock: Optional[TimestampClock] = None,
    ):
        self.registry = registry
        self.relay = relay
        self.clock = clock or TimestampClock()
        self._used: dict[str, set[int]] = {}

    def handle_chat(self, session: Session, msg: ChatMessage) -> ChatMessage:
        """Broadcast a client's chat message, then trigger the relay if addressed to it."""
        msg = self.post(session.room_id, msg)

        prompt = extract_prompt(msg.text)
        if prompt is not None:
            if self.relay is None:
                logger.warning("AI directive in room %s but no relay configured", session.room_id)
            else:
                self.relay.submit(prompt, session.room_id)
        return msg

    def post(self, room_id: str, msg: ChatMessage) -> ChatMessage:
        """Stamp and broadcast ``msg`` without looking for directives."""
        used = self._used.setdefault(room_id, set())
        if msg.timestamp is None:
            msg = replace(msg, timestamp=self.clock())
        elif msg.timestamp in used:
            restamped = self.clock()
            logger.info(
                "Timestamp %s already used in room %s; re-stamped as %s",
                msg.timestamp, room_id, restamped,
            )
            msg = replace(msg, timestamp=restamped)
        else:
            self.clock.observe(msg.timestamp)
        used.add(msg.timestamp)
        self.registry.broadcast(room_id, message_frame(msg))
        if not self.registry.members(room_id):
            self.forget_room(room_id)
        return msg

    def forget_room(self, room_id: str) -> None:
        """Drop the room's used timestamps once it has no members left."""
        self._used.pop(room_id, None)

    def post_text(self, room_id: str, text: str, sender: Sender) -> ChatMessage:
        return self.post(room_id, ChatMessage(text=text, sender=sender))

    def handle_delete(self, session: Session, notice: DeleteNotice) -> bool:
        """Broadcast a delete if the session owns the message; return whether it did.

        Unauthorized requests are dropped silently: the requester gets no
        error and nothing is broadcast.
        """
        try:
            self._authorize_delete(session, notice)
        except UnauthorizedDelete as e:
            logger.info(
                "Unauthorized delete attempt by %s for message %s: %s",
                session.identity.email or session.identity.id, notice.timestamp, e,
            )
            return False

        self.registry.broadcast(session.room_id, delete_frame(notice))
        logger.info(
            "Message %s deleted by %s in project %s",
            notice.timestamp, session.identity.email or session.identity.id, session.room_id,
        )
        return True

    @staticmethod
    def _authorize_delete(session: Session, notice: DeleteNotice) -> None:
        if notice.sender.id != session.identity.id:
            raise UnauthorizedDelete(
                f"sender {notice.sender.id!r} is not session user {session.identity.id!r}"
            )
