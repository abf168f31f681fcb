"""Wire format for the room channel.

Every frame is a JSON object ``{"event": name, "data": payload}``. Payload
shapes follow the browser client: chat messages carry ``message``,
``sender`` (``{"_id", "email"}``) and ``timestamp``; delete notices carry
``timestamp``, ``projectId`` and ``sender``. A ``connect`` frame goes to a
session once it has joined its room.

This module is the only place that knows the ``"ai"``/``"system"`` sender
sentinels; everything past the codec dispatches on the sender variant.
"""

import json
from typing import Any, Optional

from .core import Assistant, ChatMessage, DeleteNotice, Human, Identity, Sender, System

CONNECT = "connect"
PROJECT_MESSAGE = "project-message"
DELETE_MESSAGE = "delete-message"

EVENTS = (CONNECT, PROJECT_MESSAGE, DELETE_MESSAGE)


def frame(event: str, data: dict) -> dict:
    return {"event": event, "data": data}


def parse_frame(raw: Any) -> tuple[str, dict]:
    """Split an inbound frame into ``(event, data)``.

    Accepts either a decoded object or raw JSON text. Raises ``ValueError``
    for anything that is not a known event with an object payload.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"frame is not JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("frame must be an object")
    event = raw.get("event")
    if event not in EVENTS:
        raise ValueError(f"unknown event: {event!r}")
    data = raw.get("data")
    if not isinstance(data, dict):
        raise ValueError("frame data must be an object")
    return event, data


# ── Senders ──────────────────────────────────────────────────────


def sender_to_dict(sender: Sender) -> dict:
    return {"_id": sender.id, "email": sender.email}


def sender_from_dict(data: Any) -> Sender:
    """Decode a wire sender into its variant."""
    if not isinstance(data, dict):
        raise ValueError("sender must be an object")
    sender_id = data.get("_id", data.get("id"))
    if sender_id is None:
        raise ValueError("sender has no _id")
    sender_id = str(sender_id)
    if sender_id == Assistant.id:
        return Assistant()
    if sender_id == System.id:
        return System()
    return Human(id=sender_id, email=str(data.get("email") or ""))


def sender_for(identity: Identity) -> Human:
    return Human(id=identity.id, email=identity.email)


# ── Payloads ─────────────────────────────────────────────────────


def _timestamp(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("timestamp must be an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValueError("timestamp must be an integer")
    return value


def message_to_dict(msg: ChatMessage) -> dict:
    return {
        "message": msg.text,
        "sender": sender_to_dict(msg.sender),
        "timestamp": msg.timestamp,
    }


def message_from_dict(data: dict, fallback: Optional[Identity] = None) -> ChatMessage:
    """Decode a ``project-message`` payload.

    A missing sender falls back to ``fallback`` (the session's identity) when
    one is given.
    """
    text = data.get("message")
    if not isinstance(text, str):
        raise ValueError("message must be a string")
    if data.get("sender") is None and fallback is not None:
        sender: Sender = sender_for(fallback)
    else:
        sender = sender_from_dict(data.get("sender"))
    return ChatMessage(text=text, sender=sender, timestamp=_timestamp(data.get("timestamp")))


def delete_to_dict(notice: DeleteNotice) -> dict:
    return {
        "timestamp": notice.timestamp,
        "projectId": notice.project_id,
        "sender": sender_to_dict(notice.sender),
    }


def delete_from_dict(data: dict) -> DeleteNotice:
    timestamp = _timestamp(data.get("timestamp"))
    if timestamp is None:
        raise ValueError("delete-message requires a timestamp")
    return DeleteNotice(
        timestamp=timestamp,
        project_id=str(data.get("projectId") or ""),
        sender=sender_from_dict(data.get("sender")),
    )


def message_frame(msg: ChatMessage) -> dict:
    return frame(PROJECT_MESSAGE, message_to_dict(msg))


def delete_frame(notice: DeleteNotice) -> dict:
    return frame(DELETE_MESSAGE, delete_to_dict(notice))


def connect_frame(connection_id: str, project_id: str, identity: Identity) -> dict:
    """Sent only to a newly admitted session, before any room traffic."""
    return frame(
        CONNECT,
        {
            "connectionId": connection_id,
            "projectId": project_id,
            "user": {"_id": identity.id, "email": identity.email},
        },
    )
