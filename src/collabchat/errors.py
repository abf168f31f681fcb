"""Exceptions raised across collabchat."""


MAX_REASON_BYTES = 123


class HandshakeError(Exception):
    """A connection attempt was refused; the session is never admitted."""

    code = 4400

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.__class__.__name__)
        self.detail = detail

    @property
    def reason(self) -> str:
        """Close reason sent to the connecting client (at most 123 bytes)."""
        reason = self.__class__.__name__
        if self.detail:
            reason = f"{reason}: {self.detail}"
        return reason.encode("utf-8")[:MAX_REASON_BYTES].decode("utf-8", "ignore")


class InvalidProject(HandshakeError):
    code = 4400


class ProjectNotFound(HandshakeError):
    code = 4404


class MissingToken(HandshakeError):
    code = 4401


class InvalidToken(HandshakeError):
    code = 4403


HANDSHAKE_ERRORS = {cls.__name__: cls for cls in (InvalidProject, ProjectNotFound, MissingToken, InvalidToken)}


def handshake_error_from_close(code: int, reason: str) -> HandshakeError:
    """Rebuild the server's rejection from a close frame (client side)."""
    name, _, detail = (reason or "").partition(": ")
    cls = HANDSHAKE_ERRORS.get(name)
    if cls is None:
        error = HandshakeError(reason or f"connection closed with code {code}")
        error.code = code
        return error
    return cls(detail)


class UnauthorizedDelete(Exception):
    """A delete request for a message the session does not own."""


class AIGenerationFailure(Exception):
    """The code generator failed or returned an unusable result."""


class MalformedFileTreeEntry(ValueError):
    """A file tree entry without the ``{"file": {"contents": str}}`` shape."""
