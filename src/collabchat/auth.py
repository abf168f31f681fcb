"""Session authentication for room connections.

A connection presents a ``projectId`` and a token. Checks run in a fixed
order: project id syntax, project lookup, token presence, token
verification. The first failing check decides the rejection.
"""

import logging
import re
import time
from typing import Optional

import jwt

from .core import Identity, Session
from .errors import InvalidProject, InvalidToken, MissingToken, ProjectNotFound
from .provider import ProjectStore

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Project ids are 24-character hex document ids.
_PROJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


def is_valid_project_id(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(_PROJECT_ID_RE.match(value))


def extract_token(auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Pick the token from the handshake auth field, else a Bearer-style header."""
    if auth_token:
        return auth_token
    if authorization:
        parts = authorization.split(" ", 1)
        if len(parts) == 2 and parts[1].strip():
            return parts[1].strip()
    return None


def decode_identity(token: str, secret: Optional[str]) -> Identity:
    """Verify ``token`` and return the identity it carries."""
    if not secret:
        raise InvalidToken("server has no token secret configured")
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e)) from e
    return identity_from_claims(claims)


def identity_from_claims(claims: dict) -> Identity:
    user_id = claims.get("_id") or claims.get("sub") or claims.get("id")
    email = claims.get("email") or ""
    if not user_id and not email:
        raise InvalidToken("token carries no identity")
    return Identity(id=str(user_id or ""), email=str(email))


def peek_identity(token: str) -> Identity:
    """Read the identity from a token without verifying it (client side)."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e)) from e
    return identity_from_claims(claims)


def issue_token(identity: Identity, secret: str, expires_in: Optional[int] = None) -> str:
    """Mint a signed token for ``identity``; ``expires_in`` is in seconds."""
    now = int(time.time())
    claims = {"_id": identity.id, "sub": identity.id, "email": identity.email, "iat": now}
    if expires_in:
        claims["exp"] = now + expires_in
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


class SessionAuthenticator:
    """Turns a handshake into an authorized ``Session`` or a ``HandshakeError``.

    Any holder of a valid token may join any existing project's room; the
    project's ``users`` list is not consulted.
    """

    def __init__(self, store: ProjectStore, secret: Optional[str]):
        self.store = store
        self.secret = secret

    async def authenticate(self, project_id: Optional[str], token: Optional[str]) -> Session:
        if not is_valid_project_id(project_id):
            raise InvalidProject(f"invalid projectId {project_id!r}")

        project = await self.store.find_project_by_id(project_id)
        if project is None:
            raise ProjectNotFound(f"no project {project_id}")

        if not token:
            raise MissingToken("no token provided")

        identity = decode_identity(token, self.secret)
        return Session(identity=identity, room_id=project.id)
