"""Environment-driven settings for the chat server."""

import os
from pathlib import Path
from typing import Optional

DEFAULT_AI_MODEL = "gemini-2.0-flash"


def get_jwt_secret() -> Optional[str]:
    """Return the secret used to verify session tokens."""
    return os.environ.get("COLLABCHAT_JWT_SECRET") or os.environ.get("JWT_SECRET") or None


def get_projects_path() -> Optional[Path]:
    """Return the directory holding ``<id>.json`` project documents, if configured."""
    env = os.environ.get("COLLABCHAT_PROJECTS_PATH")
    if env:
        return Path(env)
    return None


def get_ai_api_key() -> Optional[str]:
    """Return the generation API key, if configured."""
    return os.environ.get("GOOGLE_AI_KEY") or os.environ.get("GEMINI_API_KEY") or None


def get_ai_model() -> str:
    return os.environ.get("COLLABCHAT_AI_MODEL") or DEFAULT_AI_MODEL


def get_sandbox_path() -> Optional[Path]:
    """Return the directory clients mount generated file trees into, if configured."""
    env = os.environ.get("COLLABCHAT_SANDBOX_PATH")
    if env:
        return Path(env)
    return None
