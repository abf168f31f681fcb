"""Gemini code generator.

Asks the model for a JSON object of the form::

    {"text": "...", "fileTree": {"app.js": {"file": {"contents": "..."}}},
     "buildCommand": {"mainItem": "npm", "commands": ["install"]},
     "startCommand": {"mainItem": "node", "commands": ["app.js"]}}

Only ``text`` is required. Anything that does not parse into that shape is
reported as ``AIGenerationFailure``.
"""

import json
import logging
from datetime import date
from typing import Any, Optional

from google import genai
from google.genai import types

from ..core import AIResponse
from ..errors import AIGenerationFailure
from ..provider import CodeGenerator

logger = logging.getLogger(__name__)

TEMPERATURE = 0.4

_INSTRUCTION = """You are a senior full-stack developer with ten years of experience.
Write modular code split into as many files as the task needs, comment it
where the intent is not obvious, handle errors and edge cases, and keep
previously generated code working when you extend it.

Always answer with a single JSON object. Put your explanation in "text".
When you produce code, add "fileTree" mapping each file name to
{"file": {"contents": "<file contents>"}}, and add "buildCommand" and
"startCommand" as {"mainItem": "<program>", "commands": ["<arg>", ...]}.
Use flat file names such as "app.js" rather than nested ones like
"routes/index.js".

Example, for "Hello":
{"text": "Hello, how can I help you today?"}

Example, for "Create an Express application":
{"text": "This is the file tree of an Express server",
 "fileTree": {"app.js": {"file": {"contents": "const express = require('express');\\n..."}},
              "package.json": {"file": {"contents": "{\\"name\\": \\"temp-server\\", ...}"}}},
 "buildCommand": {"mainItem": "npm", "commands": ["install"]},
 "startCommand": {"mainItem": "node", "commands": ["app.js"]}}

Today's date is {today}. Use it when asked for the current date."""


def system_instruction(today: Optional[date] = None) -> str:
    today = today or date.today()
    return _INSTRUCTION.replace("{today}", today.strftime("%A, %B %d, %Y"))


def parse_response(raw: Any) -> AIResponse:
    """Validate the model's raw text and build an ``AIResponse``."""
    if not isinstance(raw, str) or not raw.strip():
        raise AIGenerationFailure("Empty response from model")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise AIGenerationFailure(f"Invalid JSON response from model: {e}") from e
    if not isinstance(data, dict):
        raise AIGenerationFailure("Model response is not a JSON object")

    text = data.get("text")
    if not isinstance(text, str) or not text:
        raise AIGenerationFailure("Model response is missing text")
    file_tree = data.get("fileTree")
    if file_tree is not None and not isinstance(file_tree, dict):
        raise AIGenerationFailure("Model response has a malformed fileTree")

    return AIResponse(
        text=text,
        file_tree=file_tree,
        build_command=data.get("buildCommand"),
        start_command=data.get("startCommand"),
    )


class GeminiGenerator(CodeGenerator):
    """Generator backed by the google-genai async client."""

    name = "gemini"

    def __init__(self, api_key: str, model: str, client: Any = None):
        self.model = model
        self._client = client or genai.Client(api_key=api_key)

    async def generate(self, prompt: str) -> AIResponse:
        if not isinstance(prompt, str) or not prompt.strip():
            raise AIGenerationFailure("Prompt must be a non-empty string")

        config = types.GenerateContentConfig(
            system_instruction=system_instruction(),
            response_mime_type="application/json",
            temperature=TEMPERATURE,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            raise AIGenerationFailure(f"Generation request failed: {e}") from e

        raw = getattr(response, "text", None)
        if raw is None:
            raise AIGenerationFailure("No response text from model")
        return parse_response(raw)


class UnavailableGenerator(CodeGenerator):
    """Stands in when no API key is configured; every call fails."""

    name = "unavailable"

    def __init__(self, reason: str = "AI API key is not configured"):
        self.reason = reason

    async def generate(self, prompt: str) -> AIResponse:
        raise AIGenerationFailure(self.reason)
