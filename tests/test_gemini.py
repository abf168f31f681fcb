"""Tests for the Gemini generator backend."""

import json
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from collabchat.backends.gemini import (
    TEMPERATURE,
    GeminiGenerator,
    UnavailableGenerator,
    parse_response,
    system_instruction,
)
from collabchat.errors import AIGenerationFailure


def _client(text=None, error=None):
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(text=text), side_effect=error
    )
    return client


class TestParseResponse:
    def test_text_only(self):
        response = parse_response('{"text": "Hello"}')
        assert response.text == "Hello"
        assert response.file_tree is None
        assert response.to_dict() == {"text": "Hello"}

    def test_full_payload(self):
        raw = json.dumps(
            {
                "text": "Express server",
                "fileTree": {"app.js": {"file": {"contents": "x"}}},
                "buildCommand": {"mainItem": "npm", "commands": ["install"]},
                "startCommand": {"mainItem": "node", "commands": ["app.js"]},
            }
        )
        assert json.loads(json.dumps(parse_response(raw).to_dict())) == json.loads(raw)

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            None,
            "not json",
            "[1, 2]",
            '{"fileTree": {}}',
            '{"text": ""}',
            '{"text": 5}',
            '{"text": "ok", "fileTree": "app.js"}',
        ],
    )
    def test_rejects_malformed(self, raw):
        with pytest.raises(AIGenerationFailure):
            parse_response(raw)


class TestSystemInstruction:
    def test_includes_date(self):
        text = system_instruction(date(2025, 3, 14))
        assert "Friday, March 14, 2025" in text
        assert "{today}" not in text

    def test_describes_response_shape(self):
        text = system_instruction()
        assert '"fileTree"' in text
        assert '"startCommand"' in text


class TestGeminiGenerator:
    @pytest.mark.asyncio
    async def test_generate(self):
        client = _client(text='{"text": "Hello, how can I help you today?"}')
        generator = GeminiGenerator(api_key="k", model="gemini-2.0-flash", client=client)

        response = await generator.generate("Hello")

        assert response.text == "Hello, how can I help you today?"
        call = client.aio.models.generate_content.await_args
        assert call.kwargs["model"] == "gemini-2.0-flash"
        assert call.kwargs["contents"] == "Hello"
        assert call.kwargs["config"].response_mime_type == "application/json"
        assert call.kwargs["config"].temperature == TEMPERATURE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["", "   ", None])
    async def test_empty_prompt(self, prompt):
        client = _client(text='{"text": "x"}')
        generator = GeminiGenerator(api_key="k", model="m", client=client)
        with pytest.raises(AIGenerationFailure):
            await generator.generate(prompt)
        client.aio.models.generate_content.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_error(self):
        generator = GeminiGenerator(api_key="k", model="m", client=_client(error=RuntimeError("quota")))
        with pytest.raises(AIGenerationFailure, match="quota"):
            await generator.generate("hi")

    @pytest.mark.asyncio
    async def test_missing_text(self):
        generator = GeminiGenerator(api_key="k", model="m", client=_client(text=None))
        with pytest.raises(AIGenerationFailure):
            await generator.generate("hi")

    @pytest.mark.asyncio
    async def test_non_json_text(self):
        generator = GeminiGenerator(api_key="k", model="m", client=_client(text="Sure! Here you go"))
        with pytest.raises(AIGenerationFailure):
            await generator.generate("hi")


class TestUnavailableGenerator:
    @pytest.mark.asyncio
    async def test_always_fails(self):
        with pytest.raises(AIGenerationFailure, match="not configured"):
            await UnavailableGenerator().generate("hi")
