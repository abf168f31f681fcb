"""AI relay: answers ``@ai`` messages in the room they came from."""

import asyncio
import json
import logging

from .core import Assistant, ChatMessage
from .errors import AIGenerationFailure
from .provider import CodeGenerator
from .router import MessageRouter

logger = logging.getLogger(__name__)

ERROR_TEXT = "Error: Unable to process AI request"


class AIRelay:
    """Runs one generation per directed message and posts the result.

    Success posts the response JSON as an assistant message; any failure
    posts a fixed error message instead. There are no retries, timeouts or
    cancellation: if the room has emptied by the time the answer arrives,
    the broadcast simply reaches nobody.
    """

    def __init__(self, generator: CodeGenerator, router: MessageRouter):
        self.generator = generator
        self.router = router
        self._tasks: set[asyncio.Task] = set()

    def submit(self, prompt: str, room_id: str) -> asyncio.Task:
        """Schedule ``handle`` on the running loop without waiting for it."""
        task = asyncio.create_task(self.handle(prompt, room_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle(self, prompt: str, room_id: str) -> ChatMessage:
        try:
            response = await self.generator.generate(prompt)
            payload = response.to_dict()
        except AIGenerationFailure as e:
            logger.error("AI generation failed for room %s: %s", room_id, e)
            payload = {"text": ERROR_TEXT}
        except Exception:
            logger.exception("Unexpected error generating AI response for room %s", room_id)
            payload = {"text": ERROR_TEXT}

        return self.router.post_text(room_id, json.dumps(payload), Assistant())

    async def drain(self) -> None:
        """Wait for every in-flight generation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
