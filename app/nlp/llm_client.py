# app/nlp/llm_client.py

import json
import logging
import re
from datetime import datetime

from openai import AsyncOpenAI, OpenAIError

from app.models.schemas import TextReply, UnknownIntent, parse_intent
from app.nlp.prompts import build_messages

logger = logging.getLogger(__name__)

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class LLMFallbackError(Exception):
    """The fallback interpreter could not produce an answer for a message."""


def parse_llm_content(content: str):
    """Turns the model's reply into an Intent, or a TextReply when it holds no JSON."""
    content = (content or "").strip()
    if not content:
        return UnknownIntent()

    match = JSON_BLOCK.search(content)
    if not match:
        return TextReply(content=content)

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise LLMFallbackError(f"Invalid JSON in model reply: {e}") from e
    return parse_intent(data)


class LLMFallbackClient:

    def __init__(self, api_key: str = None, model: str = "gpt-4o-mini", client=None):
        self.model = model
        # An injected client (tests) wins over the API key.
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key)
            logger.info("OpenAI client initialized (model %s)", model)

    @property
    def available(self) -> bool:
        return self._client is not None

    async def interpret(self, message_text: str, now: datetime, timezone_name: str, tasks, events):
        if not self.available:
            raise LLMFallbackError("OpenAI client is not configured")

        messages = build_messages(message_text, now, timezone_name, tasks, events)
        try:
            response = await self._client.chat.completions.create(model=self.model, messages=messages)
        except OpenAIError as e:
            raise LLMFallbackError(f"OpenAI request failed: {e}") from e

        if not response.choices:
            raise LLMFallbackError("OpenAI response has no choices")
        content = response.choices[0].message.content
        logger.debug("OpenAI response: %s", content)
        return parse_llm_content(content)
