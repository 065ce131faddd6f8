# tests/test_llm_client.py

import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from openai import OpenAIError

from app.models.schemas import (
    Event,
    QueryIntent,
    RemoveIntent,
    Task,
    TaskIntent,
    TextReply,
    UnknownIntent,
    UpdateIntent,
)
from app.nlp.llm_client import LLMFallbackClient, LLMFallbackError, parse_llm_content

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestParseLLMContent(unittest.TestCase):

    def test_plain_json(self):
        intent = parse_llm_content('{"type": "task", "description": "Ler o livro"}')
        self.assertIsInstance(intent, TaskIntent)
        self.assertEqual(intent.description, "Ler o livro")

    def test_json_inside_prose(self):
        intent = parse_llm_content('Claro!\n```json\n{"type": "query", "queryType": "events"}\n```')
        self.assertIsInstance(intent, QueryIntent)
        self.assertEqual(intent.query_type, "events")

    def test_text_reply(self):
        intent = parse_llm_content("Desculpe, não entendi sua solicitação. Pode reformular?")
        self.assertIsInstance(intent, TextReply)
        self.assertEqual(intent.content, "Desculpe, não entendi sua solicitação. Pode reformular?")

    def test_empty_reply(self):
        self.assertIsInstance(parse_llm_content(""), UnknownIntent)
        self.assertIsInstance(parse_llm_content(None), UnknownIntent)

    def test_broken_json(self):
        with self.assertRaises(LLMFallbackError):
            parse_llm_content('{"type": "task", description}')

    def test_unknown_type(self):
        intent = parse_llm_content('{"type": "dance"}')
        self.assertIsInstance(intent, UnknownIntent)
        self.assertEqual(intent.type, "dance")

    def test_invalid_payload(self):
        intent = parse_llm_content('{"type": "remove", "target": "tasks", "itemIndex": "primeiro"}')
        self.assertIsInstance(intent, UnknownIntent)
        self.assertEqual(intent.type, "remove")

    def test_remove_with_item_index(self):
        intent = parse_llm_content('{"type": "remove", "target": "events", "itemIndex": 2}')
        self.assertIsInstance(intent, RemoveIntent)
        self.assertEqual(intent.item_index, 2)

    def test_update_with_flat_fields(self):
        intent = parse_llm_content(
            '{"type": "update", "target": "events", "itemIndex": 0, "datetime": "2024-01-02T10:00:00Z", "notify": 5}'
        )
        self.assertIsInstance(intent, UpdateIntent)
        self.assertEqual(intent.fields.datetime, datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(intent.fields.notify, 5)
        self.assertIsNone(intent.fields.description)


class TestLLMFallbackClient(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.openai = MagicMock()
        self.openai.chat.completions.create = AsyncMock(
            return_value=completion('{"type": "event", "description": "Dentista", '
                                    '"datetime": "2024-01-02T13:00:00Z", "notify": 30}')
        )
        self.client = LLMFallbackClient(model="gpt-4o-mini", client=self.openai)

    async def test_interpret(self):
        tasks = [Task(description="Comprar pão", sender="5511988887777")]
        events = [Event(description="Reunião", datetime=NOW)]

        intent = await self.client.interpret("dentista amanhã cedo", NOW, "America/Sao_Paulo", tasks, events)

        self.assertEqual(intent.type, "event")
        self.assertEqual(intent.notify, 30)
        kwargs = self.openai.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["messages"][0]["role"], "system")
        user_prompt = kwargs["messages"][1]["content"]
        self.assertIn('"dentista amanhã cedo"', user_prompt)
        self.assertIn("America/Sao_Paulo", user_prompt)
        self.assertIn('"itemIndex": 0', user_prompt)
        self.assertNotIn("5511988887777", user_prompt)

    async def test_api_error_is_wrapped(self):
        self.openai.chat.completions.create.side_effect = OpenAIError("connection reset")
        with self.assertRaises(LLMFallbackError):
            await self.client.interpret("oi", NOW, "UTC", [], [])

    async def test_reply_without_choices(self):
        self.openai.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with self.assertRaises(LLMFallbackError):
            await self.client.interpret("oi", NOW, "UTC", [], [])

    async def test_unconfigured_client(self):
        client = LLMFallbackClient()
        self.assertFalse(client.available)
        with self.assertRaises(LLMFallbackError):
            await client.interpret("oi", NOW, "UTC", [], [])


if __name__ == "__main__":
    unittest.main()
