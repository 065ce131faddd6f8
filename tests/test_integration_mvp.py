# tests/test_integration_mvp.py

import unittest
from unittest.mock import AsyncMock, patch

from app.db.database import initialize_database, create_db_and_tables, get_engine, get_session_local, Base
initialize_database(is_test_setup=True)

from fastapi.testclient import TestClient
from app.core.store import ConversationStore
from app.main import app, get_llm_client, get_sender, get_store
from app.models.schemas import GlobalConfig
from config import settings

ADMIN = "5511000000000"
USER = "5511988887777"
STRANGER = "5511977776666"

client = TestClient(app)


def whatsapp_payload(user_phone, message_body):
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "BUSINESS_ACCOUNT_ID",
            "changes": [{
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"display_phone_number": "TEST_PHONE", "phone_number_id": settings.PHONE_NUMBER_ID},
                    "contacts": [{"profile": {"name": "Test User"}, "wa_id": user_phone}],
                    "messages": [{
                        "from": user_phone,
                        "id": "MSG_ID_TEST",
                        "timestamp": "1678886400",
                        "text": {"body": message_body},
                        "type": "text"
                    }]
                },
                "field": "messages"
            }]
        }]
    }


class TestWhatsappIntegration(unittest.TestCase):

    def setUp(self):
        engine = get_engine()
        Base.metadata.drop_all(bind=engine)
        create_db_and_tables(engine)

        self.store = ConversationStore.load(get_session_local(), GlobalConfig(admins=[ADMIN]))
        self.store.ensure(USER)
        self.store.commit()
        self.sender = AsyncMock()

        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_sender] = lambda: self.sender
        app.dependency_overrides[get_llm_client] = lambda: None

    def tearDown(self):
        app.dependency_overrides.clear()

    def post_message(self, user_phone, message_body):
        self.sender.reset_mock()
        return client.post("/webhook", json=whatsapp_payload(user_phone, message_body))

    def last_reply(self):
        return self.sender.await_args.args[1]

    def test_root(self):
        response = client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("message", response.json())

    def test_webhook_verification(self):
        with patch.object(settings, "WHATSAPP_VERIFY_TOKEN", "segredo"):
            ok = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "segredo",
                                                "hub.challenge": "1234"})
            wrong = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "outro",
                                                   "hub.challenge": "1234"})
            bad_challenge = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "segredo",
                                                           "hub.challenge": "abc"})
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json(), 1234)
        self.assertEqual(wrong.status_code, 403)
        self.assertEqual(bad_challenge.status_code, 400)

    def test_webhook_verification_without_token(self):
        with patch.object(settings, "WHATSAPP_VERIFY_TOKEN", None):
            response = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "None",
                                                      "hub.challenge": "1234"})
        self.assertEqual(response.status_code, 403)

    def test_invalid_json(self):
        response = client.post("/webhook", content="not json", headers={"Content-Type": "application/json"})
        self.assertEqual(response.status_code, 400)

    def test_status_payload_is_ignored(self):
        payload = whatsapp_payload(USER, "")
        payload["entry"][0]["changes"][0]["value"].pop("messages")
        response = client.post("/webhook", json=payload)
        self.assertEqual(response.json()["status"], "ignored")
        self.sender.assert_not_awaited()

    def test_create_task_and_list(self):
        response = self.post_message(USER, "nova tarefa: Comprar pão")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "processed")
        self.sender.assert_awaited_once_with(USER, '✅ Tarefa "Comprar pão" adicionada.', expiration=None)

        # Persisted before the reply.
        reloaded = ConversationStore.load(get_session_local(), GlobalConfig(admins=[ADMIN]))
        self.assertEqual(reloaded.get(USER).tasks[0].description, "Comprar pão")

        self.post_message(USER, "tarefas")
        self.assertEqual(self.last_reply(), "📋 Tarefas:\n*1.* Comprar pão")

    def test_event_update_and_remove(self):
        self.post_message(USER, "Reunião amanhã às 10")
        self.assertTrue(self.last_reply().startswith('✅ Evento *"Reunião"*'))
        self.assertEqual(len(self.store.get(USER).events), 1)

        self.post_message(USER, "mudar Reunião para Reunião de equipe")
        self.assertTrue(self.last_reply().startswith("✅ Evento atualizado com sucesso."))
        self.assertEqual(self.store.get(USER).events[0].description, "Reunião de equipe")

        self.post_message(USER, "remover reunião de equipe")
        self.assertEqual(self.last_reply(), '✅ Evento "Reunião de equipe" removido.')
        self.assertEqual(self.store.get(USER).events, [])

    def test_unrecognized_message(self):
        response = self.post_message(USER, "qual a previsão do tempo?")
        self.assertEqual(response.json()["status"], "processed")
        self.assertEqual(self.last_reply(), "Não entendi sua solicitação. Reformule, por favor.")

    def test_unauthorized_sender(self):
        response = self.post_message(STRANGER, "nova tarefa: Invadir")
        self.assertEqual(response.json(), {"status": "ignored", "reason": "unauthorized"})
        self.sender.assert_not_awaited()

    def test_admin_authorizes_user(self):
        self.post_message(ADMIN, f"adicionar @{STRANGER}")
        self.assertEqual(self.last_reply(), "✅ Usuário adicionado.")

        response = self.post_message(STRANGER, "nova tarefa: Estudar")
        self.assertEqual(response.json()["status"], "processed")
        self.assertEqual(self.store.get(STRANGER).tasks[0].description, "Estudar")


if __name__ == "__main__":
    unittest.main()
