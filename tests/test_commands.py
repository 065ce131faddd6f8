# tests/test_commands.py

import unittest

from app.core.commands import evaluate_command
from app.core.store import ConversationStore
from app.models.schemas import GlobalConfig, Task

ADMIN = "5511000000000"
USER = "5511988887777"
GROUP = "120363000000000000"


class TestCommands(unittest.TestCase):

    def setUp(self):
        self.store = ConversationStore(config=GlobalConfig(admins=[ADMIN]))
        self.store.ensure(ADMIN)
        self.user_record = self.store.ensure(USER)
        self.group_record = self.store.ensure(GROUP, is_group=True)

    def test_admin_adds_and_removes_user(self):
        self.assertEqual(evaluate_command("adicionar @5511977776666", ADMIN, ADMIN, self.store),
                         (True, "✅ Usuário adicionado."))
        self.assertIn("5511977776666", self.store)
        self.assertEqual(evaluate_command("Adicionar usuário @5511977776666", ADMIN, ADMIN, self.store),
                         (False, "❌ Usuário já está autorizado."))

        self.assertEqual(evaluate_command("remover @5511977776666", ADMIN, ADMIN, self.store),
                         (True, "✅ Usuário removido."))
        self.assertNotIn("5511977776666", self.store)
        self.assertEqual(evaluate_command("remover @5511977776666", ADMIN, ADMIN, self.store),
                         (False, "❌ Usuário não encontrado."))

    def test_non_admin_cannot_manage_users(self):
        self.assertIsNone(evaluate_command("adicionar @5511977776666", USER, USER, self.store))
        self.assertNotIn("5511977776666", self.store)

    def test_status_in_private_chat(self):
        self.user_record.tasks.append(Task(description="Ler"))
        mutated, text = evaluate_command(" Status ", USER, USER, self.store)
        self.assertFalse(mutated)
        self.assertIn("✅ Aguardando solicitações.", text)
        self.assertIn("📋 1 tarefa", text)
        self.assertIn("📅 Nenhum evento", text)
        self.assertNotIn("livre", text)

    def test_status_in_group(self):
        _, text = evaluate_command("status", GROUP, USER, self.store)
        self.assertIn("❌ Menções ativadas.", text)
        self.assertIn("*livre*", text)

    def test_toggle_listen(self):
        self.assertEqual(evaluate_command("atender", USER, USER, self.store),
                         (True, "❌ Desativado, ignorando solicitações."))
        self.assertFalse(self.user_record.configs.listen)
        self.assertEqual(evaluate_command("atender", USER, USER, self.store),
                         (True, "✅ Ativado, aguardando solicitações."))

    def test_toggle_notify(self):
        self.assertEqual(evaluate_command("notificar", USER, USER, self.store),
                         (True, "❌ Notificações desativadas."))
        self.assertFalse(self.user_record.configs.notify)

    def test_freemode_only_in_groups(self):
        self.assertIsNone(evaluate_command("livre", USER, USER, self.store))
        self.assertEqual(evaluate_command("livre", GROUP, USER, self.store), (True, "✅ Qualquer mensagem."))
        self.assertTrue(self.group_record.configs.freemode)

    def test_unknown_conversation(self):
        self.assertIsNone(evaluate_command("status", "5511977776666", "5511977776666", self.store))

    def test_regular_message_passes_through(self):
        self.assertIsNone(evaluate_command("nova tarefa: Ler", USER, USER, self.store))


if __name__ == "__main__":
    unittest.main()
