# app/core/commands.py

import logging
import re
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# Admin only
ADD_USER_PATTERN = re.compile(r"^adicionar(?: usuário| usuario)? @(?P<number>\d{11,15})$", re.IGNORECASE)
REMOVE_USER_PATTERN = re.compile(r"^remover(?: usuário| usuario)? @(?P<number>\d{11,15})$", re.IGNORECASE)


def _count(amount: int, singular: str, plural: str, none: str) -> str:
    if amount == 0:
        return none
    if amount == 1:
        return f"1 {singular}"
    return f"{amount} {plural}"


def status_text(record) -> str:
    configs = record.configs
    lines = [
        "✅ Aguardando solicitações." if configs.listen else "❌ Ignorando solicitações.",
        "✅ Notificações ativadas." if configs.notify else "❌ Notificações desativadas.",
    ]
    if configs.freemode is not None:
        lines.append("✅ Qualquer mensagem." if configs.freemode else "❌ Menções ativadas.")
    lines.append(f"📋 {_count(len(record.tasks), 'tarefa', 'tarefas', 'Nenhuma tarefa')}")
    lines.append(f"📅 {_count(len(record.events), 'evento', 'eventos', 'Nenhum evento')}")

    commands = [
        "🤖 *Comandos disponíveis:*",
        "▪ *atender*: ativa/desativa novas solicitações.",
        "▪ *notificar*: ativa/desativa todas notificações.",
    ]
    if configs.freemode is not None:
        commands.append("▪ *livre*: ativa/desativa mensagens sem menções.")
    commands += [
        "▪ *agenda*: mostra tarefas e eventos.",
        "▪ *tarefas*: mostra as tarefas.",
        "▪ *eventos*: mostra os eventos.",
    ]
    return "\n".join(lines) + "\n\n" + "\n".join(commands)


def evaluate_command(message_text: str, conversation_id: str, sender_id: str, store) -> Optional[Tuple[bool, str]]:
    """Handles the fixed command table that runs before intent interpretation.

    Returns ``(store_mutated, response_text)`` for a recognized command, or
    None to let the message through to the interpreter.
    """
    command = (message_text or "").strip().lower()
    is_admin = sender_id in store.config.admins
    record = store.get(conversation_id)

    match = ADD_USER_PATTERN.match(command)
    if match and is_admin:
        number = match.group("number")
        if number in store:
            return False, "❌ Usuário já está autorizado."
        store.ensure(number)
        logger.info("User added to the authorized list: %s", number)
        return True, "✅ Usuário adicionado."

    match = REMOVE_USER_PATTERN.match(command)
    if match and is_admin:
        number = match.group("number")
        if not store.remove(number):
            return False, "❌ Usuário não encontrado."
        logger.info("User removed from the authorized list: %s", number)
        return True, "✅ Usuário removido."

    if record is None:
        return None

    if command == "status":
        return False, status_text(record)

    if command == "atender":
        record.configs.listen = not record.configs.listen
        if record.configs.listen:
            return True, "✅ Ativado, aguardando solicitações."
        return True, "❌ Desativado, ignorando solicitações."

    if command == "notificar":
        record.configs.notify = not record.configs.notify
        if record.configs.notify:
            return True, "✅ Notificações ativadas."
        return True, "❌ Notificações desativadas."

    if command == "livre" and record.configs.freemode is not None:
        record.configs.freemode = not record.configs.freemode
        if record.configs.freemode:
            return True, "✅ Qualquer mensagem."
        return True, "❌ Menções ativadas."

    return None
