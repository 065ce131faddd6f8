# app/core/task_manager.py

import logging
from typing import Tuple

from app.core.formatting import (
    format_datetime,
    format_event_lines,
    format_lead_time,
    format_task_lines,
)
from app.models.schemas import (
    ClearIntent,
    Event,
    EventIntent,
    QueryIntent,
    RemoveIntent,
    Task,
    TaskIntent,
    TextReply,
    UpdateIntent,
)

logger = logging.getLogger(__name__)

INVALID_UPDATE_INDEX = "❌ Índice inválido para atualização."
REMOVAL_FAILED = "❌ Falha na remoção."
NOTHING_FOUND = "Nenhum item encontrado."
NO_TASKS_FOUND = "Nenhuma tarefa encontrada."
NO_EVENTS_FOUND = "Nenhum evento encontrado."
NOT_UNDERSTOOD = "Não entendi sua solicitação. Reformule, por favor."

CLEARED_LIST_NAMES = {"tasks": "de tarefas", "events": "de eventos", "all": "completa"}


def _target_list(record, target: str):
    return record.tasks if target == "tasks" else record.events


def _valid_index(items, index: int) -> bool:
    # Always checked against the list as it is now, never a length captured earlier.
    return 0 <= index < len(items)


# --- Creation --- #

def add_task(record, intent: TaskIntent, sender: str) -> Tuple[bool, str]:
    record.tasks.append(Task(description=intent.description, sender=sender))
    return True, f'✅ Tarefa "{intent.description}" adicionada.'


def add_event(record, intent: EventIntent, sender: str) -> Tuple[bool, str]:
    event = Event(description=intent.description, datetime=intent.datetime,
                  notify=intent.notify or 0, sender=sender)
    record.events.append(event)
    timezone_name = record.configs.timezone
    return True, (
        f'✅ Evento *"{event.description}"*\n'
        f"Agendado para *{format_datetime(event.datetime, timezone_name)}*.\n"
        f"Notificação {format_lead_time(event.notify)}."
    )


# --- Mutation by index --- #

def update_item(record, intent: UpdateIntent) -> Tuple[bool, str]:
    items = _target_list(record, intent.target)
    if not _valid_index(items, intent.item_index):
        logger.info("Update rejected: index %s out of range for %d %s.",
                    intent.item_index, len(items), intent.target)
        return False, INVALID_UPDATE_INDEX

    item = items[intent.item_index]
    fields = intent.fields
    if intent.target == "events":
        if fields.datetime is not None:
            item.datetime = fields.datetime
        if fields.notify is not None:
            item.notify = fields.notify
    if fields.description is not None:
        item.description = fields.description

    if intent.target == "tasks":
        return True, f"✅ Tarefa atualizada com sucesso.\n*{intent.item_index + 1}.* {item.description}"

    timezone_name = record.configs.timezone
    return True, (
        f"✅ Evento atualizado com sucesso.\n"
        f"*{intent.item_index + 1}.* {item.description}\n"
        f"   {format_datetime(item.datetime, timezone_name)}\n"
        f"   _(notificar {format_lead_time(item.notify)})_"
    )


def remove_item(record, intent: RemoveIntent) -> Tuple[bool, str]:
    items = _target_list(record, intent.target)
    if not _valid_index(items, intent.item_index):
        logger.info("Removal rejected: index %s out of range for %d %s.",
                    intent.item_index, len(items), intent.target)
        return False, REMOVAL_FAILED

    removed = items.pop(intent.item_index)
    if intent.target == "tasks":
        return True, f'✅ Tarefa "{removed.description}" removida.'
    return True, f'✅ Evento "{removed.description}" removido.'


def clear_items(record, intent: ClearIntent) -> Tuple[bool, str]:
    if intent.target in ("tasks", "all"):
        record.tasks.clear()
    if intent.target in ("events", "all"):
        record.events.clear()
    return True, f"✅ Lista {CLEARED_LIST_NAMES[intent.target]} foi limpa com sucesso."


# --- Listing --- #

def render_query(record, query_type: str) -> str:
    timezone_name = record.configs.timezone
    tasks = format_task_lines(record.tasks)
    events = format_event_lines(record.events, timezone_name)

    if query_type == "tasks":
        return f"📋 Tarefas:\n{tasks}" if tasks else NO_TASKS_FOUND
    if query_type == "events":
        return f"📅 Eventos:\n{events}" if events else NO_EVENTS_FOUND
    if not tasks and not events:
        return NOTHING_FOUND
    return (
        f"📋 Tarefas:\n{tasks or NOTHING_FOUND}\n\n"
        f"📅 Eventos:\n{events or NOTHING_FOUND}"
    )


def apply_intent(intent, conversation_id: str, store, sender: str = None) -> Tuple[bool, str]:
    """Applies an intent to a conversation.

    Returns ``(store_mutated, message_text)``. The caller is responsible for
    committing the store when ``store_mutated`` is true, before sending.
    """
    record = store.ensure(conversation_id)
    sender = sender or conversation_id

    if isinstance(intent, TaskIntent):
        return add_task(record, intent, sender)
    elif isinstance(intent, EventIntent):
        return add_event(record, intent, sender)
    elif isinstance(intent, UpdateIntent):
        return update_item(record, intent)
    elif isinstance(intent, RemoveIntent):
        return remove_item(record, intent)
    elif isinstance(intent, ClearIntent):
        return clear_items(record, intent)
    elif isinstance(intent, QueryIntent):
        return False, render_query(record, intent.query_type)
    elif isinstance(intent, TextReply):
        return False, intent.content

    logger.info("Unrecognized intent for %s: %r", conversation_id, intent)
    return False, NOT_UNDERSTOOD
