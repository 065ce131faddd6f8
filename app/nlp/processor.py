# app/nlp/processor.py

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from app.core.formatting import resolve_timezone
from app.models.schemas import (
    ClearIntent,
    ConversationRecord,
    EventIntent,
    QueryIntent,
    RemoveIntent,
    TaskIntent,
    UpdateFields,
    UpdateIntent,
)
from app.nlp import dates

# Rules are tried in order; the first one returning an intent wins.
# A rule returning None lets the next rule try, DEFER_TO_FALLBACK stops
# the rule layer and hands the message to the LLM fallback.

TASK_PREFIXES = ("nova tarefa:", "criar tarefa:", "tarefa:")
REMOVAL_PREFIXES = ("remover ", "apagar ", "excluir ")
EVENT_PREFIX_PATTERN = re.compile(r"^(?:evento:|novo evento:|adicionar evento:)?\s*", re.IGNORECASE)
UPDATE_PATTERN = re.compile(r"^mudar\s+(?P<rest>.+)$", re.IGNORECASE | re.DOTALL)
UPDATE_SEPARATOR = re.compile(r"\s+para\s+", re.IGNORECASE)

CLEAR_KEYWORDS = {
    "tasks": {"limpar tarefas", "apagar tarefas", "remover tarefas", "excluir tarefas"},
    "events": {"limpar eventos", "apagar eventos", "remover eventos", "excluir eventos"},
    "all": {"limpar tudo", "apagar tudo", "remover tudo", "excluir tudo"},
}

QUERY_KEYWORDS = {
    "agenda": "both",
    "compromissos": "both",
    "mostre": "both",
    "tudo": "both",
    "lista": "both",
    "tarefas": "tasks",
    "eventos": "events",
}

UNNAMED_EVENT = "Evento sem descrição"

DEFER_TO_FALLBACK = object()


@dataclass
class _Message:
    text: str
    lowered: str
    reference: datetime  # in the conversation's timezone
    record: ConversationRecord


def _find_index(items, description: str) -> int:
    wanted = description.strip().lower()
    for index, item in enumerate(items):
        if item.description.strip().lower() == wanted:
            return index
    return -1


def _match_task(message: _Message):
    for prefix in TASK_PREFIXES:
        if message.lowered.startswith(prefix):
            description = message.text[len(prefix):].strip()
            if description:
                return TaskIntent(description=description)
            return None
    return None


def _match_removal(message: _Message):
    for prefix in REMOVAL_PREFIXES:
        if message.lowered.startswith(prefix):
            description = message.text[len(prefix):].strip()
            task_index = _find_index(message.record.tasks, description)
            if task_index != -1:
                return RemoveIntent(target="tasks", item_index=task_index)
            event_index = _find_index(message.record.events, description)
            if event_index != -1:
                return RemoveIntent(target="events", item_index=event_index)
            return None
    return None


def _match_clear(message: _Message):
    for target, keywords in CLEAR_KEYWORDS.items():
        if message.lowered in keywords:
            return ClearIntent(target=target)
    return None


def _match_update(message: _Message):
    match = UPDATE_PATTERN.match(message.text)
    if not match:
        return None

    rest = match.group("rest")
    # Descriptions may contain "para" themselves, so every split point is tried.
    for separator in UPDATE_SEPARATOR.finditer(rest):
        target_description = rest[:separator.start()].strip()
        new_value = rest[separator.end():].strip()
        if not target_description or not new_value:
            continue

        task_index = _find_index(message.record.tasks, target_description)
        if task_index != -1:
            return UpdateIntent(target="tasks", item_index=task_index,
                                fields=UpdateFields(description=new_value))

        event_index = _find_index(message.record.events, target_description)
        if event_index != -1:
            new_datetime = dates.resolve(new_value, message.reference)
            if new_datetime is not None:
                fields = UpdateFields(datetime=new_datetime)
            else:
                fields = UpdateFields(description=new_value)
            return UpdateIntent(target="events", item_index=event_index, fields=fields)

    if UPDATE_SEPARATOR.search(rest):
        return DEFER_TO_FALLBACK
    return None


def _clean_description(text: str) -> str:
    description = " ".join(text.split())
    return description.strip(" ,;.-")


def _match_event(message: _Message):
    prefix = EVENT_PREFIX_PATTERN.match(message.text)
    body = message.text[prefix.end():]

    found = dates.find_datetime(body, message.reference)
    if found is None:
        return None
    if len(body[:found.start].strip()) < 2:
        return None

    description = _clean_description(body[:found.start] + " " + body[found.end:])
    return EventIntent(description=description or UNNAMED_EVENT, datetime=found.instant, notify=0)


def _match_query(message: _Message):
    query_type = QUERY_KEYWORDS.get(message.lowered)
    if query_type:
        return QueryIntent(query_type=query_type)
    return None


RULES = [
    _match_task,
    _match_removal,
    _match_clear,
    _match_update,
    _match_event,
    _match_query,
]


def interpret_message(message_text: str, reference: datetime, conversation_id: str, store):
    """Maps a message to an Intent using the fixed rules, or None when the
    LLM fallback should be consulted."""
    text = (message_text or "").strip()
    if not text:
        return None

    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    record = store.get(conversation_id) or ConversationRecord()
    local_reference = reference.astimezone(resolve_timezone(store.timezone_for(conversation_id)))

    message = _Message(text=text, lowered=text.lower(), reference=local_reference, record=record)
    for rule in RULES:
        intent = rule(message)
        if intent is DEFER_TO_FALLBACK:
            return None
        if intent is not None:
            return intent
    return None
