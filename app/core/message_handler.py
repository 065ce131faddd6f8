# app/core/message_handler.py

import logging
from datetime import datetime, timezone

from app.core.commands import evaluate_command
from app.core.task_manager import apply_intent
from app.gateway.whatsapp_handler import WhatsAppSendError
from app.models.schemas import InboundMessage, UnknownIntent
from app.nlp.llm_client import LLMFallbackError
from app.nlp.processor import interpret_message

logger = logging.getLogger(__name__)

PROCESSING_FAILED = "Houve um erro ao processar sua mensagem. Tente novamente mais tarde."


def _ignored(reason: str) -> dict:
    return {"status": "ignored", "reason": reason}


def _strip_mention(text: str, mention_token: str, own_id: str):
    """Returns (mentioned, text without the mention)."""
    if not own_id:
        return False, text
    tag = f"@{own_id}"
    mentioned = mention_token == own_id or tag in text
    return mentioned, " ".join(text.replace(tag, " ").split())


async def _commit_and_send(store, send, conversation_id: str, mutated: bool, response_text: str,
                           expiration: int, status: str = "processed") -> dict:
    # Persist before sending so a failed send never loses a mutation.
    if mutated:
        store.commit()
    try:
        await send(conversation_id, response_text, expiration=expiration or None)
    except WhatsAppSendError as e:
        logger.error("Error sending reply to %s: %s", conversation_id, e)
        return {"status": "send_failed", "response_sent": None, "store_mutated": mutated}
    except Exception:
        logger.exception("Unexpected error sending reply to %s.", conversation_id)
        return {"status": "send_failed", "response_sent": None, "store_mutated": mutated}
    return {"status": status, "response_sent": response_text, "store_mutated": mutated}


async def handle_incoming_message(message: InboundMessage, store, send, llm_client=None, now: datetime = None) -> dict:
    """Runs one inbound message through commands, interpretation and the intent applier."""
    text = (message.text or "").strip()
    if not text:
        return _ignored("empty message")

    conversation_id = message.conversation_id
    is_admin = message.sender_id in store.config.admins
    if conversation_id not in store:
        if not is_admin:
            logger.info("Ignoring message from unauthorized conversation %s.", conversation_id)
            return _ignored("unauthorized")
        store.ensure(conversation_id, is_group=message.is_group)
        store.commit()

    record = store.get(conversation_id)
    logger.info("Message received from %s in %s: %s", message.sender_id, conversation_id, text)

    if message.is_group and not record.configs.freemode:
        mentioned, text = _strip_mention(text, message.mention_token, store.config.own_id)
        if not mentioned or not text:
            return _ignored("not mentioned")

    command = evaluate_command(text, conversation_id, message.sender_id, store)
    if command is not None:
        mutated, response_text = command
        return await _commit_and_send(store, send, conversation_id, mutated, response_text,
                                      record.configs.expiration, status="command")

    if not (store.config.listen and record.configs.listen):
        return _ignored("not listening")

    now = now or datetime.now(timezone.utc)
    intent = interpret_message(text, now, conversation_id, store)
    if intent is None:
        if llm_client is None or not llm_client.available:
            intent = UnknownIntent()
        else:
            try:
                intent = await llm_client.interpret(text, now, record.configs.timezone,
                                                    record.tasks, record.events)
            except LLMFallbackError as e:
                logger.error("LLM fallback failed for %s: %s", conversation_id, e)
                return await _commit_and_send(store, send, conversation_id, False, PROCESSING_FAILED,
                                              record.configs.expiration, status="error")

    mutated, response_text = apply_intent(intent, conversation_id, store, sender=message.sender_id)
    result = await _commit_and_send(store, send, conversation_id, mutated, response_text,
                                    record.configs.expiration)
    result["intent"] = intent.type
    return result
