# app/gateway/whatsapp_handler.py

import json
import logging

import requests
from fastapi.concurrency import run_in_threadpool

from config import settings
from app.models.schemas import InboundMessage

logger = logging.getLogger(__name__)


class WhatsAppSendError(Exception):
    """Raised when the Cloud API refuses or fails to deliver a message."""


def graph_api_url(api_version: str = None) -> str:
    return f"https://graph.facebook.com/{api_version or settings.GRAPH_API_VERSION}/{settings.PHONE_NUMBER_ID}/messages"


def send_whatsapp_message(to_phone_number: str, message_text: str, expiration: int = None, api_version: str = None):
    """Simulates or sends a message to WhatsApp."""
    payload = {
        "messaging_product": "whatsapp",
        "to": to_phone_number,
        "type": "text",
        "text": {"body": message_text}
    }
    if expiration:
        # The Cloud API has no disappearing-message field; the TTL is only recorded.
        logger.debug("Ephemeral TTL of %ss requested for %s.", expiration, to_phone_number)

    if settings.SIMULATE_WHATSAPP_MESSAGES:
        logger.info("SIMULATING WHATSAPP SEND to %s: %s", to_phone_number, message_text)
        logger.debug("Payload: %s", json.dumps(payload, indent=2, ensure_ascii=False))
        return {"status": "simulated_success", "payload": payload}

    headers = {
        "Authorization": f"Bearer {settings.WHATSAPP_API_TOKEN}",
        "Content-Type": "application/json"
    }
    try:
        response = requests.post(graph_api_url(api_version), headers=headers, data=json.dumps(payload),
                                 timeout=settings.WHATSAPP_SEND_TIMEOUT)
        response.raise_for_status()
        logger.info("Message sent to %s. Response: %s", to_phone_number, response.json())
        return {"status": "success", "response": response.json()}
    except requests.exceptions.RequestException as e:
        logger.error("Error sending WhatsApp message to %s: %s", to_phone_number, e)
        return {"status": "error", "error_message": str(e)}


async def send_message(conversation_id: str, text: str, expiration: int = None, api_version: str = None):
    """Async send path used by the message pipeline and the reminder scheduler."""
    result = await run_in_threadpool(send_whatsapp_message, conversation_id, text, expiration, api_version)
    if result.get("status") == "error":
        raise WhatsAppSendError(result.get("error_message"))
    return result


def make_sender(store):
    """Binds ``send_message`` to the Graph API version cached in the store's configuration."""
    async def send(conversation_id: str, text: str, expiration: int = None):
        return await send_message(conversation_id, text, expiration=expiration,
                                  api_version=store.config.api_version)
    return send


def parse_incoming_whatsapp_message(payload: dict):
    """Extracts the first text message of a Cloud API webhook payload.

    Returns an InboundMessage, or None for statuses and non-text messages.
    """
    try:
        if payload.get("object") != "whatsapp_business_account":
            return None
        for entry in payload.get("entry", []):
            for change in entry.get("changes", []):
                value = change.get("value", {})
                if value.get("messaging_product") != "whatsapp":
                    continue
                messages = value.get("messages") or []
                if not messages:
                    continue
                message_object = messages[0]
                if message_object.get("type") != "text":
                    continue

                sender_id = message_object.get("from")
                text_body = message_object.get("text", {}).get("body")
                if not sender_id or text_body is None:
                    continue
                group_id = message_object.get("group_id")
                # A reply to one of the bot's messages counts as a mention.
                context = message_object.get("context") or {}
                return InboundMessage(
                    conversation_id=group_id or sender_id,
                    sender_id=sender_id,
                    text=text_body,
                    is_group=bool(group_id),
                    mention_token=context.get("from"),
                )
    except (AttributeError, TypeError) as e:
        logger.error("Error parsing incoming WhatsApp message: %s", e)
        return None
    return None
