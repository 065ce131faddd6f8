# app/main.py

import json
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request

from app.core.message_handler import handle_incoming_message
from app.core.scheduler import ReminderScheduler
from app.core.singleton import manage_process_pid
from app.core.store import ConversationStore
from app.db.database import create_db_and_tables, get_engine, get_session_local, initialize_database
from app.gateway import whatsapp_handler
from app.models import models  # noqa: F401  (registers the tables on Base)
from app.models.schemas import GlobalConfig
from app.nlp.llm_client import LLMFallbackClient
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    datefmt="%d/%m/%Y %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_default_config() -> GlobalConfig:
    return GlobalConfig(
        admins=settings.ADMINS,
        listen=True,
        notify=True,
        own_id=settings.BOT_WHATSAPP_ID,
        timezone=settings.DEFAULT_TIMEZONE,
        api_version=settings.GRAPH_API_VERSION,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    manage_process_pid(settings.PID_FILE)
    initialize_database(settings.DATABASE_URL)
    create_db_and_tables(get_engine())

    store = ConversationStore.load(get_session_local(), build_default_config())
    app.state.store = store
    app.state.llm_client = LLMFallbackClient(api_key=settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL)
    if not app.state.llm_client.available:
        logger.warning("OPENAI_API_KEY não configurada: mensagens fora das regras não serão interpretadas.")

    scheduler = ReminderScheduler(
        store,
        whatsapp_handler.make_sender(store),
        interval_seconds=settings.SCHEDULER_INTERVAL_SECONDS,
        tolerance_minutes=settings.REMINDER_TOLERANCE_MINUTES,
    )
    scheduler.start()
    logger.info("Bot inicializado e pronto.")
    yield
    # Shutdown
    await scheduler.stop()


app = FastAPI(
    title="Agenda WhatsApp Assistant",
    description="Assistente de WhatsApp para tarefas, eventos e lembretes.",
    version="0.2.0",
    lifespan=lifespan,
)

if not settings.WHATSAPP_VERIFY_TOKEN:
    logger.warning("A variável de ambiente VERIFY_TOKEN não está configurada; a verificação do webhook falhará.")


# Dependências
def get_store(request: Request) -> ConversationStore:
    return request.app.state.store


def get_llm_client(request: Request):
    return getattr(request.app.state, "llm_client", None)


def get_sender(store: ConversationStore = Depends(get_store)):
    return whatsapp_handler.make_sender(store)


@app.get("/")
async def read_root():
    return {"message": "Agenda WhatsApp Assistant está rodando!"}


@app.get("/webhook")
async def verify_webhook(request: Request):
    mode = request.query_params.get("hub.mode")
    token_recebido = request.query_params.get("hub.verify_token")  # token enviado pela Meta
    challenge = request.query_params.get("hub.challenge")

    expected = settings.WHATSAPP_VERIFY_TOKEN
    if mode == "subscribe" and expected is not None and token_recebido is not None and token_recebido == expected:
        logger.info("Webhook verificado com sucesso.")
        try:
            return int(challenge)  # Meta espera um int
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="Challenge inválido.")

    logger.warning("Falha na verificação do webhook (mode=%s).", mode)
    raise HTTPException(status_code=403, detail="Token de verificação inválido ou erro de configuração interna.")


@app.post("/webhook")
async def handle_whatsapp_message(
    request: Request,
    store: ConversationStore = Depends(get_store),
    llm_client=Depends(get_llm_client),
    send=Depends(get_sender),
):
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        logger.error("Error decoding JSON")
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    logger.debug("Received payload: %s", json.dumps(payload, ensure_ascii=False))
    inbound = whatsapp_handler.parse_incoming_whatsapp_message(payload)
    if not inbound:
        return {"status": "ignored", "reason": "Non-text message or parse error"}

    return await handle_incoming_message(inbound, store, send, llm_client)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
