# config/settings.py

import os
from dotenv import load_dotenv

# Carrega variáveis de ambiente de um arquivo .env para desenvolvimento local.
# Em produção as variáveis são configuradas diretamente no painel do serviço.
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in ('true', '1', 't', 'yes', 'sim')


# Token de API para enviar mensagens pela Cloud API do WhatsApp
WHATSAPP_API_TOKEN = os.getenv("WHATSAPP_API_TOKEN")

# Token para verificar o Webhook do WhatsApp (sem valor padrão de propósito)
WHATSAPP_VERIFY_TOKEN = os.getenv("VERIFY_TOKEN")

# ID do número de telefone do WhatsApp Business
PHONE_NUMBER_ID = os.getenv("PHONE_NUMBER_ID")

# Id do próprio bot no WhatsApp, usado para reconhecer menções em grupos
BOT_WHATSAPP_ID = os.getenv("BOT_WHATSAPP_ID")

# Versão da Graph API, usada como valor inicial do cache de versão do protocolo
GRAPH_API_VERSION = os.getenv("GRAPH_API_VERSION", "v17.0")

# Quando verdadeiro, os envios são apenas registrados no log
SIMULATE_WHATSAPP_MESSAGES = _as_bool(os.getenv("SIMULATE_WHATSAPP_MESSAGES", "True"))

# Timeout (segundos) das chamadas HTTP para a Graph API
WHATSAPP_SEND_TIMEOUT = float(os.getenv("WHATSAPP_SEND_TIMEOUT", "10"))

# URL do Banco de Dados onde ficam os documentos de configuração e agenda
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agenda_whatsapp_assistant.db")

# Fallback de interpretação via LLM
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Fuso horário padrão para novas conversas (nome IANA ou deslocamento, ex.: "-3")
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Sao_Paulo")

# Administradores (ids do WhatsApp separados por vírgula)
ADMINS = [admin.strip() for admin in os.getenv("ADMINS", "").split(",") if admin.strip()]

# Arquivo de PID do processo; vazio desativa a proteção de instância única
PID_FILE = os.getenv("PID_FILE", "./data/pid.log")

# Agendador de lembretes
SCHEDULER_INTERVAL_SECONDS = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))
REMINDER_TOLERANCE_MINUTES = int(os.getenv("REMINDER_TOLERANCE_MINUTES", "60"))

# Outras configurações globais
DEBUG_MODE_STR = os.getenv("DEBUG", "False")
DEBUG = _as_bool(DEBUG_MODE_STR)
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()
