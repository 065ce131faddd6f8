# app/nlp/prompts.py

import json
from datetime import datetime

# System prompt for the fallback interpreter. Intent shapes mirror the ones
# produced by the rule-based interpreter (app/nlp/processor.py).
SYSTEM_PROMPT = """Você é um assistente que organiza tarefas e eventos de uma agenda pessoal.
Interprete a mensagem do usuário e responda somente com um JSON, usando um dos formatos abaixo.

- Evento: {{"type": "event", "description": "...", "datetime": "ISO 8601 em UTC", "notify": minutos}}
  - Use para pedidos com horário absoluto ("às 15h", "dia 10/05 às 9") ou relativo ("em 10 minutos").
  - Tempo relativo: some o intervalo à data/hora atual.
  - Se apenas a data for informada, use 08:00:00 no fuso horário do usuário.
  - "notify" é quantos minutos antes do evento avisar; use 0 a menos que o usuário peça antecedência.
- Tarefa: {{"type": "task", "description": "..."}}
  - Use para pedidos sem data ou horário.
- Alteração: {{"type": "update", "target": "tasks" | "events", "itemIndex": n, "fields": {{"description": "...", "datetime": "...", "notify": n}}}}
  - Inclua em "fields" somente o que mudou.
  - Datas e horas informadas pelo usuário estão no fuso horário dele; converta para UTC.
- Consulta: {{"type": "query", "queryType": "tasks" | "events" | "both"}}
- Remoção: {{"type": "remove", "target": "tasks" | "events", "itemIndex": n}}
- Limpeza: {{"type": "clear", "target": "tasks" | "events" | "all"}}

"itemIndex" é a posição (começando em 0) do item nas listas fornecidas.
Se não entender a solicitação, responda em texto: "Desculpe, não entendi sua solicitação. Pode reformular?"
"""

USER_PROMPT = """Transforme a mensagem abaixo em JSON com base nas informações fornecidas:
- Fuso horário: {timezone}
- Data/hora atual (ISO, UTC): {now}
- Tarefas existentes: {tasks}
- Eventos existentes: {events}
- Mensagem: "{message}"
"""


def _indexed(items) -> str:
    listing = [{"itemIndex": i, **item.model_dump(mode="json", exclude={"sender"})} for i, item in enumerate(items)]
    return json.dumps(listing, ensure_ascii=False, indent=2)


def build_messages(message_text: str, now: datetime, timezone_name: str, tasks, events) -> list:
    return [
        {"role": "system", "content": SYSTEM_PROMPT.format()},
        {
            "role": "user",
            "content": USER_PROMPT.format(
                timezone=timezone_name,
                now=now.isoformat(),
                tasks=_indexed(tasks),
                events=_indexed(events),
                message=message_text,
            ),
        },
    ]
