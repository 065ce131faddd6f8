# app/models/schemas.py

import datetime as dt
import logging
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


# --- Stored state --- #

class Task(BaseModel):
    description: str
    sender: Optional[str] = None


class Event(BaseModel):
    description: str
    datetime: dt.datetime
    notify: int = Field(default=0, ge=0)  # minutes of lead time
    sender: Optional[str] = None

    @field_validator("datetime")
    @classmethod
    def _datetime_in_utc(cls, value):
        return ensure_utc(value)

    @field_validator("notify", mode="before")
    @classmethod
    def _notify_defaults_to_zero(cls, value):
        return 0 if value is None else value


class ConversationConfigs(BaseModel):
    listen: bool = True
    notify: bool = True
    freemode: Optional[bool] = None  # only set for groups
    timezone: str = "UTC"
    expiration: int = Field(default=0, ge=0)  # ephemeral TTL in seconds, 0 = disabled

    @field_validator("timezone", mode="before")
    @classmethod
    def _timezone_as_text(cls, value):
        # Older documents store a bare numeric UTC offset such as -3.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class ConversationRecord(BaseModel):
    configs: ConversationConfigs = Field(default_factory=ConversationConfigs)
    tasks: List[Task] = Field(default_factory=list)
    events: List[Event] = Field(default_factory=list)


class GlobalConfig(BaseModel):
    admins: List[str] = Field(default_factory=list)
    listen: bool = True
    notify: bool = True
    own_id: Optional[str] = None
    timezone: str = "UTC"
    api_version: str = "v17.0"

    @field_validator("timezone", mode="before")
    @classmethod
    def _timezone_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


# --- Inbound transport message --- #

class InboundMessage(BaseModel):
    conversation_id: str
    sender_id: str
    text: str
    is_group: bool = False
    mention_token: Optional[str] = None


# --- Intents --- #

class TaskIntent(BaseModel):
    type: Literal["task"] = "task"
    description: str = Field(min_length=1)

    @field_validator("description", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class EventIntent(BaseModel):
    type: Literal["event"] = "event"
    description: str
    datetime: dt.datetime
    notify: int = Field(default=0, ge=0)

    @field_validator("datetime")
    @classmethod
    def _datetime_in_utc(cls, value):
        return ensure_utc(value)

    @field_validator("notify", mode="before")
    @classmethod
    def _notify_defaults_to_zero(cls, value):
        return 0 if value is None else value


class UpdateFields(BaseModel):
    description: Optional[str] = None
    datetime: Optional[dt.datetime] = None
    notify: Optional[int] = Field(default=None, ge=0)

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("datetime")
    @classmethod
    def _datetime_in_utc(cls, value):
        return ensure_utc(value) if value is not None else value


class UpdateIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["update"] = "update"
    target: Literal["tasks", "events"]
    item_index: int = Field(alias="itemIndex")
    fields: UpdateFields = Field(default_factory=UpdateFields)

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_fields(cls, data):
        # Some replies put the changed fields next to "target" instead of under "fields".
        if isinstance(data, dict) and data.get("fields") is None:
            lifted = {key: data[key] for key in ("description", "datetime", "notify") if key in data}
            data = {**data, "fields": lifted}
        return data


class RemoveIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["remove"] = "remove"
    target: Literal["tasks", "events"]
    item_index: int = Field(alias="itemIndex")


class ClearIntent(BaseModel):
    type: Literal["clear"] = "clear"
    target: Literal["tasks", "events", "all"]


class QueryIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["query"] = "query"
    query_type: Literal["tasks", "events", "both"] = Field(default="both", alias="queryType")


class TextReply(BaseModel):
    """Free-form answer from the LLM, forwarded verbatim."""
    type: Literal["text"] = "text"
    content: str


class UnknownIntent(BaseModel):
    type: Optional[str] = None
    payload: Dict = Field(default_factory=dict)


Intent = Union[TaskIntent, EventIntent, UpdateIntent, RemoveIntent, ClearIntent, QueryIntent, TextReply, UnknownIntent]

INTENT_MODELS = {
    "task": TaskIntent,
    "event": EventIntent,
    "update": UpdateIntent,
    "remove": RemoveIntent,
    "clear": ClearIntent,
    "query": QueryIntent,
    "text": TextReply,
}


def parse_intent(data) -> Intent:
    """Builds an Intent from a decoded JSON object; anything unusable becomes UnknownIntent."""
    if not isinstance(data, dict):
        return UnknownIntent(payload={"value": data})

    intent_type = data.get("type")
    model = INTENT_MODELS.get(intent_type) if isinstance(intent_type, str) else None
    if model is None:
        return UnknownIntent(type=str(intent_type) if intent_type is not None else None, payload=data)

    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.info("Discarding invalid '%s' intent: %s", intent_type, e.errors())
        return UnknownIntent(type=intent_type, payload=data)
