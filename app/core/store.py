# app/core/store.py

import logging
from typing import Dict, Iterator, Optional, Tuple

from pydantic import ValidationError

from app.core.persistence import CONFIG_DOCUMENT, DATA_DOCUMENT, load_document, save_document
from app.models.schemas import ConversationConfigs, ConversationRecord, GlobalConfig

logger = logging.getLogger(__name__)


class ConversationStore:
    """Tasks, events and settings of every conversation, plus the global configuration.

    Created once at startup and shared by the message handlers and the
    reminder scheduler. ``commit`` writes the conversations document through
    the persistence layer; without a session factory the store is memory only.
    """

    def __init__(self, config: Optional[GlobalConfig] = None,
                 records: Optional[Dict[str, ConversationRecord]] = None,
                 session_factory=None):
        self.config = config or GlobalConfig()
        self.records: Dict[str, ConversationRecord] = records if records is not None else {}
        self._session_factory = session_factory

    @classmethod
    def load(cls, session_factory, default_config: GlobalConfig):
        with session_factory() as db:
            raw_config = load_document(db, CONFIG_DOCUMENT, default_config.model_dump(mode="json"))
            try:
                config = GlobalConfig.model_validate(raw_config)
            except ValidationError as e:
                logger.error("Invalid global configuration (%s). Using defaults.", e)
                config = default_config.model_copy(deep=True)

            raw_data = load_document(db, DATA_DOCUMENT, {})

        store = cls(config=config, session_factory=session_factory)
        for conversation_id, raw_record in raw_data.items():
            try:
                store.records[conversation_id] = store._heal_record(raw_record)
            except (ValueError, TypeError) as e:
                logger.error("Discarding corrupt record for %s: %s", conversation_id, e)

        # Persist the healed documents right away.
        store.commit_config()
        store.commit()
        logger.info("Store loaded with %d conversation(s).", len(store.records))
        return store

    def _default_configs(self, is_group: bool = False) -> ConversationConfigs:
        return ConversationConfigs(
            listen=True,
            notify=True,
            freemode=False if is_group else None,
            timezone=self.config.timezone,
            expiration=0,
        )

    def _heal_record(self, raw_record) -> ConversationRecord:
        if not isinstance(raw_record, dict):
            raise TypeError(f"expected an object, got {type(raw_record).__name__}")
        configs = self._default_configs().model_dump()
        raw_configs = raw_record.get("configs") or {}
        if not isinstance(raw_configs, dict):
            raise TypeError("configs must be an object")
        configs.update(raw_configs)
        return ConversationRecord.model_validate({**raw_record, "configs": configs})

    # --- Access --- #

    def __contains__(self, conversation_id) -> bool:
        return conversation_id in self.records

    def __len__(self) -> int:
        return len(self.records)

    def items(self) -> Iterator[Tuple[str, ConversationRecord]]:
        # Snapshot: records may be added or removed while a caller awaits.
        return iter(list(self.records.items()))

    def get(self, conversation_id: str) -> Optional[ConversationRecord]:
        return self.records.get(conversation_id)

    def ensure(self, conversation_id: str, is_group: bool = False) -> ConversationRecord:
        record = self.records.get(conversation_id)
        if record is None:
            record = ConversationRecord(configs=self._default_configs(is_group))
            self.records[conversation_id] = record
            logger.info("Conversation %s registered.", conversation_id)
        return record

    def remove(self, conversation_id: str) -> bool:
        return self.records.pop(conversation_id, None) is not None

    def timezone_for(self, conversation_id: str) -> str:
        record = self.records.get(conversation_id)
        return record.configs.timezone if record else self.config.timezone

    # --- Persistence --- #

    def dump(self) -> dict:
        return {conversation_id: record.model_dump(mode="json") for conversation_id, record in self.records.items()}

    def commit(self):
        if self._session_factory is None:
            logger.debug("Store has no session factory; commit skipped.")
            return
        with self._session_factory() as db:
            save_document(db, DATA_DOCUMENT, self.dump())

    def commit_config(self):
        if self._session_factory is None:
            return
        with self._session_factory() as db:
            save_document(db, CONFIG_DOCUMENT, self.config.model_dump(mode="json"))
