# app/core/persistence.py

import copy
import json
import logging

from sqlalchemy.orm import Session

from app.models import models

logger = logging.getLogger(__name__)

CONFIG_DOCUMENT = "config"
DATA_DOCUMENT = "data"


def get_document(db: Session, name: str):
    return db.query(models.Document).filter(models.Document.name == name).first()


def save_document(db: Session, name: str, data: dict):
    content = json.dumps(data, ensure_ascii=False, indent=2)
    db_document = get_document(db, name)
    if db_document:
        db_document.content = content
    else:
        db_document = models.Document(name=name, content=content)
        db.add(db_document)
    db.commit()
    db.refresh(db_document)
    return db_document


def load_document(db: Session, name: str, defaults: dict) -> dict:
    """Loads a JSON document, healing it against ``defaults``.

    A missing document is created from the defaults, a corrupt one is
    discarded and recreated, and missing top-level keys are filled in. The
    resulting document is always written back.
    """
    db_document = get_document(db, name)
    if not db_document:
        logger.warning("Document '%s' not found, creating it with default values.", name)
        data = copy.deepcopy(defaults)
        save_document(db, name, data)
        return data

    try:
        data = json.loads(db_document.content)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    except ValueError as e:
        logger.error("Could not load document '%s' (%s). Recreating it with default values.", name, e)
        data = copy.deepcopy(defaults)
        save_document(db, name, data)
        return data

    for key, value in defaults.items():
        if key not in data:
            data[key] = copy.deepcopy(value)

    save_document(db, name, data)
    return data
