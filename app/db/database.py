# app/db/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from config.settings import DATABASE_URL as DEFAULT_DATABASE_URL

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None
Base = declarative_base()
_is_test_db_initialized = False  # Flag to indicate test DB setup

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


def initialize_database(db_url: str = None, is_test_setup: bool = False):
    global engine, SessionLocal, _is_test_db_initialized

    if _is_test_db_initialized and not is_test_setup:
        logger.debug("Test database is active (%s). Main DB initialization with '%s' skipped.",
                     engine.url if engine else "N/A", db_url or DEFAULT_DATABASE_URL)
        return

    connect_args = {}
    engine_kwargs = {}

    if is_test_setup:
        # A single shared in-memory connection, visible to every session of the test run.
        effective_db_url = TEST_DATABASE_URL
        engine_kwargs["poolclass"] = StaticPool
        _is_test_db_initialized = True
        logger.debug("Initializing TEST database with URI: %s", effective_db_url)
    else:
        effective_db_url = db_url if db_url else DEFAULT_DATABASE_URL
        logger.info("Initializing database with URL: %s", effective_db_url)

    if not effective_db_url:
        raise ValueError("Database URL must be provided for initialization.")

    # SQLite connections are shared between the event loop and the threadpool.
    if "sqlite" in effective_db_url:
        connect_args = {"check_same_thread": False}

    engine = create_engine(effective_db_url, connect_args=connect_args, **engine_kwargs)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.debug("Engine set to %s, SessionLocal configured.", engine.url)


def get_engine():
    if not engine:
        logger.debug("get_engine() called before explicit initialization. Initializing with default URL.")
        initialize_database()
    return engine


def get_session_local():
    if not SessionLocal:
        logger.debug("get_session_local() called before explicit initialization. Initializing with default URL.")
        initialize_database()
    return SessionLocal


def create_db_and_tables(target_engine):
    logger.debug("Creating tables on engine %s", target_engine.url)
    Base.metadata.create_all(bind=target_engine)
