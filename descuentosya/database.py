# descuentosya/database.py
import logging

from flask import current_app, g, has_app_context
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from descuentosya.config import Config

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str, echo: bool = Config.SQL_ECHO) -> Engine:
    engine_kwargs = {
        "echo": echo,
        "future": True,
        "pool_pre_ping": True,
    }

    if database_url.startswith("sqlite"):
        # Sessions are handed across request threads and worker threads
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_size"] = Config.DB_POOL_SIZE
        engine_kwargs["max_overflow"] = Config.DB_MAX_OVERFLOW

    return create_engine(database_url, **engine_kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, future=True)


engine = build_engine(Config.DATABASE_URL)
SessionLocal = build_session_factory(engine)


def init_database(bind: Engine = engine) -> None:
    """Create every table registered on the shared metadata."""
    # Importing models registers them on Base.metadata
    from descuentosya import models  # noqa: F401

    Base.metadata.create_all(bind=bind)
    logger.info("Database tables initialized successfully")


def get_db():
    if 'db' not in g:
        factory = SessionLocal
        if has_app_context():
            factory = current_app.config.get("SESSION_FACTORY", SessionLocal)
        g.db = factory()
    return g.db


def close_db(e=None):
    try:
        db = g.pop('db', None)
        if db is not None:
            db.close()
    except RuntimeError:
        # Outside of an application context (test teardown)
        pass
