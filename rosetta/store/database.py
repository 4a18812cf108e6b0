"""Database handle shared by the registry, directory and conversion records."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rosetta.store.models import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the SQLAlchemy engine and session factory.

    Usage:
        db = Database(settings.database_url_sync)
        db.initialize()  # Create tables
        registry = SchemaRegistry(db)
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        kwargs: dict = {"echo": echo}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection so every session sees the same in-memory DB
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def initialize(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("Conversion store initialized: %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
