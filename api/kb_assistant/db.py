"""
SQLAlchemy setup for the settings and usage tables.

Defaults to a local SQLite file; set DATABASE_URL to point elsewhere.
Timestamps are stored as naive UTC.
"""

from pathlib import Path

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class ChatbotSetting(Base):
    __tablename__ = "chatbot_settings"

    key = Column(String(64), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class UsageLog(Base):
    __tablename__ = "usage_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    model = Column(String(128), nullable=False)
    tokens_in = Column(Integer, nullable=False, default=0)
    tokens_out = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, index=True)


class Database:
    """Engine and session factory for one database URL."""

    def __init__(self, url: str, echo: bool = False) -> None:
        connect_args = {}
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False  # Sessions run in worker threads
            if parsed.database and parsed.database != ":memory:":
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(url, connect_args=connect_args, echo=echo)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def init_db(self) -> None:
        """Create all tables. Call once at startup."""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
