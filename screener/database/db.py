"""Database engine and session factory setup."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from screener.database.models import Base
from screener.utils.config import config


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections may be shared across threads."""
    return create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
    )


def create_session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


engine = create_db_engine(config.database.database_url, config.database.echo)
SessionLocal = create_session_factory(engine)


def init_db(db_engine: Engine | None = None) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(bind=db_engine or engine)
