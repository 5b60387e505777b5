"""Generate database session"""

from typing import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings
from src.db.schema import Base


def create_db_engine(settings: Settings) -> Engine:
    connect_args = (
        {"check_same_thread": False}
        if settings.database_url.startswith("sqlite")
        else {}
    )
    return create_engine(
        settings.database_url, echo=settings.sql_echo, connect_args=connect_args
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine)


def init_db(engine: Engine) -> None:
    """Ensure all tables are created"""
    Base.metadata.create_all(bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """One session per request, from the factory the app was built with."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
