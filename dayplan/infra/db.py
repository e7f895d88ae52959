from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from dayplan.config import SETTINGS

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # in-memory databases live on a single shared connection
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


engine = make_engine(SETTINGS.database_url)
SessionLocal = make_session_factory(engine)


def create_schema(bind: Engine = engine) -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(bind)


def init_db() -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    if engine.dialect.name == "sqlite":
        create_schema(engine)
