from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from querykit.core.config import Settings, settings as default_settings


class Base(DeclarativeBase):
    pass


def is_memory_sqlite(url) -> bool:
    url = make_url(url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def build_engine(config: Settings | None = None, **kwargs):
    cfg = config or default_settings
    if is_memory_sqlite(cfg.DATABASE_URL):
        # One shared connection, otherwise every worker thread gets its own empty database.
        kwargs.setdefault("poolclass", StaticPool)
        kwargs["connect_args"] = {"check_same_thread": False, **kwargs.get("connect_args", {})}
    return create_engine(cfg.DATABASE_URL, echo=cfg.SQL_ECHO, **kwargs)


def build_session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)
