from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from coursesearch.core.config import get_settings

Base = declarative_base()


def _engine_kwargs(url: str) -> dict[str, object]:
    kwargs: dict[str, object] = {"future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    url = get_settings().database_url
    return create_engine(url, **_engine_kwargs(url))


@lru_cache(maxsize=1)
def get_sessionmaker() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine())


def SessionLocal() -> Session:
    return get_sessionmaker()()


def init_db() -> None:
    # Importing the models registers their tables on Base.metadata.
    from coursesearch import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
