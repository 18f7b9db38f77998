from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from sqlalchemy.orm import Session

from coursesearch.db import SessionLocal
from coursesearch.models import StoredValue


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class SqlKeyValueStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self.session_factory() as db:
            row = db.get(StoredValue, key)
            return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        with self.session_factory() as db:
            row = db.get(StoredValue, key)
            if row is None:
                db.add(StoredValue(key=key, value=value))
            else:
                row.value = value
            db.commit()

