from __future__ import annotations

import json
import logging

from coursesearch.services.normalization import canonical_code
from coursesearch.services.storage import KeyValueStore

log = logging.getLogger(__name__)

STORAGE_KEY = "unavailable-courses"


def make_availability_key(code: str, institution: str) -> str:
    return f"{institution.upper()}::{canonical_code(code)}"


class AvailabilityFilter:
    """Courses that are listed in a catalog but have no statistics behind them.

    The set only grows. It is read from the store once, on first use, and written back
    in full on every new mark. Storage problems are logged and otherwise ignored; without
    a store the filter stays empty.
    """

    def __init__(self, store: KeyValueStore | None = None):
        self.store = store
        self.initialized = False
        self._unavailable: set[str] = set()

    def __len__(self) -> int:
        self._ensure_initialized()
        return len(self._unavailable)

    def _ensure_initialized(self) -> None:
        if self.initialized or self.store is None:
            return
        try:
            stored = self.store.get(STORAGE_KEY)
            if stored:
                parsed = json.loads(stored)
                if isinstance(parsed, list):
                    self._unavailable.update(str(key) for key in parsed)
        except Exception as exc:
            log.debug("Ignoring unreadable availability state: %s", exc)
        finally:
            self.initialized = True

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.set(STORAGE_KEY, json.dumps(sorted(self._unavailable)))
        except Exception as exc:
            log.debug("Could not persist availability state: %s", exc)

    def is_unavailable(self, code: str, institution: str) -> bool:
        self._ensure_initialized()
        return make_availability_key(code, institution) in self._unavailable

    def mark_unavailable(self, code: str, institution: str) -> None:
        if self.store is None:
            return
        self._ensure_initialized()
        key = make_availability_key(code, institution)
        if key in self._unavailable:
            return
        self._unavailable.add(key)
        self._persist()
