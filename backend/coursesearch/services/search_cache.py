from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import time

from coursesearch.services.course_identity import CourseIdentity
from coursesearch.services.normalization import canonical_code

ALL_INSTITUTIONS_KEY = "all"
DEFAULT_TTL_S = 60 * 60
DEFAULT_NEGATIVE_TTL_S = 5 * 60


@dataclass(frozen=True)
class CacheEntry:
    results: tuple[CourseIdentity, ...]
    timestamp: float
    # The limit the results were ranked with; prefix suppression depends on it.
    limit: int | None = None


@dataclass(frozen=True)
class NegativeCacheEntry:
    timestamp: float


@dataclass(frozen=True)
class PruneResult:
    positive_removed: int
    negative_removed: int


def make_cache_key(query: str, institution: str | None = None) -> tuple[str, str, str]:
    # Codes are ranked on the canonical form, names and institutions on the trimmed text.
    return canonical_code(query), query.strip().upper(), institution or ALL_INSTITUTIONS_KEY


class SearchResultCache:
    """Positive and negative search result caches with lazy TTL eviction.

    Negative entries expire sooner: a query with no hits is the likeliest to change.
    Nothing here runs on a timer; ``prune`` is for callers to invoke periodically.
    """

    def __init__(
        self,
        *,
        ttl_s: float = DEFAULT_TTL_S,
        negative_ttl_s: float = DEFAULT_NEGATIVE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_s = ttl_s
        self.negative_ttl_s = negative_ttl_s
        self.clock = clock
        self._positive: dict[tuple[str, str, str], CacheEntry] = {}
        self._negative: dict[tuple[str, str, str], NegativeCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._positive) + len(self._negative)

    def get(
        self,
        query: str,
        institution: str | None = None,
        limit: int | None = None,
    ) -> list[CourseIdentity] | None:
        key = make_cache_key(query, institution)
        entry = self._positive.get(key)
        if entry is None:
            return None
        if limit is not None and entry.limit is not None and entry.limit != limit:
            return None
        if self.clock() - entry.timestamp > self.ttl_s:
            del self._positive[key]
            return None
        return list(entry.results)

    def put(
        self,
        query: str,
        results: list[CourseIdentity],
        institution: str | None = None,
        limit: int | None = None,
    ) -> None:
        key = make_cache_key(query, institution)
        self._negative.pop(key, None)
        self._positive[key] = CacheEntry(results=tuple(results), timestamp=self.clock(), limit=limit)

    def is_negative(self, query: str, institution: str | None = None) -> bool:
        key = make_cache_key(query, institution)
        entry = self._negative.get(key)
        if entry is None:
            return False
        if self.clock() - entry.timestamp > self.negative_ttl_s:
            del self._negative[key]
            return False
        return True

    def put_negative(self, query: str, institution: str | None = None) -> None:
        key = make_cache_key(query, institution)
        self._positive.pop(key, None)
        self._negative[key] = NegativeCacheEntry(timestamp=self.clock())

    def prune(self) -> PruneResult:
        now = self.clock()
        expired = [key for key, entry in self._positive.items() if now - entry.timestamp > self.ttl_s]
        for key in expired:
            del self._positive[key]
        expired_negative = [
            key for key, entry in self._negative.items() if now - entry.timestamp > self.negative_ttl_s
        ]
        for key in expired_negative:
            del self._negative[key]
        return PruneResult(positive_removed=len(expired), negative_removed=len(expired_negative))

    def clear(self) -> None:
        self._positive.clear()
        self._negative.clear()
