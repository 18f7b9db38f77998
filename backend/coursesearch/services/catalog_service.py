from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache
import logging

from coursesearch.core.config import Settings, get_settings
from coursesearch.services.availability import AvailabilityFilter
from coursesearch.services.course_identity import CourseIdentity
from coursesearch.services.institutions import InstitutionRegistry
from coursesearch.services.loader import InstitutionCatalogLoader, UnifiedCatalog
from coursesearch.services.normalization import canonical_code
from coursesearch.services.ranking import BROWSE_MAX_CODE_LENGTH, DEFAULT_EXACT_SHARE, rank_courses
from coursesearch.services.search_cache import PruneResult, SearchResultCache
from coursesearch.services.sources import FetchJsonFn, build_source_adapters, file_json_fetcher, http_json_fetcher
from coursesearch.services.storage import KeyValueStore, SqlKeyValueStore

log = logging.getLogger(__name__)

FUZZY_MIN_CODE_LENGTH = 4
FUZZY_MAX_EXTRA_CHARS = 2
LOOKUP_LIMIT = 20


class CatalogService:
    """Process-wide owner of the catalog caches, the search caches and the availability set."""

    def __init__(
        self,
        *,
        loader: InstitutionCatalogLoader,
        search_cache: SearchResultCache,
        availability: AvailabilityFilter,
        exact_share: float = DEFAULT_EXACT_SHARE,
        default_limit: int = 20,
    ):
        self.loader = loader
        self.catalog = UnifiedCatalog(loader)
        self.search_cache = search_cache
        self.availability = availability
        self.exact_share = exact_share
        self.default_limit = default_limit
        self.institution_names = {inst.short_name: inst.name for inst in loader.registry}

    @property
    def registry(self) -> InstitutionRegistry:
        return self.loader.registry

    async def _candidates(self, institution: str | None) -> Sequence[CourseIdentity]:
        if institution:
            return await self.loader.load_institution_courses(institution)
        return await self.catalog.load_all_courses()

    def _available(self, courses: Sequence[CourseIdentity]) -> list[CourseIdentity]:
        return [c for c in courses if not self.availability.is_unavailable(c.code, c.institution)]

    def _rank(self, candidates: Sequence[CourseIdentity], query: str, limit: int) -> list[CourseIdentity]:
        return rank_courses(
            candidates,
            query,
            limit,
            institution_names=self.institution_names,
            exact_share=self.exact_share,
        )

    async def search_all_courses(
        self,
        query: str,
        institution: str | None = None,
        limit: int | None = None,
    ) -> list[CourseIdentity]:
        limit = self.default_limit if limit is None else limit
        query = (query or "").strip()
        if limit <= 0:
            return []

        if not query:
            candidates = await self._candidates(institution)
            return self._available(self._rank(candidates, "", limit))

        if self.search_cache.is_negative(query, institution):
            log.debug("Negative cache hit for %r (%s)", query, institution or "all")
            return []

        cached = self.search_cache.get(query, institution, limit)
        if cached is not None:
            log.debug("Search cache hit for %r (%s)", query, institution or "all")
            return self._available(cached)[:limit]

        candidates = await self._candidates(institution)
        ranked = self._rank(candidates, query, limit)
        # Cached before the availability filter, which is applied again on every read.
        if ranked:
            self.search_cache.put(query, ranked, institution, limit)
        else:
            self.search_cache.put_negative(query, institution)
        return self._available(ranked)

    async def get_course_by_code(self, code: str, institution: str | None = None) -> CourseIdentity | None:
        raw = (code or "").strip()
        match = await self._lookup(raw, institution)
        if match is None and institution is None and "-" in raw:
            # "UiO-IN2010" style unique keys carry their own institution.
            prefix, rest = raw.split("-", 1)
            if self.registry.get(prefix) is not None:
                match = await self._lookup(rest, prefix)
        return match

    async def _lookup(self, raw: str, institution: str | None) -> CourseIdentity | None:
        normalized = canonical_code(raw)
        if not normalized:
            return None

        # Served from the search caches; unavailable courses never come back from search.
        candidates = await self.search_all_courses(raw, institution, max(self.default_limit, LOOKUP_LIMIT))
        keys = {raw, f"{institution}-{normalized}"} if institution else {raw}
        match = next((c for c in candidates if c.key in keys), None)
        if match is None:
            match = next((c for c in candidates if c.code == normalized), None)
        if match is None and institution and len(normalized) >= FUZZY_MIN_CODE_LENGTH:
            match = self._find_by_prefix(candidates, normalized)

        if match is None and institution and normalized in self.loader.excluded_codes(institution):
            # The catalog lists this code with no students behind it.
            self.availability.mark_unavailable(normalized, institution)
        return match

    def _find_by_prefix(self, candidates: list[CourseIdentity], normalized: str) -> CourseIdentity | None:
        matches = [
            c
            for c in candidates
            if c.code.startswith(normalized) and len(c.code) - len(normalized) <= FUZZY_MAX_EXTRA_CHARS
        ]
        if not matches:
            return None
        return min(matches, key=lambda c: len(c.code))

    async def get_popular_courses(self, institution: str | None = None, limit: int = 10) -> list[CourseIdentity]:
        courses = self._available(await self._candidates(institution))
        eligible = [c for c in courses if len(c.code) <= BROWSE_MAX_CODE_LENGTH]
        eligible.sort(key=lambda c: len(c.code))
        return eligible[:limit]

    async def get_most_popular_courses_round_robin(
        self,
        limit: int = 10,
        per_institution: int | None = None,
    ) -> list[CourseIdentity]:
        await self.catalog.load_all_courses()
        per_institution = per_institution or limit
        queues: list[list[CourseIdentity]] = []
        for institution in self.registry.short_names:
            courses = self.loader.cached_courses(institution) or ()
            eligible = [c for c in self._available(courses) if len(c.code) <= BROWSE_MAX_CODE_LENGTH]
            eligible.sort(key=lambda c: len(c.code))
            if eligible:
                queues.append(eligible[:per_institution])

        results: list[CourseIdentity] = []
        depth = 0
        while len(results) < limit and any(depth < len(queue) for queue in queues):
            for queue in queues:
                if depth < len(queue):
                    results.append(queue[depth])
                    if len(results) >= limit:
                        break
            depth += 1
        return results

    def is_course_unavailable(self, code: str, institution: str) -> bool:
        return self.availability.is_unavailable(code, institution)

    def mark_course_as_unavailable(self, code: str, institution: str) -> None:
        self.availability.mark_unavailable(code, institution)

    def preload_institution(self, institution: str) -> None:
        self.loader.preload(institution)

    def prune_caches(self) -> PruneResult:
        return self.search_cache.prune()

    def clear_caches(self) -> None:
        self.search_cache.clear()


def build_fetcher(settings: Settings) -> FetchJsonFn:
    if settings.catalog_base_url:
        return http_json_fetcher(settings.catalog_base_url, timeout_s=settings.catalog_timeout_s)
    return file_json_fetcher(settings.catalog_data_dir)


def build_catalog_service(
    settings: Settings,
    *,
    fetch_json: FetchJsonFn | None = None,
    registry: InstitutionRegistry | None = None,
    store: KeyValueStore | None = None,
) -> CatalogService:
    loader = InstitutionCatalogLoader(
        registry=registry or InstitutionRegistry(),
        sources=build_source_adapters(fetch_json or build_fetcher(settings)),
    )
    if store is None and settings.availability_storage_enabled:
        store = SqlKeyValueStore()
    return CatalogService(
        loader=loader,
        search_cache=SearchResultCache(
            ttl_s=settings.search_cache_ttl_s,
            negative_ttl_s=settings.negative_cache_ttl_s,
        ),
        availability=AvailabilityFilter(store),
        exact_share=settings.search_exact_share,
        default_limit=settings.default_search_limit,
    )


@lru_cache(maxsize=1)
def get_catalog_service() -> CatalogService:
    return build_catalog_service(get_settings())
