from __future__ import annotations

import asyncio
import logging

from coursesearch.enums import SourceKind
from coursesearch.services.course_identity import CatalogLoadResult, CourseIdentity
from coursesearch.services.institutions import InstitutionRegistry
from coursesearch.services.singleflight import SingleFlight
from coursesearch.services.sources import CatalogSourceAdapter

log = logging.getLogger(__name__)


class InstitutionCatalogLoader:
    """Loads each institution's catalog at most once per process and at most once concurrently.

    Completed loads are kept for the lifetime of the loader. Failed loads are not cached,
    so the next call retries.
    """

    def __init__(
        self,
        *,
        registry: InstitutionRegistry,
        sources: dict[SourceKind, CatalogSourceAdapter],
    ):
        self.registry = registry
        self.sources = sources
        self._completed: dict[str, CatalogLoadResult] = {}
        self._flight: SingleFlight[tuple[CourseIdentity, ...]] = SingleFlight()
        self._background: set[asyncio.Task[tuple[CourseIdentity, ...]]] = set()

    def is_loaded(self, institution: str) -> bool:
        return institution in self._completed

    def is_loading(self, institution: str) -> bool:
        return institution in self._flight

    def cached_courses(self, institution: str) -> tuple[CourseIdentity, ...] | None:
        loaded = self._completed.get(institution)
        return loaded.courses if loaded is not None else None

    def excluded_codes(self, institution: str) -> set[str]:
        loaded = self._completed.get(institution)
        return set(loaded.excluded_codes) if loaded is not None else set()

    async def load_institution_courses(self, institution: str) -> tuple[CourseIdentity, ...]:
        loaded = self._completed.get(institution)
        if loaded is not None:
            return loaded.courses
        return await self._flight.do(institution, lambda: self._load(institution))

    async def _load(self, institution: str) -> tuple[CourseIdentity, ...]:
        info = self.registry.get(institution)
        if info is None:
            log.warning("No catalog source registered for institution %r", institution)
            return ()
        source = self.sources.get(info.source_kind)
        if source is None:
            log.warning("No %s adapter configured for %s", info.source_kind.value, institution)
            return ()

        try:
            result = await source.fetch_courses(info)
        except Exception as exc:
            log.warning("Failed to load courses for %s: %s", institution, exc)
            return ()

        self._completed[institution] = result
        log.info(
            "Loaded %d courses for %s (%d excluded without data)",
            len(result.courses),
            institution,
            len(result.excluded_codes),
        )
        return result.courses

    def preload(self, institution: str) -> None:
        """Warm the cache in the background; the result and any error are discarded."""
        if self.is_loaded(institution) or self.is_loading(institution):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("Skipping preload of %s outside an event loop", institution)
            return
        task = loop.create_task(self.load_institution_courses(institution))
        self._background.add(task)
        task.add_done_callback(self._preload_done)

    def _preload_done(self, task: asyncio.Task[tuple[CourseIdentity, ...]]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.debug("Preload failed: %s", task.exception())


class UnifiedCatalog:
    def __init__(self, loader: InstitutionCatalogLoader):
        self.loader = loader

    async def load_all_courses(self) -> list[CourseIdentity]:
        institutions = self.loader.registry.short_names
        results = await asyncio.gather(
            *(self.loader.load_institution_courses(inst) for inst in institutions),
            return_exceptions=True,
        )
        courses: list[CourseIdentity] = []
        for institution, result in zip(institutions, results):
            if isinstance(result, BaseException):
                log.warning("Catalog load for %s raised: %s", institution, result)
                continue
            courses.extend(result)
        return courses
