from __future__ import annotations

import asyncio
import json
from pathlib import Path

from coursesearch.core.config import Settings
from coursesearch.services.catalog_service import build_catalog_service
from coursesearch.services.sources import CatalogSourceError

from helpers import FakeClock, MemoryKeyValueStore, StubFetcher, build_service, compact, course_list_document


def keys(results) -> list[str]:
    return [c.key for c in results]


def test_search_across_all_institutions():
    service = build_service()
    results = asyncio.run(service.search_all_courses("IN2010-1"))
    assert keys(results) == ["UiO-IN2010", "NTNU-IN2010"]


def test_search_scoped_to_one_institution_loads_only_that_catalog():
    fetcher = StubFetcher()
    service = build_service(fetcher)
    results = asyncio.run(service.search_all_courses("in2010", "UiO"))
    assert keys(results) == ["UiO-IN2010"]
    assert results[0].name == "Algoritmer og datastrukturer"
    assert fetcher.calls == ["uio-all-courses.json"]


def test_repeated_search_is_served_from_cache():
    fetcher = StubFetcher()
    service = build_service(fetcher)
    first = asyncio.run(service.search_all_courses("MAT1100", "UiO"))
    calls_after_first = list(fetcher.calls)

    service.loader._completed.clear()
    second = asyncio.run(service.search_all_courses("mat1100", "UiO"))

    assert second == first
    assert fetcher.calls == calls_after_first


def test_name_query_is_not_answered_by_a_cached_code_query():
    service = build_service()
    assert asyncio.run(service.search_all_courses("matematikk1", "NTNU")) == []
    assert keys(asyncio.run(service.search_all_courses("matematikk 1", "NTNU"))) == ["NTNU-TMA4100"]


def test_cached_results_match_a_fresh_search_for_every_limit():
    service = build_service()
    assert keys(asyncio.run(service.search_all_courses("IN2010", None, 1))) == ["UiO-IN2010"]
    assert keys(asyncio.run(service.search_all_courses("IN2010", None, 20))) == ["UiO-IN2010", "NTNU-IN2010"]

    assert [c.code for c in asyncio.run(service.search_all_courses("INF100", "UiO", 10))] == ["INF100", "INF1000"]
    assert [c.code for c in asyncio.run(service.search_all_courses("INF100", "UiO", 2))] == ["INF100"]
    assert [c.code for c in asyncio.run(service.search_all_courses("INF100", "UiO", 10))] == ["INF100", "INF1000"]


def test_unavailable_top_result_does_not_hide_the_rest():
    service = build_service(store=MemoryKeyValueStore())
    service.mark_course_as_unavailable("IN2010", "UiO")
    assert asyncio.run(service.search_all_courses("IN2010", None, 1)) == []
    assert keys(asyncio.run(service.search_all_courses("IN2010", None, 20))) == ["NTNU-IN2010"]


def test_non_positive_limit_returns_nothing_and_caches_nothing():
    service = build_service()
    assert asyncio.run(service.search_all_courses("IN2010", "UiO", 0)) == []
    assert len(service.search_cache) == 0
    assert keys(asyncio.run(service.search_all_courses("IN2010", "UiO"))) == ["UiO-IN2010"]


def test_empty_result_is_negatively_cached_until_expiry():
    clock = FakeClock()
    fetcher = StubFetcher(errors={"uio-all-courses.json": CatalogSourceError({"error_code": "CATALOG_FETCH_FAILED"})})
    service = build_service(fetcher, clock=clock)

    assert asyncio.run(service.search_all_courses("IN1000", "UiO")) == []
    fetcher.errors.clear()
    assert asyncio.run(service.search_all_courses("IN1000", "UiO")) == []
    assert fetcher.count("uio-all-courses.json") == 1

    clock.advance(5 * 60 + 1)
    assert keys(asyncio.run(service.search_all_courses("IN1000", "UiO"))) == ["UiO-IN1000"]
    assert fetcher.count("uio-all-courses.json") == 2


def test_empty_query_browses_without_caching():
    service = build_service()
    results = asyncio.run(service.search_all_courses("", "UiO", 3))
    assert [c.code for c in results] == ["IN2010", "IN1010", "IN1000"]
    assert len(service.search_cache) == 0


def test_unavailable_courses_are_filtered_from_cached_results():
    service = build_service(store=MemoryKeyValueStore())
    assert keys(asyncio.run(service.search_all_courses("IN100", "UiO"))) == ["UiO-IN1000"]

    service.mark_course_as_unavailable("IN1000", "UiO")
    assert service.is_course_unavailable("in1000", "UiO")
    assert asyncio.run(service.search_all_courses("IN100", "UiO")) == []
    assert "IN1000" not in [c.code for c in asyncio.run(service.get_popular_courses("UiO", 10))]


def test_lookup_by_code_key_and_variant():
    service = build_service()
    assert asyncio.run(service.get_course_by_code("IN2010-1", "UiO")).key == "UiO-IN2010"
    assert asyncio.run(service.get_course_by_code("UiO-IN2010")).key == "UiO-IN2010"
    assert asyncio.run(service.get_course_by_code("NTNU-IN2010")).key == "NTNU-IN2010"
    assert asyncio.run(service.get_course_by_code("IN2010")).key == "UiO-IN2010"
    assert asyncio.run(service.get_course_by_code("BUS400-1", "NHH")).key == "NHH-BUS400"


def test_lookup_falls_back_to_close_prefix_within_an_institution():
    service = build_service()
    assert asyncio.run(service.get_course_by_code("MAT110", "UiO")).code == "MAT1100"
    assert asyncio.run(service.get_course_by_code("IN20", "UiO")).code == "IN2010"
    assert asyncio.run(service.get_course_by_code("IN2", "UiO")) is None
    assert asyncio.run(service.get_course_by_code("", "UiO")) is None


def test_lookup_miss_marks_courses_without_data_unavailable():
    store = MemoryKeyValueStore()
    service = build_service(store=store)

    assert asyncio.run(service.get_course_by_code("JUS5000", "UiO")) is None
    assert service.is_course_unavailable("JUS5000", "UiO")
    assert json.loads(store.values["unavailable-courses"]) == ["UIO::JUS5000"]

    assert asyncio.run(service.get_course_by_code("NOPE1234", "UiO")) is None
    assert not service.is_course_unavailable("NOPE1234", "UiO")


def test_lookup_miss_without_store_marks_nothing():
    service = build_service()
    assert asyncio.run(service.get_course_by_code("JUS5000", "UiO")) is None
    assert not service.is_course_unavailable("JUS5000", "UiO")


def test_popular_courses_prefer_short_codes():
    service = build_service()
    assert [c.code for c in asyncio.run(service.get_popular_courses("UiO", 3))] == ["IN2010", "IN1010", "IN1000"]
    everywhere = asyncio.run(service.get_popular_courses(limit=50))
    assert "EXPHIL-HFSEM" not in [c.code for c in everywhere]
    assert {c.institution for c in everywhere} == {"UiO", "NTNU", "NHH"}


def test_round_robin_interleaves_institutions():
    service = build_service()
    results = asyncio.run(service.get_most_popular_courses_round_robin(5))
    assert keys(results) == ["UiO-IN2010", "NTNU-IN2010", "NHH-MET1", "UiO-IN1010", "NTNU-TDT4100"]

    one_each = asyncio.run(service.get_most_popular_courses_round_robin(10, per_institution=1))
    assert keys(one_each) == ["UiO-IN2010", "NTNU-IN2010", "NHH-MET1"]


def test_round_robin_skips_failed_institutions():
    fetcher = StubFetcher(errors={"ntnu-all-courses.json": OSError("down")})
    service = build_service(fetcher)
    results = asyncio.run(service.get_most_popular_courses_round_robin(4))
    assert keys(results) == ["UiO-IN2010", "NHH-MET1", "UiO-IN1010", "NHH-BUS400"]


def test_prune_and_clear_caches():
    clock = FakeClock()
    service = build_service(clock=clock)
    asyncio.run(service.search_all_courses("IN1000", "UiO"))
    asyncio.run(service.search_all_courses("NOPE1234", "UiO"))
    assert len(service.search_cache) == 2

    clock.advance(5 * 60 + 1)
    removed = service.prune_caches()
    assert (removed.positive_removed, removed.negative_removed) == (0, 1)

    service.clear_caches()
    assert len(service.search_cache) == 0


def test_preload_institution_warms_loader():
    fetcher = StubFetcher()
    service = build_service(fetcher)

    async def run():
        service.preload_institution("NTNU")
        await asyncio.sleep(0.01)

    asyncio.run(run())
    assert service.loader.is_loaded("NTNU")


def test_build_catalog_service_reads_local_documents(data_dir: Path):
    document = course_list_document(compact("IN1000", "Intro"), compact("JUS5000", "Tom", students=0))
    (data_dir / "uio-all-courses.json").write_text(json.dumps(document), encoding="utf-8")
    settings = Settings(catalog_data_dir=str(data_dir), default_search_limit=5)

    service = build_catalog_service(settings)
    assert service.default_limit == 5
    assert keys(asyncio.run(service.search_all_courses("IN1000", "UiO"))) == ["UiO-IN1000"]
    assert asyncio.run(service.get_course_by_code("JUS5000", "UiO")) is None

    # The mark is persisted through the database and seen by a fresh service.
    assert build_catalog_service(settings).is_course_unavailable("JUS5000", "UiO")


def test_build_catalog_service_without_storage():
    settings = Settings(availability_storage_enabled=False)
    service = build_catalog_service(settings, fetch_json=StubFetcher())
    assert service.availability.store is None
    assert len(service.registry) == 36
