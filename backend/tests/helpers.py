from __future__ import annotations

import asyncio
import copy
from typing import Any

from coursesearch.services.availability import AvailabilityFilter
from coursesearch.services.catalog_service import CatalogService
from coursesearch.services.institutions import ALL_INSTITUTIONS, InstitutionRegistry
from coursesearch.services.loader import InstitutionCatalogLoader
from coursesearch.services.search_cache import SearchResultCache
from coursesearch.services.sources import CatalogSourceError, build_source_adapters


def make_registry(*short_names: str) -> InstitutionRegistry:
    wanted = short_names or ("UiO", "NTNU", "NHH")
    by_short = {inst.short_name: inst for inst in ALL_INSTITUTIONS}
    return InstitutionRegistry([by_short[name] for name in wanted])


def course_list_document(*courses: dict[str, Any], institution_code: str = "1110") -> dict[str, Any]:
    return {"i": institution_code, "courses": list(courses)}


def compact(code: str, name: str | None = None, years: list[int] | None = None, students: int | None = 50) -> dict:
    row: dict[str, Any] = {"c": code, "y": [2024] if years is None else years}
    if name is not None:
        row["n"] = name
    if students is not None:
        row["s"] = students
    return row


def grade_row(code: str, year: int, grade: str, candidates: int, name: str | None = None) -> dict[str, Any]:
    row = {
        "Institusjonskode": "1240",
        "Emnekode": code,
        "Karakter": grade,
        "Årstall": str(year),
        "Antall kandidater totalt": str(candidates),
    }
    if name is not None:
        row["Emnenavn"] = name
    return row


def default_documents() -> dict[str, Any]:
    return {
        "uio-all-courses.json": course_list_document(
            compact("IN2010-1", "Algoritmer og datastrukturer", students=120),
            compact("IN1010", "Objektorientert programmering", students=500),
            compact("IN1000", "Introduksjon til objektorientert programmering", students=700),
            compact("INF100", "Grunnkurs i programmering", students=40),
            compact("INF1000", "Grunnkurs i objektorientert programmering", students=30),
            compact("MAT1100", "Kalkulus", students=400),
            compact("EXPHIL-HFSEM", "Examen philosophicum, seminar", students=900),
            compact("JUS5000", "Ingen studenter", students=0),
        ),
        "ntnu-all-courses.json": {
            "institutionCode": "1150",
            "courses": [
                {"courseCode": "TDT4100", "courseName": "Objektorientert programmering", "years": [2024], "lastYearStudents": 800},
                {"courseCode": "TMA4100", "courseName": "Matematikk 1", "years": [2023, 2024]},
                {"courseCode": "IN2010", "courseName": "Ikke samme emne", "years": [2024], "lastYearStudents": 5},
            ],
        },
        "nhh-grade-statistics.json": [
            grade_row("BUS400-1", 2023, "A", 10, name="Business"),
            grade_row("BUS400-1", 2024, "A", 12, name="Business"),
            grade_row("BUS400-1", 2024, "B", 20, name="Business"),
            grade_row("MET1", 2024, "A", 70),
            grade_row("SAM000", 2024, "A", 0),
        ],
    }


class StubFetcher:
    """Serves catalog documents from memory and records every fetch."""

    def __init__(
        self,
        documents: dict[str, Any] | None = None,
        *,
        delay_s: float = 0.0,
        errors: dict[str, Exception] | None = None,
    ):
        self.documents = default_documents() if documents is None else documents
        self.delay_s = delay_s
        self.errors = dict(errors or {})
        self.calls: list[str] = []

    def count(self, document_name: str) -> int:
        return self.calls.count(document_name)

    async def __call__(self, document_name: str) -> Any:
        self.calls.append(document_name)
        await asyncio.sleep(self.delay_s)
        error = self.errors.get(document_name)
        if error is not None:
            raise error
        if document_name not in self.documents:
            raise CatalogSourceError({"error_code": "CATALOG_FETCH_FAILED", "message": f"missing {document_name}"})
        return copy.deepcopy(self.documents[document_name])


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self.values: dict[str, str] = dict(initial or {})
        self.reads = 0
        self.writes = 0

    def get(self, key: str) -> str | None:
        self.reads += 1
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        self.values[key] = value


class BrokenKeyValueStore:
    def get(self, key: str) -> str | None:
        raise OSError("storage unavailable")

    def set(self, key: str, value: str) -> None:
        raise OSError("quota exceeded")


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_loader(fetcher: StubFetcher, registry: InstitutionRegistry | None = None) -> InstitutionCatalogLoader:
    return InstitutionCatalogLoader(
        registry=registry or make_registry(),
        sources=build_source_adapters(fetcher),
    )


def build_service(
    fetcher: StubFetcher | None = None,
    *,
    store: Any = None,
    clock: FakeClock | None = None,
    registry: InstitutionRegistry | None = None,
) -> CatalogService:
    loader = build_loader(fetcher or StubFetcher(), registry)
    cache = SearchResultCache(clock=clock) if clock is not None else SearchResultCache()
    return CatalogService(loader=loader, search_cache=cache, availability=AvailabilityFilter(store))
