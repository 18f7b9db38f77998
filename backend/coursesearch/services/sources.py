from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections.abc import Awaitable, Callable
import json
from pathlib import Path
from typing import Any

import httpx
from jsonschema import ValidationError, validate

from coursesearch.enums import SourceKind
from coursesearch.services.course_identity import CatalogLoadResult, RawCourseRecord, build_course_identities
from coursesearch.services.institutions import InstitutionInfo

FetchJsonFn = Callable[[str], Awaitable[Any]]

CATALOG_USER_AGENT = "CourseCatalogSearch/1.0"

_NULLABLE_NAME = {"type": ["string", "null"]}
_NULLABLE_COUNT = {"type": ["number", "null"]}
_YEARS = {"type": "array", "items": {"type": "integer"}}

COURSE_LIST_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "i": {"type": "string"},
        "institution": {"type": "string"},
        "institutionCode": {"type": "string"},
        "courses": {
            "type": "array",
            "items": {
                "anyOf": [
                    {
                        "type": "object",
                        "properties": {
                            "c": {"type": "string"},
                            "n": _NULLABLE_NAME,
                            "y": _YEARS,
                            "s": _NULLABLE_COUNT,
                        },
                        "required": ["c"],
                    },
                    {
                        "type": "object",
                        "properties": {
                            "courseCode": {"type": "string"},
                            "code": {"type": "string"},
                            "courseName": _NULLABLE_NAME,
                            "name": _NULLABLE_NAME,
                            "years": _YEARS,
                            "lastYearStudents": _NULLABLE_COUNT,
                            "totalStudents": _NULLABLE_COUNT,
                        },
                        "anyOf": [{"required": ["courseCode"]}, {"required": ["code"]}],
                    },
                ]
            },
        },
    },
    "required": ["courses"],
}

_COUNT_FIELD = {"anyOf": [{"type": "integer", "minimum": 0}, {"type": "string", "pattern": r"^\s*\d*\s*$"}]}

GRADE_STATISTICS_ROW_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "Institusjonskode": {"type": "string"},
        "Emnekode": {"type": "string", "minLength": 1},
        "Emnenavn": _NULLABLE_NAME,
        "Karakter": {"type": "string"},
        "Årstall": {"anyOf": [{"type": "integer"}, {"type": "string", "pattern": r"^\s*\d{4}\s*$"}]},
        "Antall kandidater totalt": _COUNT_FIELD,
    },
    "required": ["Emnekode", "Årstall"],
}


class CatalogSourceError(ValueError):
    pass


def _source_error(error_code: str, message: str, **extra: Any) -> CatalogSourceError:
    detail: dict[str, Any] = {"error_code": error_code, "message": message}
    if extra:
        detail.update(extra)
    return CatalogSourceError(detail)


def http_json_fetcher(
    base_url: str,
    *,
    timeout_s: float = 20.0,
    user_agent: str = CATALOG_USER_AGENT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchJsonFn:
    async def fetch(document_name: str) -> Any:
        url = f"{base_url.rstrip('/')}/{document_name.lstrip('/')}"
        try:
            async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
                response = await client.get(url, headers={"User-Agent": user_agent, "Accept": "application/json"})
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            raise _source_error("CATALOG_FETCH_FAILED", str(exc), url=url) from exc
        except json.JSONDecodeError as exc:
            raise _source_error("CATALOG_FETCH_FAILED", f"Invalid JSON: {exc}", url=url) from exc

    return fetch


def file_json_fetcher(data_dir: str | Path) -> FetchJsonFn:
    root = Path(data_dir)

    def read(path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    async def fetch(document_name: str) -> Any:
        path = root / Path(document_name).name
        try:
            return await asyncio.to_thread(read, path)
        except OSError as exc:
            raise _source_error("CATALOG_FETCH_FAILED", str(exc), path=str(path)) from exc
        except json.JSONDecodeError as exc:
            raise _source_error("CATALOG_FETCH_FAILED", f"Invalid JSON: {exc}", path=str(path)) from exc

    return fetch


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text else 0


class CatalogSourceAdapter(ABC):
    source_kind: SourceKind

    def __init__(self, *, fetch_json: FetchJsonFn):
        self.fetch_json = fetch_json

    @abstractmethod
    def validate_schema(self, payload: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def to_records(self, payload: Any) -> list[RawCourseRecord]:
        raise NotImplementedError

    async def fetch_courses(self, institution: InstitutionInfo) -> CatalogLoadResult:
        payload = await self.fetch_json(institution.document_name)
        self.validate_schema(payload)
        return build_course_identities(self.to_records(payload), institution)


class CourseListSource(CatalogSourceAdapter):
    """Per-institution course list, in either the compact ("c"/"n"/"y"/"s") or the long field naming."""

    source_kind = SourceKind.COURSE_LIST

    def validate_schema(self, payload: Any) -> None:
        try:
            validate(instance=payload, schema=COURSE_LIST_SCHEMA)
        except ValidationError as exc:
            raise _source_error(
                "CATALOG_SCHEMA_VIOLATION",
                exc.message,
                path=[str(part) for part in exc.absolute_path],
            ) from exc

    def to_records(self, payload: Any) -> list[RawCourseRecord]:
        records: list[RawCourseRecord] = []
        for row in payload["courses"]:
            if "c" in row:
                records.append(
                    RawCourseRecord(
                        course_code=row["c"],
                        course_name=row.get("n"),
                        years=tuple(row.get("y") or ()),
                        last_year_students=row.get("s"),
                    )
                )
                continue
            code = row.get("courseCode")
            if code is None:
                code = row["code"]
            name = row.get("courseName")
            if name is None:
                name = row.get("name")
            students = row.get("lastYearStudents")
            if students is None:
                students = row.get("s")
            records.append(
                RawCourseRecord(
                    course_code=code,
                    course_name=name,
                    years=tuple(row.get("years") or ()),
                    last_year_students=students,
                    total_students=row.get("totalStudents"),
                )
            )
        return records


class GradeStatisticsSource(CatalogSourceAdapter):
    """Registry grade statistics: one row per (course, year, grade), folded into one record per course."""

    source_kind = SourceKind.GRADE_STATISTICS

    def _extract_rows(self, payload: Any) -> list[Any]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in ("rows", "data", "results"):
                rows = payload.get(key)
                if isinstance(rows, list):
                    return rows
        raise _source_error("CATALOG_SCHEMA_VIOLATION", "Grade statistics must be a list of rows")

    def validate_schema(self, payload: Any) -> None:
        for idx, row in enumerate(self._extract_rows(payload), start=1):
            try:
                validate(instance=row, schema=GRADE_STATISTICS_ROW_SCHEMA)
            except ValidationError as exc:
                raise _source_error("CATALOG_SCHEMA_VIOLATION", exc.message, index=idx) from exc

    def to_records(self, payload: Any) -> list[RawCourseRecord]:
        years_by_code: dict[str, set[int]] = {}
        students_by_code_year: dict[tuple[str, int], int] = {}
        names: dict[str, str] = {}
        for row in self._extract_rows(payload):
            code = row["Emnekode"]
            year = _to_int(row["Årstall"])
            students = _to_int(row.get("Antall kandidater totalt", 0))
            years_by_code.setdefault(code, set()).add(year)
            students_by_code_year[(code, year)] = students_by_code_year.get((code, year), 0) + students
            if row.get("Emnenavn") and code not in names:
                names[code] = row["Emnenavn"]

        records: list[RawCourseRecord] = []
        for code in sorted(years_by_code):
            years = tuple(sorted(years_by_code[code], reverse=True))
            records.append(
                RawCourseRecord(
                    course_code=code,
                    course_name=names.get(code),
                    years=years,
                    last_year_students=students_by_code_year[(code, years[0])],
                    total_students=sum(students_by_code_year[(code, year)] for year in years),
                )
            )
        return records


SOURCE_ADAPTERS: dict[SourceKind, type[CatalogSourceAdapter]] = {
    SourceKind.COURSE_LIST: CourseListSource,
    SourceKind.GRADE_STATISTICS: GradeStatisticsSource,
}


def build_source_adapters(fetch_json: FetchJsonFn) -> dict[SourceKind, CatalogSourceAdapter]:
    return {kind: adapter_cls(fetch_json=fetch_json) for kind, adapter_cls in SOURCE_ADAPTERS.items()}
