from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from coursesearch.services.institutions import InstitutionInfo
from coursesearch.services.normalization import normalize_course_code


@dataclass(frozen=True)
class CourseIdentity:
    code: str
    name: str
    institution: str
    institution_code: str
    key: str

    @classmethod
    def create(cls, *, code: str, name: str | None, institution: str, institution_code: str) -> CourseIdentity:
        return cls(
            code=code,
            name=name or code,
            institution=institution,
            institution_code=institution_code,
            key=f"{institution}-{code}",
        )


@dataclass(frozen=True)
class RawCourseRecord:
    course_code: str
    course_name: str | None = None
    years: tuple[int, ...] = ()
    last_year_students: float | None = None
    total_students: float | None = None


@dataclass(frozen=True)
class CatalogLoadResult:
    courses: tuple[CourseIdentity, ...] = ()
    excluded_codes: frozenset[str] = frozenset()


def course_has_data(record: RawCourseRecord) -> bool:
    students = record.last_year_students
    if students is not None and students > 0:
        return True
    if record.years:
        # Explicit zero means "known to have no students"; missing means unknown.
        return students != 0
    return False


def build_course_identities(records: Iterable[RawCourseRecord], institution: InstitutionInfo) -> CatalogLoadResult:
    courses: list[CourseIdentity] = []
    excluded: set[str] = set()
    seen_keys: set[str] = set()
    for record in records:
        code = normalize_course_code(record.course_code, rules=institution.suffix_rules).normalized
        if not code:
            continue
        if not course_has_data(record):
            excluded.add(code)
            continue
        course = CourseIdentity.create(
            code=code,
            name=record.course_name,
            institution=institution.short_name,
            institution_code=institution.code,
        )
        if course.key in seen_keys:
            continue
        seen_keys.add(course.key)
        courses.append(course)
    # A code kept through another raw variant is not excluded.
    excluded -= {course.code for course in courses}
    return CatalogLoadResult(courses=tuple(courses), excluded_codes=frozenset(excluded))
