from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from coursesearch.services.course_identity import CourseIdentity
from coursesearch.services.normalization import canonical_code

BROWSE_MIN_CODE_LENGTH = 4
BROWSE_MAX_CODE_LENGTH = 8
SHORT_QUERY_LENGTH = 3
DEFAULT_EXACT_SHARE = 0.5


def _browse(candidates: Iterable[CourseIdentity], limit: int) -> list[CourseIdentity]:
    # Shorter codes are taken as the more canonical, more popular courses.
    eligible = [c for c in candidates if BROWSE_MIN_CODE_LENGTH <= len(c.code) <= BROWSE_MAX_CODE_LENGTH]
    eligible.sort(key=lambda c: len(c.code))
    return eligible[:limit]


def _dedupe(ordered: Iterable[CourseIdentity], limit: int) -> list[CourseIdentity]:
    seen: set[str] = set()
    results: list[CourseIdentity] = []
    for course in ordered:
        if course.key in seen:
            continue
        seen.add(course.key)
        results.append(course)
        if len(results) >= limit:
            break
    return results


def rank_courses(
    candidates: Sequence[CourseIdentity],
    query: str,
    limit: int,
    *,
    institution_names: Mapping[str, str] | None = None,
    exact_share: float = DEFAULT_EXACT_SHARE,
) -> list[CourseIdentity]:
    """Rank candidates for a code-or-name query.

    Buckets, first match wins: exact code, code prefix, name prefix, name substring,
    institution prefix, institution substring. A code that merely contains the query
    is never a match. Prefix matches are dropped when exact matches already fill
    ``exact_share`` of ``limit``.
    """
    if limit <= 0:
        return []

    code_query = canonical_code(query)
    if not code_query:
        return _browse(candidates, limit)

    text_query = query.strip().upper()
    names = institution_names or {}
    min_code_length = len(code_query) if len(code_query) <= SHORT_QUERY_LENGTH else SHORT_QUERY_LENGTH + 1

    exact: list[CourseIdentity] = []
    code_prefix: list[CourseIdentity] = []
    name_prefix: list[CourseIdentity] = []
    name_contains: list[CourseIdentity] = []
    institution_prefix: list[CourseIdentity] = []
    institution_contains: list[CourseIdentity] = []

    for course in candidates:
        code = course.code
        if code == code_query:
            exact.append(course)
            continue
        if len(code) < min_code_length:
            continue
        if code.startswith(code_query):
            code_prefix.append(course)
            continue

        name = course.name.upper()
        if name.startswith(text_query):
            name_prefix.append(course)
            continue
        if text_query in name:
            name_contains.append(course)
            continue

        institution_labels = (course.institution.upper(), names.get(course.institution, "").upper())
        if any(label and label.startswith(text_query) for label in institution_labels):
            institution_prefix.append(course)
        elif any(label and text_query in label for label in institution_labels):
            institution_contains.append(course)

    code_prefix.sort(key=lambda c: len(c.code))
    if len(exact) >= limit * exact_share:
        admitted_prefix: list[CourseIdentity] = []
    else:
        admitted_prefix = code_prefix[: limit - len(exact)]

    ordered = [
        *exact,
        *admitted_prefix,
        *name_prefix,
        *name_contains,
        *institution_prefix,
        *institution_contains,
    ]
    return _dedupe(ordered, limit)
