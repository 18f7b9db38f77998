#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys
from typing import Any

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from coursesearch.services.normalization import DEFAULT_SUFFIX_RULES, audit_normalization
from coursesearch.services.sources import CourseListSource, GradeStatisticsSource


def _load_document(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def raw_codes_from_document(payload: Any, *, grade_statistics: bool = False) -> list[str]:
    # Adapters are only used for parsing here; no fetch happens.
    adapter_cls = GradeStatisticsSource if grade_statistics else CourseListSource
    adapter = adapter_cls(fetch_json=_no_fetch)
    adapter.validate_schema(payload)
    return [record.course_code for record in adapter.to_records(payload)]


async def _no_fetch(document_name: str) -> Any:
    raise RuntimeError(f"audit does not fetch {document_name}")


def build_report(
    payload: Any,
    *,
    grade_statistics: bool = False,
    extra_suffix_patterns: list[str] | None = None,
    sample_size: int = 50,
) -> dict[str, Any]:
    rules = DEFAULT_SUFFIX_RULES.extended(*(extra_suffix_patterns or []))
    audit = audit_normalization(raw_codes_from_document(payload, grade_statistics=grade_statistics), rules=rules)
    report = audit.as_dict()
    report["changed"] = report["changed"][:sample_size]
    return report


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Report course codes rewritten by normalization and raw codes that collapse into one identity."
    )
    parser.add_argument("--document", type=Path, required=True)
    parser.add_argument("--grade-statistics", action="store_true")
    parser.add_argument("--extra-suffix", action="append", default=[], help="Additional strippable token regex")
    parser.add_argument("--sample-size", type=int, default=50)
    args = parser.parse_args()

    try:
        report = build_report(
            _load_document(args.document),
            grade_statistics=args.grade_statistics,
            extra_suffix_patterns=args.extra_suffix,
            sample_size=max(0, args.sample_size),
        )
    except Exception as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print(json.dumps(report, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
