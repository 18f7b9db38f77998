from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
import re
from typing import Any

WHITESPACE_RE = re.compile(r"\s+")
SEPARATOR_RUN_RE = re.compile(r"[_.]+")
HYPHEN_RUN_RE = re.compile(r"-{2,}")
ORIGINAL_TRIPLE_ZERO_RE = re.compile(r"[\s-]000$")
TRIPLE_ZERO_RE = re.compile(r"000$")


@dataclass(frozen=True)
class SuffixRules:
    """Token shapes that count as spurious suffixes, plus the length floor for stripping."""

    patterns: tuple[re.Pattern[str], ...]
    min_length: int = 4

    def can_strip(self, token: str) -> bool:
        return any(pattern.fullmatch(token) for pattern in self.patterns)

    def extended(self, *extra: str) -> SuffixRules:
        return SuffixRules(
            patterns=self.patterns + tuple(re.compile(p) for p in extra),
            min_length=self.min_length,
        )


DEFAULT_SUFFIX_RULES = SuffixRules(
    patterns=(
        re.compile(r"\d{1,2}"),  # -1, -12
        re.compile(r"[A-Z]\d"),  # -L1, -G9
        re.compile(r"[A-Z]{1,2}"),  # -G, -MB
    ),
)


@dataclass(frozen=True)
class NormalizationResult:
    original: str
    normalized: str
    steps: tuple[str, ...] = ()
    changed: bool = False


def _casing_and_whitespace(code: str, steps: list[str]) -> str:
    result = code
    trimmed = result.strip()
    if trimmed != result:
        steps.append("trimmed whitespace")
        result = trimmed

    upper = result.upper()
    if upper != result:
        steps.append("uppercased")
        result = upper

    without_spaces = WHITESPACE_RE.sub("", result)
    if without_spaces != result:
        steps.append("removed spaces")
        result = without_spaces
    return result


def _separators(code: str, steps: list[str]) -> str:
    result = code
    replaced = SEPARATOR_RUN_RE.sub("-", result)
    if replaced != result:
        steps.append("normalized separators")
        result = replaced

    collapsed = HYPHEN_RUN_RE.sub("-", result)
    if collapsed != result:
        steps.append("collapsed hyphens")
        result = collapsed
    return result


def _trailing_triple_zero(code: str, original: str, steps: list[str]) -> str:
    # Decided on the raw input: separator handling may already have rewritten the preceding character.
    if not ORIGINAL_TRIPLE_ZERO_RE.search(original):
        return code
    # "EXAM-000" drops the separator along with the zeros.
    result = TRIPLE_ZERO_RE.sub("", code).rstrip("-")
    if result != code:
        steps.append('removed trailing "000"')
    return result


def _suffixes(code: str, rules: SuffixRules, steps: list[str]) -> str:
    result = code
    while len(result) > rules.min_length and "-" in result:
        head, token = result.rsplit("-", 1)
        if not rules.can_strip(token):
            break
        steps.append(f'removed suffix "-{token}"')
        result = head
    return result


def _single_pass(code: str, rules: SuffixRules, steps: list[str]) -> str:
    result = _casing_and_whitespace(code, steps)
    result = _separators(result, steps)
    result = _trailing_triple_zero(result, code, steps)
    return _suffixes(result, rules, steps)


def normalize_course_code(raw: str | None, *, rules: SuffixRules = DEFAULT_SUFFIX_RULES) -> NormalizationResult:
    if not raw:
        return NormalizationResult(original=raw or "", normalized="")

    steps: list[str] = []
    normalized = _single_pass(raw, rules, steps)
    # Inputs such as "AB_000" or "AB-000-1" only expose a "-000" tail after the first pass.
    while True:
        again = _single_pass(normalized, rules, steps)
        if again == normalized:
            break
        normalized = again
    return NormalizationResult(
        original=raw,
        normalized=normalized,
        steps=tuple(steps),
        changed=normalized != raw,
    )


def canonical_code(raw: str | None, *, rules: SuffixRules = DEFAULT_SUFFIX_RULES) -> str:
    return normalize_course_code(raw, rules=rules).normalized


@dataclass
class NormalizationAudit:
    total_codes: int = 0
    changed: list[dict[str, Any]] = field(default_factory=list)
    collisions: dict[str, list[str]] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_codes": self.total_codes,
            "changed_count": len(self.changed),
            "collision_count": len(self.collisions),
            "changed": self.changed,
            "collisions": self.collisions,
        }


def audit_normalization(raw_codes: Iterable[str], *, rules: SuffixRules = DEFAULT_SUFFIX_RULES) -> NormalizationAudit:
    """Report every code the rules rewrite and every canonical code reached from more than one raw code.

    Collisions are the cases to check by hand: two distinct courses merged into one identity.
    """
    audit = NormalizationAudit()
    raw_by_canonical: dict[str, set[str]] = defaultdict(set)
    for raw in raw_codes:
        audit.total_codes += 1
        result = normalize_course_code(raw, rules=rules)
        raw_by_canonical[result.normalized].add(raw)
        if result.changed:
            audit.changed.append(
                {"original": result.original, "normalized": result.normalized, "steps": list(result.steps)}
            )
    audit.changed.sort(key=lambda row: (row["normalized"], row["original"]))
    audit.collisions = {
        canonical: sorted(raws)
        for canonical, raws in sorted(raw_by_canonical.items())
        if len(raws) > 1
    }
    return audit
