from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from app.db.models.template_column import TemplateColumn

RECORD_ID_HEADER = "__record_id"
SIMILARITY_THRESHOLD = 0.7
NO_COLUMNS_ERROR = "No columns configured for this template. Add columns before importing data."


def normalize_header(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip().casefold()
    return s or None


def has_record_id_column(headers: Sequence[Any]) -> bool:
    return bool(headers) and normalize_header(headers[0]) == RECORD_ID_HEADER


@dataclass
class HeaderValidation:
    valid: bool = False
    missing_headers: list[str] = field(default_factory=list)  # template casing
    extra_headers: list[str] = field(default_factory=list)  # normalized
    # absolute file column index -> template column
    mapping: dict[int, TemplateColumn] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _ordered_unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for it in items:
        if it not in seen:
            seen.add(it)
            out.append(it)
    return out


def validate_headers(
    headers: Sequence[Any],
    columns: Sequence[TemplateColumn],
    has_id_column: bool = False,
) -> HeaderValidation:
    """Compare a file's header row with the template columns.

    ``headers`` is the raw first row. When ``has_id_column`` is set, index 0
    is the hidden record id column and takes no part in matching; mapping
    keys stay absolute file indexes so row cells can be read directly.
    """
    res = HeaderValidation()
    if not columns:
        res.errors.append(NO_COLUMNS_ERROR)
        return res

    start = 1 if has_id_column else 0
    file_headers: list[tuple[int, str]] = []
    for idx in range(start, len(headers)):
        h = normalize_header(headers[idx])
        if h is not None:
            file_headers.append((idx, h))

    by_name: dict[str, TemplateColumn] = {}
    for col in columns:
        by_name.setdefault(col.name.strip().casefold(), col)

    file_names = {h for _, h in file_headers}
    res.missing_headers = [c.name for c in columns if c.name.strip().casefold() not in file_names]
    res.extra_headers = _ordered_unique(h for _, h in file_headers if h not in by_name)

    for idx, h in file_headers:
        col = by_name.get(h)
        if col is not None:
            res.mapping[idx] = col

    if res.missing_headers:
        res.errors.append(f"Missing required headers: {', '.join(res.missing_headers)}")
    if res.extra_headers:
        res.warnings.append(f"Extra headers found: {', '.join(res.extra_headers)}")

    positions = [res.mapping[i].position for i in sorted(res.mapping)]
    if any(b < a for a, b in zip(positions, positions[1:])):
        res.warnings.append("Column order differs from the template; values are matched by header name.")

    res.valid = not res.missing_headers
    return res


def levenshtein(a: str, b: str) -> int:
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost))
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    max_len = max(len(a), len(b))
    return 1.0 - levenshtein(a, b) / max_len


def suggest_mappings(
    headers: Sequence[Any],
    columns: Sequence[TemplateColumn],
    has_id_column: bool = False,
) -> dict[str, str]:
    """Propose template headers for file headers that did not match exactly.

    Returns normalized file header -> template header (original casing).
    Only candidates strictly above ``SIMILARITY_THRESHOLD`` qualify; on a
    tie the first template column wins.
    """
    schema = [c.name for c in columns]
    schema_norm = {s.strip().casefold() for s in schema}
    start = 1 if has_id_column else 0

    suggestions: dict[str, str] = {}
    for raw in headers[start:]:
        h = normalize_header(raw)
        if h is None or h in schema_norm or h in suggestions:
            continue
        best, best_score = None, 0.0
        for name in schema:
            score = similarity(h, name.strip().casefold())
            if score > best_score and score > SIMILARITY_THRESHOLD:
                best, best_score = name, score
        if best is not None:
            suggestions[h] = best
    return suggestions
