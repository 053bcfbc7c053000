from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Optional

from core.records import LineItem

_ISO_EXTENDED = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")
_ISO_BASIC = re.compile(r"([0-9]{4})([0-9]{2})([0-9]{2})")


@dataclass(frozen=True)
class FilterSpec:
    date_from: str = ""
    date_to: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.date_from and not self.date_to


DEFAULT_FILTERS = FilterSpec()


def _as_bound(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def normalize_filters(raw: Any) -> FilterSpec:
    """Coerce form params, pydantic models or a FilterSpec into a FilterSpec.

    Keys missing from ``raw`` mean "no bound".
    """
    if isinstance(raw, FilterSpec):
        return raw
    if raw is None:
        return DEFAULT_FILTERS
    if hasattr(raw, "model_dump"):
        raw = raw.model_dump()
    return FilterSpec(
        date_from=_as_bound(raw.get("date_from")),
        date_to=_as_bound(raw.get("date_to")),
    )


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse an ISO 8601 calendar date (YYYY-MM-DD or YYYYMMDD); None if it is not one."""
    if not isinstance(value, str):
        return None
    match = _ISO_EXTENDED.fullmatch(value) or _ISO_BASIC.fullmatch(value)
    if match is None:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def compare_date(date_str: Any, ref_date_str: Any, op: str) -> bool:
    """Compare two ISO dates with ``op`` in {"gte", "lte"}; unparsable dates always pass."""
    value = parse_iso_date(date_str)
    ref = parse_iso_date(ref_date_str)
    if value is None or ref is None:
        return True
    if op == "gte":
        return value >= ref
    if op == "lte":
        return value <= ref
    raise ValueError(f"Unsupported comparison: {op}")


def matches_filters(item: LineItem, spec: FilterSpec) -> bool:
    if spec.date_from and not compare_date(item.period_start, spec.date_from, "gte"):
        return False
    if spec.date_to and not compare_date(item.period_end, spec.date_to, "lte"):
        return False
    return True


def apply_filters(items: Iterable[LineItem], spec: Any = None) -> List[LineItem]:
    spec = normalize_filters(spec)
    if spec.is_empty:
        return list(items)
    return [item for item in items if matches_filters(item, spec)]
