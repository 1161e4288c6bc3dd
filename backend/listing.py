"""
Search, filter and sort helpers shared by every listing endpoint.

Listings hold the whole collection in memory; these helpers derive the
visible view from it without mutating the input.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from document_store import get_path
from reporting import parse_timestamp

ASC = "asc"
DESC = "desc"


def search_rows(rows: Iterable[Dict[str, Any]], term: Optional[str], fields: Iterable[str]) -> List[Dict[str, Any]]:
    """Case-insensitive substring match of `term` against any of `fields`"""
    rows = list(rows)
    needle = (term or "").strip().lower()
    if not needle:
        return rows

    fields = list(fields)
    matched = []
    for row in rows:
        for field in fields:
            value = get_path(row, field)
            if value is not None and needle in str(value).lower():
                matched.append(row)
                break
    return matched


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.lower() == expected.lower()
    return actual == expected


def filter_rows(rows: Iterable[Dict[str, Any]], equalities: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Keep rows whose fields equal every non-None expected value"""
    active = {field: value for field, value in equalities.items() if value is not None}
    return [
        row for row in rows
        if all(_equals(get_path(row, field), value) for field, value in active.items())
    ]


def _is_date_key(key: str) -> bool:
    return key.split(".")[-1].endswith(("At", "Date"))


def _sort_value(value: Any, as_date: bool):
    if as_date:
        moment = parse_timestamp(value)
        if moment is not None:
            return (0, moment.timestamp())
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    return (2, str(value).lower())


def sort_rows(rows: Iterable[Dict[str, Any]], key: Optional[str], direction: str = ASC) -> List[Dict[str, Any]]:
    """
    Order rows by a single (dotted) key. Strings compare case-insensitively,
    `*At` / `*Date` keys compare as timestamps. Rows missing the key always
    come last.
    """
    rows = list(rows)
    if not key:
        return rows

    as_date = _is_date_key(key)
    present = [row for row in rows if get_path(row, key) not in (None, "")]
    missing = [row for row in rows if get_path(row, key) in (None, "")]

    present.sort(
        key=lambda row: _sort_value(get_path(row, key), as_date),
        reverse=(direction == DESC)
    )
    return present + missing


@dataclass(frozen=True)
class SortState:
    """Column-header sort state: a new column sorts ascending, re-clicking flips it"""
    key: Optional[str] = None
    direction: str = ASC

    def toggle(self, key: str) -> "SortState":
        if key == self.key:
            return SortState(key, DESC if self.direction == ASC else ASC)
        return SortState(key, ASC)

    def apply(self, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return sort_rows(rows, self.key, self.direction)


def build_listing(
    rows: Iterable[Dict[str, Any]],
    search: Optional[str] = None,
    search_fields: Iterable[str] = (),
    filters: Optional[Dict[str, Any]] = None,
    sort: Optional[str] = None,
    direction: str = ASC
) -> Dict[str, Any]:
    """Search, then filter, then sort. `count` reflects the filtered length."""
    view = search_rows(rows, search, search_fields)
    view = filter_rows(view, filters or {})
    view = sort_rows(view, sort, direction)
    return {"count": len(view), "items": view}
