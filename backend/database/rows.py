"""
Helpers for turning database rows into JSON-ready dictionaries.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional


def row_to_dict(row: Optional[Any]) -> Optional[Dict[str, Any]]:
    """
    Convert a DictCursor row to a plain dict with ISO-8601 timestamps.

    Returns None when the row is None so callers can chain on fetchone().
    """
    if row is None:
        return None
    data = dict(row)
    for key, value in data.items():
        if isinstance(value, (datetime, date)):
            data[key] = value.isoformat()
    return data


def rows_to_dicts(rows: Iterable[Any]) -> List[Dict[str, Any]]:
    return [row_to_dict(row) for row in rows]


def camel_case(name: str) -> str:
    first, *rest = name.split("_")
    return first + "".join(part.title() for part in rest)


def with_camel_aliases(data: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    """
    Copy each listed snake_case key to its camelCase name as well, for the
    browser scripts that read camelCase.
    """
    for key in keys:
        if key in data:
            data[camel_case(key)] = data[key]
    return data
