"""Translation of query-string filter payloads into row filters."""

from __future__ import annotations

import json
import logging
from urllib.parse import unquote

from app.services.paged_fetcher import CategoryField, EqualsFilter, FlagField, FlagFilter, JobNameFilter, RowFilter

logger = logging.getLogger(__name__)

ALL_VALUES = "all"
NOT_CONTAINS = "not_contains"


def _flag_value(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    return None


def parse_filter_payload(raw: str | None, *, allow_job_name: bool = True) -> list[RowFilter]:
    """Parse a JSON array of ``{"type", "value", "operator"}`` objects.

    A payload that is not valid JSON, or not a list, means no filters.
    Entries with an unknown type, a blank value or the value ``"all"`` are
    skipped.
    """

    if raw is None or not raw.strip():
        return []
    try:
        entries = json.loads(unquote(raw))
    except ValueError:
        logger.debug("Ignoring malformed filters payload %r", raw)
        return []
    if not isinstance(entries, list):
        return []

    filters: list[RowFilter] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        kind = entry.get("type")
        value = entry.get("value")

        if kind in {field.value for field in FlagField}:
            flag = _flag_value(value)
            if flag is not None:
                filters.append(FlagFilter(FlagField(kind), flag))
            continue

        if not isinstance(value, str) or not value.strip() or value == ALL_VALUES:
            continue
        if kind in {field.value for field in CategoryField}:
            filters.append(EqualsFilter(CategoryField(kind), value))
        elif kind == "job_name" and allow_job_name:
            filters.append(JobNameFilter(value, negate=entry.get("operator") == NOT_CONTAINS))
        else:
            logger.debug("Skipping unsupported filter type %r", kind)
    return filters


def with_staff(filters: list[RowFilter], staff: str | None) -> list[RowFilter]:
    """Add an explicit staff selection unless the payload already names one."""

    if not staff or staff == ALL_VALUES:
        return filters
    if any(isinstance(item, EqualsFilter) and item.field is CategoryField.STAFF for item in filters):
        return filters
    return [EqualsFilter(CategoryField.STAFF, staff), *filters]
