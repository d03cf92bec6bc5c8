from __future__ import annotations

import json
from urllib.parse import quote

from app.services.paged_fetcher import CategoryField, EqualsFilter, FlagField, FlagFilter, JobNameFilter
from app.services.report_filters import parse_filter_payload, with_staff


def _payload(*entries: dict) -> str:
    return json.dumps(list(entries))


def test_parse_filter_payload_translates_each_type() -> None:
    raw = _payload(
        {"type": "client_group", "value": "Smith Family"},
        {"type": "account_manager", "value": "Pat"},
        {"type": "billed", "value": "false"},
        {"type": "billable", "value": True},
        {"type": "job_name", "value": "tax", "operator": "contains"},
        {"type": "job_name", "value": "audit", "operator": "not_contains"},
    )

    assert parse_filter_payload(raw) == [
        EqualsFilter(CategoryField.CLIENT_GROUP, "Smith Family"),
        EqualsFilter(CategoryField.ACCOUNT_MANAGER, "Pat"),
        FlagFilter(FlagField.BILLED, False),
        FlagFilter(FlagField.BILLABLE, True),
        JobNameFilter("tax"),
        JobNameFilter("audit", negate=True),
    ]


def test_parse_filter_payload_accepts_url_encoded_json() -> None:
    raw = quote(_payload({"type": "job_manager", "value": "Lee & Co"}))

    assert parse_filter_payload(raw) == [EqualsFilter(CategoryField.JOB_MANAGER, "Lee & Co")]


def test_parse_filter_payload_skips_blank_all_and_unknown_entries() -> None:
    raw = _payload(
        {"type": "staff", "value": "all"},
        {"type": "client_group", "value": "  "},
        {"type": "colour", "value": "blue"},
        {"type": "billable", "value": "maybe"},
        "not-an-object",
    )

    assert parse_filter_payload(raw) == []


def test_parse_filter_payload_tolerates_malformed_input() -> None:
    assert parse_filter_payload(None) == []
    assert parse_filter_payload("") == []
    assert parse_filter_payload("{not json") == []
    assert parse_filter_payload('{"type": "staff", "value": "Jane"}') == []


def test_job_name_filters_can_be_disallowed() -> None:
    raw = _payload({"type": "job_name", "value": "tax"}, {"type": "staff", "value": "Jane"})

    assert parse_filter_payload(raw, allow_job_name=False) == [EqualsFilter(CategoryField.STAFF, "Jane")]


def test_with_staff_prepends_selection_once() -> None:
    billable_only = [FlagFilter(FlagField.BILLABLE, True)]
    payload_staff = [EqualsFilter(CategoryField.STAFF, "Omar")]

    assert with_staff(billable_only, "Jane") == [EqualsFilter(CategoryField.STAFF, "Jane"), *billable_only]
    assert with_staff(billable_only, "all") == billable_only
    assert with_staff(billable_only, None) == billable_only
    assert with_staff(payload_staff, "Jane") == payload_staff
