"""Column-name normalisation for legacy inventory exports."""

from __future__ import annotations

import re
from collections.abc import Iterable

_ALIASES: dict[str, tuple[str, ...]] = {
    "customer_id": ("custid", "customerid"),
    "customer": ("custname", "customername"),
    "customer_po": ("customerpo", "custpo"),
    "work_order": ("wkorder", "workorder", "wo"),
    "r_number": ("rnumber", "rnum"),
    "date_in": ("datein",),
    "date_out": ("dateout",),
    "date_received": ("datereceived", "daterecvd"),
    "well_in": ("wellin",),
    "well_out": ("wellout",),
    "lease_in": ("leasein",),
    "lease_out": ("leaseout",),
    "billing_address": ("billaddr",),
    "billing_city": ("billcity",),
    "billing_state": ("billstate",),
    "billing_zipcode": ("billzip",),
    "bill_to_id": ("billtoid",),
    "phone": ("phoneno", "phonenum"),
    "email": ("emailaddr",),
    "w_string": ("wstring",),
    "size_id": ("sizeid",),
    "connection": ("conntype", "conn"),
    "location": ("locationcode", "loc"),
    "ordered_by": ("orderedby",),
    "entered_by": ("enteredby",),
    "when_entered": ("whenentered", "when1"),
    "when_updated": ("whenupdated", "when2"),
    "updated_by": ("updatedby",),
    "inspected_by": ("inspectedby",),
    "inspected_date": ("inspecteddate", "inspected"),
    "threading_date": ("threadingdate", "threading"),
    "straighten_required": ("straightenreq", "straighten"),
    "excess_material": ("excessmat", "excess"),
    "in_production": ("inproduction",),
    "deleted": ("isdeleted",),
    "created_at": ("createdat",),
    "complete": ("complete",),
}

COLUMN_MAPPING: dict[str, str] = {
    alias: target for target, aliases in _ALIASES.items() for alias in aliases
}

_QUOTES = str.maketrans("", "", "\"'")
_NON_IDENTIFIER = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUN = re.compile(r"_+")


def normalize_column_name(col_name: str) -> str:
    """Turn a raw column header into a lower-case, database-friendly name."""
    if not col_name:
        return col_name

    cleaned = col_name.strip().lower().translate(_QUOTES)
    cleaned = _UNDERSCORE_RUN.sub("_", _NON_IDENTIFIER.sub("_", cleaned)).strip("_")

    if cleaned in COLUMN_MAPPING:
        return COLUMN_MAPPING[cleaned]
    if cleaned.endswith("id") and not cleaned.endswith("_id"):
        return f"{cleaned[:-2]}_id"
    return cleaned


def normalize_headers(headers: Iterable[str]) -> tuple[list[str], int]:
    """Normalise a header row.

    Blank headers become ``column_<n>`` (1-based). Returns the new headers and
    the number of non-blank headers whose name changed beyond lower-casing.
    """
    normalized: list[str] = []
    mapped = 0
    for position, header in enumerate(headers, start=1):
        if not header.strip():
            normalized.append(f"column_{position}")
            continue
        name = normalize_column_name(header)
        normalized.append(name)
        if header.lower() != name:
            mapped += 1
    return normalized, mapped