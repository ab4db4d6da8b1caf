# QueryGate - Response Renderer (deterministic, templated; never free-generated)
import json
from typing import Any

from .models import ExecutionResult, RenderedResponse

NO_DATA_MESSAGE = "Data not available."

SAMPLE_SIZE = 3
SAMPLE_PREVIEW = 2
DESCRIPTOR_MAX_CHARS = 80

# (field, label) in priority order; first present field identifies the record
IDENTIFYING_FIELDS: list[tuple[str, str]] = [
    ("po_number", "PO"),
    ("purchase_request_number", "PR"),
    ("pr_number", "PR"),
    ("project_name", ""),
    ("site_name", ""),
    ("name", ""),
    ("item_name", ""),
    ("vendor_name", ""),
    ("company_name", ""),
    ("dmr_no", "DMR"),
    ("debit_note_number", "DN"),
]


def describe_record(doc: dict[str, Any]) -> str:
    """One-line descriptor from the first identifying field present."""
    for field, label in IDENTIFYING_FIELDS:
        value = doc.get(field)
        if value not in (None, ""):
            return f"{label} {value}" if label else str(value)
    if doc.get("id"):
        return str(doc["id"])[-6:]
    return json.dumps(doc, sort_keys=True, default=str)[:DESCRIPTOR_MAX_CHARS]


def summarize(records: list[dict[str, Any]], total: int) -> str:
    noun = "record" if total == 1 else "records"
    summary = f"Found {total} {noun}."
    if len(records) <= SAMPLE_SIZE:
        return summary + " " + "; ".join(describe_record(d) for d in records)
    return summary + " Sample: " + "; ".join(describe_record(d) for d in records[:SAMPLE_PREVIEW]) + "..."


def render(result: ExecutionResult | None, clarification: str | None = None) -> RenderedResponse:
    """
    Clarification wins; any error or empty result yields the same no-data text so
    the caller cannot tell a failure from a legitimately empty answer.
    """
    if clarification is not None:
        return RenderedResponse(text=clarification, data=[], total=0, has_data=False, clarification=True)
    if result is None or result.error or not result.records:
        return RenderedResponse(text=NO_DATA_MESSAGE, data=[], total=0, has_data=False)
    records = list(result.records)
    total = result.total or len(records)
    return RenderedResponse(text=summarize(records, total), data=records, total=total, has_data=True)
