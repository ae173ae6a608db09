# backoffice/services/audit.py
"""
Audit recorder: diff an invoice against proposed changes and build the
audit-log rows describing them.

Nothing here touches the database. Callers insert the returned entries in
the same transaction as the invoice write they describe.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import insert

from backoffice.db.schema import invoice_audit_logs
from backoffice.errors import ValidationError
from backoffice.services.normalize import (
    format_amount,
    format_instant,
    normalize_text,
    parse_amount,
    parse_due_date,
    parse_status,
    utcnow,
)

CREATION = "creation"

SOURCE_MANUAL = "Invoice created"
SOURCE_EXTERNAL_API = "Invoice created via external API"


class FieldRule:
    """How one tracked field is normalized for comparison and rendered for the log."""

    def __init__(
        self,
        name: str,
        normalize: Callable[[Any], Any],
        render: Callable[[Any], str] = str,
        none_means_unchanged: bool = False,
    ):
        self.name = name
        self.normalize = normalize
        self.render = render
        self.none_means_unchanged = none_means_unchanged


# Order is the order entries are emitted in.
TRACKED_FIELDS = (
    FieldRule("amount", parse_amount, format_amount, none_means_unchanged=True),
    FieldRule("status", parse_status, none_means_unchanged=True),
    FieldRule("due_date", parse_due_date, format_instant, none_means_unchanged=True),
    FieldRule("description", normalize_text),
    FieldRule("external_id", normalize_text),
)

# Wire names used in field_changed, matching the API's camelCase fields.
FIELD_LABELS = {
    "amount": "amount",
    "status": "status",
    "due_date": "dueDate",
    "description": "description",
    "external_id": "externalId",
}


def make_entry(
    invoice_id: int,
    field_changed: str,
    previous_value: str,
    new_value: str,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    return {
        "invoice_id": invoice_id,
        "field_changed": field_changed,
        "previous_value": previous_value,
        "new_value": new_value,
        "timestamp": timestamp or utcnow(),
    }


def diff_and_record(
    existing: Optional[Mapping[str, Any]],
    incoming: Mapping[str, Any],
    invoice_id: Optional[int] = None,
    source: str = SOURCE_MANUAL,
    timestamp: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Compare incoming field values with an existing invoice row.

    `incoming` only holds the fields the caller wants to change; a missing key
    means "leave as is". For amount, status and due_date a None value means the
    same. For description and external_id, None and "" are both the empty string.

    If `existing` is None the invoice is new and a single "creation" entry is
    returned instead of per-field diffs.

    Due dates in `incoming` must already be canonical (naive UTC) when they carry
    no timezone; see normalize.parse_due_date.
    """
    if invoice_id is None and existing is not None:
        invoice_id = existing.get("id")
    if invoice_id is None:
        raise ValidationError("invoice id is required to record audit entries")

    timestamp = timestamp or utcnow()

    if existing is None:
        return [make_entry(invoice_id, CREATION, "", source, timestamp)]

    entries = []
    for rule in TRACKED_FIELDS:
        if rule.name not in incoming:
            continue
        new = incoming[rule.name]
        if new is None and rule.none_means_unchanged:
            continue

        old_value = rule.normalize(existing.get(rule.name))
        new_value = rule.normalize(new)
        if old_value == new_value:
            continue

        entries.append(
            make_entry(
                invoice_id,
                FIELD_LABELS[rule.name],
                rule.render(old_value),
                rule.render(new_value),
                timestamp,
            )
        )

    return entries


def write_entries(conn, entries: List[Dict[str, Any]]) -> int:
    """Insert audit rows on an open connection. Returns how many were written."""
    if not entries:
        return 0
    conn.execute(insert(invoice_audit_logs), entries)
    return len(entries)
