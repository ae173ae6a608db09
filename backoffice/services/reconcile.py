# backoffice/services/reconcile.py
"""
Match-or-create for invoices pushed by an outside system.

The outside system owns the invoice identified by (customer external id,
invoice external id): whatever it sends overwrites amount and due date,
and description when present. Replaying the same payload is a no-op.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine

from backoffice.db.engine import transaction
from backoffice.db.schema import customers
from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.services.audit import SOURCE_EXTERNAL_API
from backoffice.services.invoices import apply_changes, fetch_invoice, find_by_external_id, insert_invoice
from backoffice.services.normalize import normalize_external_id, parse_amount, parse_due_date, utcnow

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"

# description default: the caller did not send one, so the stored value stays
UNSET = object()


@dataclass
class ReconcileResult:
    invoice: Dict[str, Any]
    action: str
    changed_fields: List[str] = field(default_factory=list)


def find_customer_by_external_id(conn, external_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        select(customers).where(customers.c.external_id == external_id)
    ).mappings().first()
    return dict(row) if row is not None else None


def reconcile(
    conn,
    customer_external_id: str,
    invoice_external_id: str,
    amount: Any,
    due_date: Any,
    description: Any = UNSET,
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """
    Create or overwrite the invoice identified by the two external ids.

    Must run inside a transaction: the invoice write and its audit entries
    commit together. Raises NotFoundError if no customer carries
    customer_external_id; customers are never created here.

    Leaving description out keeps the stored description; None or "" clears it.
    """
    customer_external_id = normalize_external_id(customer_external_id)
    invoice_external_id = normalize_external_id(invoice_external_id)
    if customer_external_id is None or invoice_external_id is None:
        raise ValidationError("External customer ID and external invoice ID are required")

    # Canonical values from here on are naive UTC, so downstream parsing uses UTC.
    amount = parse_amount(amount)
    due_date = parse_due_date(due_date, tz)
    tz = timezone.utc

    customer = find_customer_by_external_id(conn, customer_external_id)
    if customer is None:
        raise NotFoundError("Customer with this external ID not found")

    now = now or utcnow()
    existing = find_by_external_id(conn, customer["id"], invoice_external_id)

    if existing is None:
        invoice = insert_invoice(
            conn,
            customer["id"],
            amount,
            due_date,
            external_id=invoice_external_id,
            description=None if description is UNSET else description,
            source=SOURCE_EXTERNAL_API,
            tz=tz,
            now=now,
        )
        logger.info(
            "Reconcile %s/%s: created invoice %s",
            customer_external_id, invoice_external_id, invoice["id"],
        )
        return ReconcileResult(invoice=invoice, action=CREATED)

    changes = {"amount": amount, "due_date": due_date}
    if description is not UNSET:
        changes["description"] = description
    entries = apply_changes(
        conn,
        existing,
        changes,
        tz=tz,
        now=now,
    )
    changed = [e["field_changed"] for e in entries]
    logger.info(
        "Reconcile %s/%s: updated invoice %s (changed: %s)",
        customer_external_id, invoice_external_id, existing["id"], ", ".join(changed) or "none",
    )
    return ReconcileResult(
        invoice=fetch_invoice(conn, existing["id"]) if entries else existing,
        action=UPDATED,
        changed_fields=changed,
    )


def reconcile_invoice(engine: Engine, *args, attempts: int = 2, **kwargs) -> ReconcileResult:
    """
    Run reconcile() in its own transaction.

    Two concurrent calls for a new external id can both miss the lookup; the
    store's (customer_id, external_id) unique constraint rejects the second
    insert, and the retry then finds the row and takes the update branch.
    """
    for attempt in range(1, attempts + 1):
        try:
            with transaction(engine) as conn:
                return reconcile(conn, *args, **kwargs)
        except ConflictError:
            if attempt == attempts:
                raise
            logger.warning("Reconcile lost an insert race, retrying as update (attempt %s)", attempt)
