# backoffice/services/invoices.py

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import and_, delete, func, insert, select, true, update

from backoffice.db.schema import InvoiceStatus, customers, invoice_audit_logs, invoices
from backoffice.errors import ConflictError, NotFoundError
from backoffice.services.audit import SOURCE_MANUAL, diff_and_record, write_entries
from backoffice.services.normalize import (
    normalize_external_id,
    normalize_text,
    parse_amount,
    parse_due_date,
    parse_status,
    utcnow,
)

logger = logging.getLogger(__name__)


def status_label(status: str) -> str:
    """Display form of a status value, e.g. PAST_DUE -> PAST DUE."""
    return status.replace("_", " ")


def fetch_invoice(conn, invoice_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        select(invoices).where(invoices.c.id == invoice_id)
    ).mappings().first()
    return dict(row) if row is not None else None


def find_by_external_id(conn, customer_id: int, external_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        select(invoices).where(
            and_(
                invoices.c.customer_id == customer_id,
                invoices.c.external_id == external_id,
            )
        )
    ).mappings().first()
    return dict(row) if row is not None else None


def list_audit_logs(conn, invoice_id: int) -> List[Dict[str, Any]]:
    rows = conn.execute(
        select(invoice_audit_logs)
        .where(invoice_audit_logs.c.invoice_id == invoice_id)
        .order_by(invoice_audit_logs.c.timestamp.desc(), invoice_audit_logs.c.id.desc())
    ).mappings().all()
    return [dict(r) for r in rows]


def get_invoice(conn, invoice_id: int) -> Dict[str, Any]:
    """Invoice row plus its customer summary and audit history (newest first)."""
    row = conn.execute(
        select(
            invoices,
            customers.c.name.label("customer_name"),
            customers.c.email.label("customer_email"),
        )
        .select_from(invoices.join(customers))
        .where(invoices.c.id == invoice_id)
    ).mappings().first()

    if row is None:
        raise NotFoundError("Invoice not found")

    invoice = dict(row)
    invoice["customer"] = {
        "id": invoice["customer_id"],
        "name": invoice.pop("customer_name"),
        "email": invoice.pop("customer_email"),
    }
    invoice["audit_logs"] = list_audit_logs(conn, invoice_id)
    return invoice


def list_invoices(
    conn,
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    conditions = []
    if customer_id is not None:
        conditions.append(invoices.c.customer_id == customer_id)
    if status is not None:
        conditions.append(invoices.c.status == parse_status(status))

    where = and_(true(), *conditions)

    total = conn.execute(
        select(func.count()).select_from(invoices).where(where)
    ).scalar_one()

    rows = conn.execute(
        select(invoices)
        .where(where)
        .order_by(invoices.c.created_at.desc(), invoices.c.id.desc())
        .limit(limit)
        .offset(offset)
    ).mappings().all()

    return [dict(r) for r in rows], total


def _ensure_external_id_free(conn, customer_id: int, external_id: str, invoice_id: Optional[int] = None):
    taken = find_by_external_id(conn, customer_id, external_id)
    if taken is not None and taken["id"] != invoice_id:
        raise ConflictError("Invoice with this external ID already exists for this customer")


def insert_invoice(
    conn,
    customer_id: int,
    amount: Any,
    due_date: Any,
    status: Any = InvoiceStatus.PENDING,
    external_id: Optional[str] = None,
    description: Optional[str] = None,
    source: str = SOURCE_MANUAL,
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Insert an invoice row and its creation audit entry. No existence or
    uniqueness pre-checks; the store's constraints are the last word.
    """
    now = now or utcnow()
    values = {
        "customer_id": customer_id,
        "external_id": normalize_external_id(external_id),
        "amount": parse_amount(amount),
        "status": parse_status(status if status is not None else InvoiceStatus.PENDING),
        "due_date": parse_due_date(due_date, tz),
        "description": normalize_text(description),
        "created_at": now,
        "updated_at": now,
    }

    result = conn.execute(insert(invoices).values(**values))
    invoice_id = result.inserted_primary_key[0]

    write_entries(conn, diff_and_record(None, values, invoice_id=invoice_id, source=source, timestamp=now))

    return {"id": invoice_id, **values}


def create_invoice(
    conn,
    customer_id: int,
    amount: Any,
    due_date: Any,
    status: Any = None,
    external_id: Optional[str] = None,
    description: Optional[str] = None,
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    customer = conn.execute(
        select(customers.c.id).where(customers.c.id == customer_id)
    ).first()
    if customer is None:
        raise NotFoundError("Customer not found")

    external_id = normalize_external_id(external_id)
    if external_id is not None:
        _ensure_external_id_free(conn, customer_id, external_id)

    invoice = insert_invoice(
        conn,
        customer_id,
        amount,
        due_date,
        status=status,
        external_id=external_id,
        description=description,
        tz=tz,
        now=now,
    )
    logger.info("Created invoice %s for customer %s", invoice["id"], customer_id)
    return invoice


def apply_changes(
    conn,
    existing: Mapping[str, Any],
    changes: Mapping[str, Any],
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Write `changes` onto an existing invoice together with their audit entries.

    Keys absent from `changes` are left alone; None for amount, status or
    due_date also means "leave alone". Nothing is written when no tracked
    field actually changes. Returns the audit entries written.
    """
    now = now or utcnow()
    values = {}

    if changes.get("amount") is not None:
        values["amount"] = parse_amount(changes["amount"])
    if changes.get("due_date") is not None:
        values["due_date"] = parse_due_date(changes["due_date"], tz)
    if changes.get("status") is not None:
        values["status"] = parse_status(changes["status"])
    if "description" in changes:
        values["description"] = normalize_text(changes["description"])
    if "external_id" in changes:
        values["external_id"] = normalize_external_id(changes["external_id"])

    entries = diff_and_record(existing, values, timestamp=now)
    if not entries:
        return []

    conn.execute(
        update(invoices)
        .where(invoices.c.id == existing["id"])
        .values(updated_at=now, **values)
    )
    write_entries(conn, entries)
    return entries


def update_invoice(
    conn,
    invoice_id: int,
    changes: Mapping[str, Any],
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    existing = fetch_invoice(conn, invoice_id)
    if existing is None:
        raise NotFoundError("Invoice not found")

    if "external_id" in changes:
        external_id = normalize_external_id(changes["external_id"])
        if external_id is not None and external_id != existing["external_id"]:
            _ensure_external_id_free(conn, existing["customer_id"], external_id, invoice_id)

    entries = apply_changes(conn, existing, changes, tz=tz, now=now)
    if entries:
        logger.info(
            "Updated invoice %s: %s",
            invoice_id,
            ", ".join(e["field_changed"] for e in entries),
        )

    return fetch_invoice(conn, invoice_id), entries


def delete_invoice(conn, invoice_id: int) -> None:
    result = conn.execute(delete(invoices).where(invoices.c.id == invoice_id))
    if result.rowcount == 0:
        raise NotFoundError("Invoice not found")
    logger.info("Deleted invoice %s", invoice_id)
