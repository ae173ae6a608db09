# backoffice/services/customers.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, delete, func, insert, or_, select

from backoffice.db.schema import InvoiceStatus, customers, invoices
from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.services.normalize import normalize_external_id, to_money, utcnow

logger = logging.getLogger(__name__)

OUTSTANDING_STATUSES = (InvoiceStatus.PENDING.value, InvoiceStatus.PAST_DUE.value)


def create_customer(
    conn,
    name: str,
    email: str,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    external_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    if not name or not email:
        raise ValidationError("Name and email are required")

    external_id = normalize_external_id(external_id)
    if external_id is not None:
        taken = conn.execute(
            select(customers.c.id).where(customers.c.external_id == external_id)
        ).first()
        if taken is not None:
            raise ConflictError("Customer with this external ID already exists")

    now = now or utcnow()
    values = {
        "name": name,
        "email": email,
        "phone": phone,
        "address": address,
        "external_id": external_id,
        "created_at": now,
        "updated_at": now,
    }
    result = conn.execute(insert(customers).values(**values))
    customer_id = result.inserted_primary_key[0]
    logger.info("Created customer %s", customer_id)
    return {"id": customer_id, **values}


def get_customer(conn, customer_id: int) -> Dict[str, Any]:
    """Customer row with its invoices, newest first."""
    row = conn.execute(
        select(customers).where(customers.c.id == customer_id)
    ).mappings().first()
    if row is None:
        raise NotFoundError("Customer not found")

    customer = dict(row)
    customer["invoices"] = [
        dict(r)
        for r in conn.execute(
            select(invoices)
            .where(invoices.c.customer_id == customer_id)
            .order_by(invoices.c.created_at.desc(), invoices.c.id.desc())
        ).mappings().all()
    ]
    return customer


def list_customers(
    conn,
    search: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Customers with invoice_count, total_amount and outstanding_amount
    (PENDING + PAST_DUE). `search` matches name or email, case-insensitive.
    """
    where = None
    if search:
        pattern = f"%{search.lower()}%"
        where = or_(
            func.lower(customers.c.name).like(pattern),
            func.lower(customers.c.email).like(pattern),
        )

    count_stmt = select(func.count()).select_from(customers)
    if where is not None:
        count_stmt = count_stmt.where(where)
    total = conn.execute(count_stmt).scalar_one()

    outstanding = case(
        (invoices.c.status.in_(OUTSTANDING_STATUSES), invoices.c.amount),
        else_=0,
    )
    stmt = (
        select(
            customers,
            func.count(invoices.c.id).label("invoice_count"),
            func.coalesce(func.sum(invoices.c.amount), 0).label("total_amount"),
            func.coalesce(func.sum(outstanding), 0).label("outstanding_amount"),
        )
        .select_from(customers.outerjoin(invoices))
        .group_by(customers.c.id)
        .order_by(customers.c.created_at.desc(), customers.c.id.desc())
        .limit(limit)
        .offset(offset)
    )
    if where is not None:
        stmt = stmt.where(where)

    items = []
    for row in conn.execute(stmt).mappings().all():
        item = dict(row)
        item["total_amount"] = to_money(item["total_amount"])
        item["outstanding_amount"] = to_money(item["outstanding_amount"])
        items.append(item)
    return items, total


def delete_customer(conn, customer_id: int) -> None:
    """Delete a customer; its invoices and their audit logs go with it."""
    result = conn.execute(delete(customers).where(customers.c.id == customer_id))
    if result.rowcount == 0:
        raise NotFoundError("Customer not found")
    logger.info("Deleted customer %s", customer_id)
