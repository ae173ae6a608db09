# backoffice/api/invoices.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from backoffice.api.deps import get_app_settings, get_db_engine
from backoffice.config import Settings
from backoffice.db.engine import transaction
from backoffice.db.schema import InvoiceStatus
from backoffice.models.invoices import (
    InvoiceCreate,
    InvoiceDetailOut,
    InvoiceListOut,
    InvoiceOut,
    InvoiceUpdate,
)
from backoffice.services import invoices as invoice_service

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("", response_model=InvoiceListOut)
def list_invoices(
    customer_id: Optional[int] = Query(default=None, alias="customerId"),
    status: Optional[InvoiceStatus] = Query(default=None),
    limit: int = Query(10, ge=1, le=200),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_db_engine),
) -> InvoiceListOut:
    """
    Invoices newest first, optionally filtered by customer and status.
    """
    with engine.connect() as conn:
        items, total = invoice_service.list_invoices(
            conn,
            customer_id=customer_id,
            status=status.value if status else None,
            limit=limit,
            offset=offset,
        )

    return InvoiceListOut(items=items, total=total, limit=limit, offset=offset)


@router.post("", response_model=InvoiceOut, status_code=201)
def create_invoice(
    payload: InvoiceCreate,
    engine: Engine = Depends(get_db_engine),
    settings: Settings = Depends(get_app_settings),
):
    with transaction(engine) as conn:
        invoice = invoice_service.create_invoice(
            conn,
            customer_id=payload.customer_id,
            amount=payload.amount,
            due_date=payload.due_date,
            status=payload.status,
            external_id=payload.external_id,
            description=payload.description,
            tz=settings.tzinfo,
        )

    return invoice


@router.get("/{invoice_id}", response_model=InvoiceDetailOut)
def get_invoice(invoice_id: int, engine: Engine = Depends(get_db_engine)):
    """
    A single invoice with its customer and audit history.
    """
    with engine.connect() as conn:
        return invoice_service.get_invoice(conn, invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    engine: Engine = Depends(get_db_engine),
    settings: Settings = Depends(get_app_settings),
):
    # Only fields present in the body are applied
    changes = payload.model_dump(exclude_unset=True)

    with transaction(engine) as conn:
        invoice, _ = invoice_service.update_invoice(conn, invoice_id, changes, tz=settings.tzinfo)

    return invoice


@router.delete("/{invoice_id}")
def delete_invoice(invoice_id: int, engine: Engine = Depends(get_db_engine)):
    with transaction(engine) as conn:
        invoice_service.delete_invoice(conn, invoice_id)

    return {"success": True}
