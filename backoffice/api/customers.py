# backoffice/api/customers.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from backoffice.api.deps import get_db_engine
from backoffice.db.engine import transaction
from backoffice.models.customers import (
    CustomerDetailOut,
    CustomerIn,
    CustomerListOut,
    CustomerOut,
)
from backoffice.services import customers as customer_service

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=CustomerListOut)
def list_customers(
    search: Optional[str] = Query(
        default=None,
        description="Case-insensitive substring of name or email",
    ),
    limit: int = Query(10, ge=1, le=200),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_db_engine),
) -> CustomerListOut:
    """
    Customers with invoice count, billed total and outstanding balance.
    """
    with engine.connect() as conn:
        items, total = customer_service.list_customers(
            conn, search=search, limit=limit, offset=offset
        )

    return CustomerListOut(items=items, total=total, limit=limit, offset=offset)


@router.post("", response_model=CustomerOut, status_code=201)
def create_customer(payload: CustomerIn, engine: Engine = Depends(get_db_engine)):
    with transaction(engine) as conn:
        return customer_service.create_customer(
            conn,
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            address=payload.address,
            external_id=payload.external_id,
        )


@router.get("/{customer_id}", response_model=CustomerDetailOut)
def get_customer(customer_id: int, engine: Engine = Depends(get_db_engine)):
    """
    Return a single customer by ID, with its invoices.
    """
    with engine.connect() as conn:
        return customer_service.get_customer(conn, customer_id)


@router.delete("/{customer_id}")
def delete_customer(customer_id: int, engine: Engine = Depends(get_db_engine)):
    """
    Delete a customer together with its invoices and their audit logs.
    """
    with transaction(engine) as conn:
        customer_service.delete_customer(conn, customer_id)

    return {"success": True}
