# backoffice/models/customers.py

from typing import List, Optional

from pydantic import EmailStr, field_validator

from backoffice.errors import ValidationError
from backoffice.models.base import CamelModel, Instant, Money
from backoffice.models.invoices import InvoiceOut


class CustomerIn(CamelModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    external_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value):
        if not value.strip():
            raise ValidationError("Name and email are required")
        return value.strip()


class CustomerOut(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    external_id: Optional[str] = None
    created_at: Instant
    updated_at: Instant


class CustomerListItem(CustomerOut):
    invoice_count: int
    total_amount: Money
    outstanding_amount: Money


class CustomerListOut(CamelModel):
    items: List[CustomerListItem]
    total: int
    limit: int
    offset: int


class CustomerDetailOut(CustomerOut):
    invoices: List[InvoiceOut]
