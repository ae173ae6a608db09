# backoffice/models/invoices.py

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import computed_field, field_validator

from backoffice.db.schema import InvoiceStatus
from backoffice.errors import ValidationError
from backoffice.models.base import CamelModel, Instant, Money
from backoffice.services.invoices import status_label
from backoffice.services.normalize import coerce_datetime, parse_amount


class _InvoiceFieldsIn(CamelModel):
    amount: Decimal
    due_date: datetime

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        return parse_amount(value)

    @field_validator("due_date", mode="before")
    @classmethod
    def _parse_due_date(cls, value):
        return coerce_datetime(value)


class InvoiceCreate(_InvoiceFieldsIn):
    customer_id: int
    external_id: Optional[str] = None
    status: Optional[InvoiceStatus] = None
    description: Optional[str] = None


class InvoiceUpdate(_InvoiceFieldsIn):
    """amount and dueDate are always sent; optional fields left out stay as they are."""

    external_id: Optional[str] = None
    status: Optional[InvoiceStatus] = None
    description: Optional[str] = None


class ExternalInvoiceIn(_InvoiceFieldsIn):
    external_customer_id: str
    external_invoice_id: str
    description: Optional[str] = None

    @field_validator("external_customer_id", "external_invoice_id", mode="before")
    @classmethod
    def _require_id(cls, value):
        if value is None or not str(value).strip():
            raise ValidationError("External customer ID and external invoice ID are required")
        return str(value).strip()


class AuditLogOut(CamelModel):
    id: int
    invoice_id: int
    field_changed: str
    previous_value: str
    new_value: str
    timestamp: Instant


class InvoiceOut(CamelModel):
    id: int
    customer_id: int
    external_id: Optional[str] = None
    amount: Money
    status: str
    due_date: Instant
    description: str = ""
    created_at: Instant
    updated_at: Instant

    @computed_field(alias="statusLabel")
    @property
    def status_label(self) -> str:
        return status_label(self.status)


class CustomerSummary(CamelModel):
    id: int
    name: str
    email: str


class InvoiceDetailOut(InvoiceOut):
    customer: CustomerSummary
    audit_logs: List[AuditLogOut]


class InvoiceListOut(CamelModel):
    items: List[InvoiceOut]
    total: int
    limit: int
    offset: int


class ExternalInvoiceOut(CamelModel):
    success: bool = True
    message: str
    action: str
    changed_fields: List[str]
    invoice: InvoiceOut


class SweepOut(CamelModel):
    success: bool = True
    updated_invoices: int
    emails_sent: int
    invoice_ids: List[int]
