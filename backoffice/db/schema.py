# backoffice/db/schema.py

from enum import Enum

from sqlalchemy import (
    MetaData, Table, Column, Integer, String,
    Numeric, DateTime, ForeignKey, CheckConstraint, Text, UniqueConstraint, Index
)

metadata = MetaData()


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


INVOICE_STATUSES = tuple(s.value for s in InvoiceStatus)

customers = Table(
    "customers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False),
    Column("phone", String, nullable=True),
    Column("address", Text, nullable=True),
    Column("external_id", String, nullable=True, unique=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "customer_id",
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("external_id", String, nullable=True),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("status", String(16), nullable=False, default="PENDING"),
    Column("due_date", DateTime, nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("customer_id", "external_id", name="uq_invoices_customer_external_id"),
    CheckConstraint("amount > 0", name="ck_invoices_amount_positive"),
    CheckConstraint(
        "status IN ('PENDING', 'PAID', 'PAST_DUE', 'CANCELLED')",
        name="ck_invoices_status",
    ),
    Index("ix_invoices_status_due_date", "status", "due_date"),
)

invoice_audit_logs = Table(
    "invoice_audit_logs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "invoice_id",
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("field_changed", String, nullable=False),
    Column("previous_value", Text, nullable=False, default=""),
    Column("new_value", Text, nullable=False, default=""),
    Column("timestamp", DateTime, nullable=False),
)
