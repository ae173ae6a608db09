# backoffice/services/stats.py

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func, select

from backoffice.db.schema import InvoiceStatus, customers, invoices
from backoffice.errors import StorageError
from backoffice.services.normalize import to_money, utcnow

MONTHS = 6

# status -> key in the aggregate that sums its amounts; CANCELLED counts toward none
REVENUE_BY_STATUS = {
    InvoiceStatus.PAID.value: "total_revenue",
    InvoiceStatus.PENDING.value: "pending_revenue",
    InvoiceStatus.PAST_DUE.value: "overdue_revenue",
}


def month_bucket(column, dialect_name: str):
    """SQL expression rendering a datetime column as 'YYYY-MM'."""
    if dialect_name == "sqlite":
        return func.strftime("%Y-%m", column)
    if dialect_name == "postgresql":
        return func.to_char(func.date_trunc("month", column), "YYYY-MM")
    if dialect_name in ("mysql", "mariadb"):
        return func.date_format(column, "%Y-%m")
    raise StorageError(f"Monthly revenue is not supported on {dialect_name}")


def window_start(now: datetime, months: int = MONTHS) -> datetime:
    """First instant of the month `months - 1` months before now's month."""
    index = now.year * 12 + (now.month - 1) - (months - 1)
    return datetime(index // 12, index % 12 + 1, 1)


def aggregate(conn, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Dashboard rollups: counts, per-status revenue, and revenue by creation
    month over the trailing six calendar months (months with no invoices are
    left out).
    """
    now = now or utcnow()
    zero = Decimal("0.00")

    total_customers = conn.execute(
        select(func.count()).select_from(customers)
    ).scalar_one()

    by_status = conn.execute(
        select(
            invoices.c.status,
            func.count(invoices.c.id).label("count"),
            func.coalesce(func.sum(invoices.c.amount), 0).label("amount"),
        )
        .group_by(invoices.c.status)
    ).mappings().all()

    stats = {
        "total_customers": total_customers,
        "total_invoices": 0,
        "total_revenue": zero,
        "pending_revenue": zero,
        "overdue_revenue": zero,
        "invoices_by_status": {},
    }

    for row in by_status:
        stats["total_invoices"] += row["count"]
        stats["invoices_by_status"][row["status"]] = row["count"]
        key = REVENUE_BY_STATUS.get(row["status"])
        if key is not None:
            stats[key] += to_money(row["amount"])

    month = month_bucket(invoices.c.created_at, conn.dialect.name).label("month")
    monthly = conn.execute(
        select(
            month,
            func.coalesce(func.sum(invoices.c.amount), 0).label("revenue"),
            func.count().label("count"),
        )
        .where(invoices.c.created_at >= window_start(now))
        .group_by(month)
        .order_by(month.asc())
    ).mappings().all()

    stats["monthly_revenue"] = [
        {"month": row["month"], "revenue": to_money(row["revenue"]), "count": row["count"]}
        for row in monthly
    ]
    return stats
