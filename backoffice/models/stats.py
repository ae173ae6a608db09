# backoffice/models/stats.py

from typing import Dict, List

from backoffice.models.base import CamelModel, Money


class MonthlyRevenueRow(CamelModel):
    month: str
    revenue: Money
    count: int


class StatsOut(CamelModel):
    total_customers: int
    total_invoices: int
    total_revenue: Money
    pending_revenue: Money
    overdue_revenue: Money
    invoices_by_status: Dict[str, int]
    monthly_revenue: List[MonthlyRevenueRow]
