# backoffice/services/overdue.py

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, select, update

from backoffice.db.schema import InvoiceStatus, customers, invoices
from backoffice.services.audit import make_entry, write_entries
from backoffice.services.normalize import DateLike, start_of_day, utcnow

logger = logging.getLogger(__name__)

PENDING = InvoiceStatus.PENDING.value
PAST_DUE = InvoiceStatus.PAST_DUE.value


@dataclass
class SweepResult:
    updated_count: int
    invoice_ids: List[int] = field(default_factory=list)
    notifications: List[Dict[str, str]] = field(default_factory=list)

    @property
    def emails_sent(self) -> int:
        return len(self.notifications)


def build_overdue_notification(row) -> Dict[str, str]:
    """Reminder email for one swept invoice. Only logged; there is no mail transport."""
    return {
        "to": row["customer_email"],
        "subject": f"Invoice #{row['id']} is overdue",
        "body": (
            f"Dear {row['customer_name']},\n\n"
            f"Your invoice #{row['id']} for ${row['amount']} was due on "
            f"{row['due_date']:%b %d, %Y}. Please make payment as soon as possible.\n\n"
            "Thank you,\nYour Company"
        ),
    }


def find_overdue(conn, cutoff: datetime) -> List[Any]:
    stmt = (
        select(
            invoices.c.id,
            invoices.c.amount,
            invoices.c.due_date,
            customers.c.name.label("customer_name"),
            customers.c.email.label("customer_email"),
        )
        .select_from(invoices.join(customers))
        .where(
            and_(
                invoices.c.status == PENDING,
                invoices.c.due_date < cutoff,
            )
        )
        .order_by(invoices.c.due_date.asc(), invoices.c.id.asc())
    )
    return conn.execute(stmt).mappings().all()


def sweep(
    conn,
    as_of: Optional[DateLike] = None,
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> SweepResult:
    """
    Move every PENDING invoice due before the start of as_of's day to PAST_DUE.

    Each transition is conditioned on the row still being PENDING, so an
    invoice changed by someone else since the select is skipped. Status
    updates and their audit entries are written on `conn`; run it inside a
    transaction so the batch commits as one. Store errors propagate.
    """
    cutoff = start_of_day(as_of, tz)
    now = now or utcnow()

    candidates = find_overdue(conn, cutoff)

    result = SweepResult(updated_count=0)
    entries = []

    for row in candidates:
        updated = conn.execute(
            update(invoices)
            .where(and_(invoices.c.id == row["id"], invoices.c.status == PENDING))
            .values(status=PAST_DUE, updated_at=now)
        )
        if updated.rowcount == 0:
            logger.warning("Invoice %s changed status during sweep, skipping", row["id"])
            continue

        entries.append(make_entry(row["id"], "status", PENDING, PAST_DUE, now))
        result.invoice_ids.append(row["id"])
        result.notifications.append(build_overdue_notification(row))

    write_entries(conn, entries)
    result.updated_count = len(result.invoice_ids)

    logger.info(
        "Overdue sweep (cutoff %s): %s of %s candidates marked %s",
        cutoff.isoformat(), result.updated_count, len(candidates), PAST_DUE,
    )
    for notification in result.notifications:
        logger.info("Overdue notification to %s: %s", notification["to"], notification["subject"])

    return result
