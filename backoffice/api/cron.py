# backoffice/api/cron.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Engine

from backoffice.api.deps import get_app_settings, get_db_engine
from backoffice.config import Settings
from backoffice.db.engine import transaction
from backoffice.models.invoices import SweepOut
from backoffice.services.overdue import sweep

router = APIRouter(prefix="/cron", tags=["cron"])


@router.api_route("/check-overdue-invoices", methods=["GET", "POST"], response_model=SweepOut)
def check_overdue_invoices(
    secret: Optional[str] = Query(default=None),
    as_of: Optional[date] = Query(
        default=None,
        alias="asOf",
        description="ISO date (YYYY-MM-DD); defaults to today in the configured timezone",
    ),
    engine: Engine = Depends(get_db_engine),
    settings: Settings = Depends(get_app_settings),
) -> SweepOut:
    """
    Mark PENDING invoices due before today as PAST_DUE. Called by a scheduler.
    """
    if settings.CRON_SECRET and secret != settings.CRON_SECRET:
        raise HTTPException(status_code=401, detail="Unauthorized")

    with transaction(engine) as conn:
        result = sweep(conn, as_of=as_of, tz=settings.tzinfo)

    return SweepOut(
        updated_invoices=result.updated_count,
        emails_sent=result.emails_sent,
        invoice_ids=result.invoice_ids,
    )
