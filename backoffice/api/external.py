# backoffice/api/external.py

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from backoffice.api.deps import get_app_settings, get_db_engine
from backoffice.config import Settings
from backoffice.models.invoices import ExternalInvoiceIn, ExternalInvoiceOut
from backoffice.services.reconcile import reconcile_invoice

router = APIRouter(prefix="/external", tags=["external"])


@router.post("/invoices", response_model=ExternalInvoiceOut)
def ingest_external_invoice(
    payload: ExternalInvoiceIn,
    engine: Engine = Depends(get_db_engine),
    settings: Settings = Depends(get_app_settings),
) -> ExternalInvoiceOut:
    """
    Create or update an invoice pushed by a partner system, keyed by the
    customer's and the invoice's external ids. Safe to retry.
    """
    # description left out of the body keeps the stored one
    extra = {}
    if "description" in payload.model_fields_set:
        extra["description"] = payload.description

    result = reconcile_invoice(
        engine,
        payload.external_customer_id,
        payload.external_invoice_id,
        payload.amount,
        payload.due_date,
        tz=settings.tzinfo,
        **extra,
    )

    return ExternalInvoiceOut(
        message=f"Invoice {result.action} successfully",
        action=result.action,
        changed_fields=result.changed_fields,
        invoice=result.invoice,
    )
