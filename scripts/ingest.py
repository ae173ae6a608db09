# scripts/ingest.py
"""
Batch-ingest a partner's invoice export through the reconciler.

Expected CSV header:
    ExternalCustomerId,ExternalInvoiceId,Amount,DueDate,Description

Every row is reconciled in its own transaction, so re-running the same file
is a no-op and one bad row does not stop the rest.
"""

import argparse
import csv
from datetime import datetime
import logging

from backoffice.config import get_settings
from backoffice.db.engine import get_engine
from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.services.normalize import parse_amount
from backoffice.services.reconcile import CREATED, reconcile_invoice

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

FILE_PATH = "data/partner_invoices.csv"

# Failures that belong to one row; anything else (e.g. StorageError) aborts the run.
ROW_ERRORS = (NotFoundError, ValidationError, ConflictError)


# ---- Helpers ----

def parse_due_date_raw(value: str):
    """Accepts ISO dates/datetimes or the MM/DD/YY format of older exports."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return datetime.strptime(value.split()[0], "%m/%d/%y").date()
    except ValueError:
        return value


def parse_row(row: dict) -> dict:
    due_date = parse_due_date_raw(row.get("DueDate"))
    if due_date is None:
        raise ValidationError("due date is required")

    return {
        "customer_external_id": (row.get("ExternalCustomerId") or "").strip(),
        "invoice_external_id": (row.get("ExternalInvoiceId") or "").strip(),
        "amount": parse_amount(row.get("Amount")),
        "due_date": due_date,
        "description": (row.get("Description") or "").strip() or None,
    }


def parse_partner_csv(file_path: str = FILE_PATH):
    records = []

    n_rows = 0
    n_errors = 0
    error_examples = []

    seen_keys: set[tuple] = set()
    duplicate_examples: list[str] = []
    duplicate_count = 0

    with open(file_path, newline="") as f:
        reader = csv.DictReader(f)

        for row in reader:
            n_rows += 1

            try:
                record = parse_row(row)
            except ValidationError as e:
                n_errors += 1
                if len(error_examples) < 5:
                    error_examples.append(
                        {"row_number": n_rows, "row": dict(row), "error": e.message}
                    )
                continue

            key = (record["customer_external_id"], record["invoice_external_id"])
            if key in seen_keys:
                # later rows win; the reconciler applies them in order
                duplicate_count += 1
                if len(duplicate_examples) < 5:
                    duplicate_examples.append(
                        f"Duplicate invoice {key[0]}/{key[1]} at CSV row {n_rows}"
                    )
            else:
                seen_keys.add(key)

            records.append(record)

    stats = {
        "n_rows": n_rows,
        "n_records": len(records),
        "n_errors": n_errors,
        "error_examples": error_examples,
        "n_duplicates": duplicate_count,
        "duplicate_examples": duplicate_examples,
    }
    return records, stats


def load_into_db(engine, records, tz=None):
    tz = tz or get_settings().tzinfo
    counts = {"created": 0, "updated": 0, "unchanged": 0, "failed": 0}
    failures = []

    for record in records:
        try:
            result = reconcile_invoice(engine, tz=tz, **record)
        except ROW_ERRORS as e:
            counts["failed"] += 1
            logger.warning(
                "Skipping invoice %s/%s: %s",
                record["customer_external_id"], record["invoice_external_id"], e.message,
            )
            if len(failures) < 5:
                failures.append({"record": record, "error": e.message})
            continue

        if result.action == CREATED:
            counts["created"] += 1
        elif result.changed_fields:
            counts["updated"] += 1
        else:
            counts["unchanged"] += 1

    return counts, failures


def main(argv=None):
    parser = argparse.ArgumentParser(description="Reconcile a partner invoice CSV.")
    parser.add_argument("file", nargs="?", default=FILE_PATH)
    args = parser.parse_args(argv)

    settings = get_settings()
    engine = get_engine(settings.DATABASE_URL)

    records, stats = parse_partner_csv(args.file)
    counts, failures = load_into_db(engine, records, tz=settings.tzinfo)

    logger.info(f"Total CSV rows read:   {stats['n_rows']}")
    logger.info(f"Rows with errors:      {stats['n_errors']}")
    logger.info(f"Invoices created:      {counts['created']}")
    logger.info(f"Invoices updated:      {counts['updated']}")
    logger.info(f"Invoices unchanged:    {counts['unchanged']}")
    logger.info(f"Invoices rejected:     {counts['failed']}")
    logger.info("Duplicate rows (by external id): %s", stats["n_duplicates"])
    for example in stats["duplicate_examples"]:
        logger.warning("Duplicate invoice example: %s", example)

    if stats["error_examples"]:
        logger.warning("Example errors:")
        for ex in stats["error_examples"]:
            logger.warning("Row %s: %s", ex["row_number"], ex["error"])

    return counts


if __name__ == "__main__":
    main()
