from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from backoffice.config import Settings
from backoffice.db.engine import get_engine
from backoffice.db.schema import invoice_audit_logs, metadata
from backoffice.main import create_app
from backoffice.services.customers import create_customer


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        TIMEZONE="UTC",
        CRON_SECRET=None,
    )


@pytest.fixture
def engine(settings):
    engine = get_engine(settings.DATABASE_URL)
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def conn(engine):
    with engine.begin() as conn:
        yield conn


@pytest.fixture
def customer(conn):
    return create_customer(
        conn,
        name="Acme Corp",
        email="billing@acme.com",
        external_id="C1",
    )


@pytest.fixture
def committed_customer(engine):
    # Committed up front so tests holding no open transaction (HTTP, engine-level) can see it.
    with engine.begin() as c:
        return create_customer(
            c,
            name="Acme Corp",
            email="billing@acme.com",
            external_id="C1",
        )


@pytest.fixture
def client(settings, engine):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


def audit_count(conn, invoice_id=None, field_changed=None):
    stmt = select(func.count()).select_from(invoice_audit_logs)
    if invoice_id is not None:
        stmt = stmt.where(invoice_audit_logs.c.invoice_id == invoice_id)
    if field_changed is not None:
        stmt = stmt.where(invoice_audit_logs.c.field_changed == field_changed)
    return conn.execute(stmt).scalar_one()


def midnight(d: date) -> datetime:
    return datetime(d.year, d.month, d.day)
