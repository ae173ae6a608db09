# backoffice/db/engine.py

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backoffice.errors import ConflictError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///db.sqlite"  # file in project root


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    engine = create_engine(url or DEFAULT_DB_URL, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def is_unique_violation(exc: IntegrityError) -> bool:
    # postgres reports SQLSTATE 23505; sqlite and mysql only say so in the message
    if getattr(exc.orig, "pgcode", None) == "23505":
        return True
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


@contextmanager
def transaction(engine: Engine) -> Iterator[Connection]:
    """
    engine.begin() that reports store failures with the app's error types.

    Everything done on the yielded connection commits together or not at all.
    """
    try:
        with engine.begin() as conn:
            yield conn
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            logger.exception("Constraint violation, transaction rolled back")
            raise StorageError("Something went wrong") from exc
        logger.warning("Unique constraint violation, transaction rolled back: %s", exc.orig)
        raise ConflictError("A record with this external ID already exists") from exc
    except SQLAlchemyError as exc:
        logger.exception("Storage failure, transaction rolled back")
        raise StorageError("Something went wrong") from exc
