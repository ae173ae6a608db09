# backoffice/api/stats.py

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from backoffice.api.deps import get_db_engine
from backoffice.models.stats import StatsOut
from backoffice.services.stats import aggregate

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=StatsOut)
def get_stats(engine: Engine = Depends(get_db_engine)):
    with engine.connect() as conn:
        return aggregate(conn)
