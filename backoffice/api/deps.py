# backoffice/api/deps.py

from fastapi import Request
from sqlalchemy.engine import Engine

from backoffice.config import Settings


def get_db_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
