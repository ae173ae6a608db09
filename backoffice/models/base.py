# backoffice/models/base.py

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, PlainSerializer
from pydantic.alias_generators import to_camel

from backoffice.services.normalize import format_instant

# Response-only types: amounts go out as JSON numbers, stored naive UTC
# instants as ISO 8601 with a Z suffix.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Instant = Annotated[datetime, PlainSerializer(format_instant, return_type=str, when_used="json")]


class CamelModel(BaseModel):
    """JSON bodies use camelCase; Python code and service dicts use snake_case."""

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel
