"""Schema building blocks shared by every request and response model."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Decimal on the model, float once dumped
Money = Annotated[Decimal, PlainSerializer(float, return_type=float)]


class StandardizedModel(BaseModel):
    """Response base: enums dump as their values, fields accept aliases."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request base. Unknown fields are a 422, not silently dropped."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class HealthResponse(BaseModel):
    """Liveness payload for load balancers and uptime checks."""

    status: str = Field(description="'healthy' or 'degraded'")
    service: str
    version: str
    environment: str
    database: str = Field(description="'ok' when the booking store answered a ping")
    timestamp: datetime
