from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ServiceState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    DISABLED = "disabled"


class ServicesStatus(BaseModel):
    database: ServiceState = Field(description="Relational store connectivity")
    redis: ServiceState = Field(description="Redis connectivity")


class HealthStatus(BaseModel):
    status: str = Field(description="'healthy' or 'degraded'")
    timestamp: datetime = Field(description="When the check ran")
    services: ServicesStatus = Field(description="Per-dependency status")
