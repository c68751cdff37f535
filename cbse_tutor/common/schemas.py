from __future__ import annotations
from pydantic import BaseModel
from typing import Dict
from datetime import datetime


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    timestamp: datetime
    services: Dict[str, str]  # service_name -> status
    version: str
