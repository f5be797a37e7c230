from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field

from hostmonitor.api.globals import resources
from hostmonitor.resources.monitor import utc_timestamp

router = APIRouter()

class HealthStatus(BaseModel):
  status: str = Field(default='ok')
  timestamp: str

class SystemSnapshot(BaseModel):
  success: bool
  timestamp: str
  ram: Dict[str, Any]
  disk: Dict[str, Any]
  cpu: Dict[str, Any]

@router.get('/health', response_model=HealthStatus)
async def health() -> HealthStatus:
  return HealthStatus(status='ok', timestamp=utc_timestamp())

@router.get('/system', response_model=SystemSnapshot)
async def system_snapshot() -> SystemSnapshot:
  return SystemSnapshot(**await resources.snapshot())
