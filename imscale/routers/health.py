from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from imscale.config.config import Settings
from imscale.routers.deps import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health(settings: Annotated[Settings, Depends(get_settings)]) -> HealthResponse:
    return HealthResponse(status="ok", version=settings.app_version)
