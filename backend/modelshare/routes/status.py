from fastapi import APIRouter

from .. import schemas
from ..config import GIT_VERSION

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/status", response_model=schemas.ServiceStatusOut)
def service_status():
    return schemas.ServiceStatusOut(version=GIT_VERSION or "dev")
