from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from rewardsapi.database.session import get_db
from rewardsapi.schemas.health import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
def health_check(db: Session = Depends(get_db)) -> HealthCheckResponse:
    """Health check endpoint."""

    db.execute(text("SELECT 1"))
    return HealthCheckResponse()
