from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskboard.database import get_db, ping_database
from taskboard.schemas import HealthStatus, ServicesStatus, ServiceState
from taskboard.services.task_queue import check_redis

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Service health",
    description="Report database and Redis connectivity. Always answers 200; "
    "inspect `status` for 'healthy' or 'degraded'.",
)
async def health_check(db: Session = Depends(get_db)):
    database = ServiceState.CONNECTED if ping_database(db) else ServiceState.DISCONNECTED
    redis = await check_redis()

    healthy = database == ServiceState.CONNECTED and redis != ServiceState.DISCONNECTED
    return HealthStatus(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        services=ServicesStatus(database=database, redis=redis),
    )
