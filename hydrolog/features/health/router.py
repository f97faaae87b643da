import logging
import time
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from hydrolog.config.database import get_db
from hydrolog.config.settings import settings
from hydrolog.utils.metrics import render_metrics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

STARTED_AT = time.monotonic()

@router.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check failed")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": "Service unavailable"})

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "environment": settings.ENVIRONMENT,
    }

@router.get("/metrics")
def metrics():
    body, content_type = render_metrics()
    return Response(content=body, media_type=content_type, headers={"Cache-Control": "no-cache, max-age=0"})
