import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from hydrolog.config.database import get_db, utcnow
from hydrolog.features.auth.router import get_current_user
from hydrolog.features.systems.router import get_active_link
from hydrolog.models.system_log import SystemLog
from hydrolog.models.user import User
from hydrolog.models.user_system import UserSystem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system/logs", tags=["Measurements"])

class SystemLogCreate(BaseModel):
    type: str = Field(..., min_length=1) # e.g. "ph_measurement", "ec_measurement", "water_refill"
    value: float
    unit: str
    note: Optional[str] = None
    log_date: Optional[datetime] = None

class SystemLogResponse(BaseModel):
    id: int
    type: str
    value: float
    unit: str
    note: Optional[str]
    log_date: datetime
    created_at: datetime
    system_id: int
    system_name: Optional[str]

    class Config:
        from_attributes = True

@router.get("", response_model=List[SystemLogResponse])
def read_system_logs(
    type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    link: UserSystem = Depends(get_active_link),
):
    query = db.query(SystemLog).filter(SystemLog.system_id == link.system_id)
    if type:
        query = query.filter(SystemLog.type == type)
    return query.order_by(SystemLog.created_at.desc(), SystemLog.id.desc()).limit(limit).all()

@router.post("", response_model=SystemLogResponse)
def create_system_log(
    entry: SystemLogCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    link: UserSystem = Depends(get_active_link),
):
    log = SystemLog(
        type=entry.type,
        value=entry.value,
        unit=entry.unit,
        note=entry.note,
        log_date=entry.log_date or utcnow(),
        user_id=current_user.id,
        system_id=link.system_id,
        system_name=link.system.name,
    )
    db.add(log)
    db.commit()
    db.refresh(log)

    logger.info("Measurement recorded", extra={"context": {"system_id": link.system_id, "type": entry.type}})
    return log
