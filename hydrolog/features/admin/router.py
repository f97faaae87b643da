from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from hydrolog.config.database import get_db
from hydrolog.features.auth.router import get_current_user
from hydrolog.models.plant import Plant
from hydrolog.models.system_log import SystemLog
from hydrolog.models.user import User
from hydrolog.models.user_system import UserSystem

router = APIRouter(prefix="/api/admin", tags=["Admin"])

LOG_TYPE_LABELS = {
    "ph_measurement": "pH Level",
    "ec_measurement": "EC Level",
    "tds_measurement": "TDS Level",
    "temperature": "Temperature",
    "temperature_measurement": "Temperature",
    "water_refill": "Water Refill",
}

class AdminUserResponse(BaseModel):
    id: int
    name: Optional[str]
    email: str
    is_admin: bool
    created_at: datetime
    plant_count: int
    system_count: int

class AdminLogResponse(BaseModel):
    id: int
    level: str
    message: str
    timestamp: datetime
    source: str
    type: str
    value: float
    unit: str
    note: Optional[str]
    user_id: int
    user_name: str

def get_admin_user(current_user: User = Depends(get_current_user)):
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Not authorized to access admin data")
    return current_user

def describe_log(log: SystemLog) -> str:
    label = LOG_TYPE_LABELS.get(log.type, log.type)
    system_name = log.system_name or "Unknown System"
    user_name = log.user.name or log.user.email
    message = f"{label} recorded: {log.value:g} {log.unit} for {system_name} by {user_name}"
    if log.note:
        message += f" - Note: {log.note}"
    return message

@router.get("/users", response_model=List[AdminUserResponse])
def read_users(db: Session = Depends(get_db), admin: User = Depends(get_admin_user)):
    plant_counts = (
        db.query(Plant.user_id, func.count(Plant.id).label("n")).group_by(Plant.user_id).subquery()
    )
    system_counts = (
        db.query(UserSystem.user_id, func.count(UserSystem.id).label("n")).group_by(UserSystem.user_id).subquery()
    )
    rows = (
        db.query(User, plant_counts.c.n, system_counts.c.n)
        .outerjoin(plant_counts, plant_counts.c.user_id == User.id)
        .outerjoin(system_counts, system_counts.c.user_id == User.id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [
        AdminUserResponse(
            id=user.id,
            name=user.name,
            email=user.email,
            is_admin=user.is_admin,
            created_at=user.created_at,
            plant_count=plants or 0,
            system_count=systems or 0,
        )
        for user, plants, systems in rows
    ]

@router.get("/logs", response_model=List[AdminLogResponse])
def read_logs(
    type: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    query = db.query(SystemLog).options(joinedload(SystemLog.user))
    if type:
        query = query.filter(SystemLog.type == type)
    logs = query.order_by(SystemLog.log_date.desc(), SystemLog.id.desc()).limit(limit).all()

    return [
        AdminLogResponse(
            id=log.id,
            level="INFO",
            message=describe_log(log),
            timestamp=log.log_date,
            source=log.system_name or "system",
            type=log.type,
            value=log.value,
            unit=log.unit,
            note=log.note,
            user_id=log.user.id,
            user_name=log.user.name or log.user.email,
        )
        for log in logs
    ]
