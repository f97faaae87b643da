import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, selectinload
from hydrolog.config.database import get_db, utcnow
from hydrolog.features.auth.router import get_current_user
from hydrolog.features.systems.router import get_active_link
from hydrolog.features.systems.service import get_active
from hydrolog.models.plant import Plant, PlantLog, PLANT_STATUS_PLANTED, PLANT_STATUS_REMOVED
from hydrolog.models.user import User
from hydrolog.models.user_system import UserSystem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plants", tags=["Plants"])

TOLERANCE_FIELDS = ("ph_min", "ph_max", "ec_min", "ec_max", "ppm_min", "ppm_max")

class PlantCreate(BaseModel):
    name: str = Field(..., min_length=1)
    type: Optional[str] = None
    position: str = Field(..., min_length=1)
    ph_min: Optional[float] = None
    ph_max: Optional[float] = None
    ec_min: Optional[float] = None
    ec_max: Optional[float] = None
    ppm_min: Optional[int] = None
    ppm_max: Optional[int] = None

class PlantUpdate(BaseModel):
    ph_min: Optional[float] = None
    ph_max: Optional[float] = None
    ec_min: Optional[float] = None
    ec_max: Optional[float] = None
    ppm_min: Optional[int] = None
    ppm_max: Optional[int] = None

class PlantLogCreate(BaseModel):
    status: str = Field(..., min_length=1)
    note: Optional[str] = None
    log_date: Optional[datetime] = None

class PlantLogResponse(BaseModel):
    id: int
    status: str
    note: Optional[str]
    log_date: datetime

    class Config:
        from_attributes = True

class PlantResponse(BaseModel):
    id: int
    name: str
    type: Optional[str]
    position: Optional[str]
    status: str
    start_date: datetime
    ph_min: Optional[float]
    ph_max: Optional[float]
    ec_min: Optional[float]
    ec_max: Optional[float]
    ppm_min: Optional[int]
    ppm_max: Optional[int]
    system_id: int
    updated_at: datetime

    class Config:
        from_attributes = True

class PlantHistoryResponse(PlantResponse):
    logs: List[PlantLogResponse] = []

def get_owned_plant(plant_id: int, db: Session, user: User) -> Plant:
    plant = db.query(Plant).filter(Plant.id == plant_id).first()
    if not plant:
        raise HTTPException(status_code=404, detail="Plant not found")
    if plant.user_id != user.id:
        logger.warning("Foreign plant access attempt", extra={"context": {"user_id": user.id, "plant_id": plant_id}})
        raise HTTPException(status_code=403, detail="Not authorized to access this plant")
    return plant

@router.get("", response_model=List[PlantResponse])
def read_plants(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    link = get_active(db, current_user.id).value
    if not link:
        return []
    return db.query(Plant).filter(
        Plant.system_id == link.system_id,
        Plant.status != PLANT_STATUS_REMOVED
    ).order_by(Plant.position.asc()).all()

@router.post("", response_model=PlantResponse)
def create_plant(plant: PlantCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user), link: UserSystem = Depends(get_active_link)):
    occupied = db.query(Plant).filter(
        Plant.system_id == link.system_id,
        Plant.position == plant.position,
        Plant.status != PLANT_STATUS_REMOVED
    ).first()
    if occupied:
        raise HTTPException(status_code=409, detail="Position already occupied")

    new_plant = Plant(
        **plant.model_dump(),
        status=PLANT_STATUS_PLANTED,
        start_date=utcnow(),
        user_id=current_user.id,
        system_id=link.system_id,
    )
    db.add(new_plant)
    db.commit()
    db.refresh(new_plant)

    logger.info("Plant created", extra={"context": {"plant_id": new_plant.id, "system_id": link.system_id}})
    return new_plant

@router.get("/history", response_model=List[PlantHistoryResponse])
def read_plant_history(response: Response, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    link = get_active(db, current_user.id).value
    query = db.query(Plant).options(selectinload(Plant.logs)).filter(
        Plant.user_id == current_user.id,
        Plant.status == PLANT_STATUS_REMOVED
    )
    if link:
        query = query.filter(Plant.system_id == link.system_id)

    response.headers["Cache-Control"] = "no-store, max-age=0, must-revalidate"
    return query.order_by(Plant.updated_at.desc()).all()

@router.post("/remove-all")
def remove_all_plants(db: Session = Depends(get_db), link: UserSystem = Depends(get_active_link)):
    # Logs are kept for the history view
    count = db.query(Plant).filter(
        Plant.system_id == link.system_id,
        Plant.status != PLANT_STATUS_REMOVED
    ).update({Plant.status: PLANT_STATUS_REMOVED, Plant.position: None}, synchronize_session=False)
    db.commit()

    logger.info("All plants removed", extra={"context": {"system_id": link.system_id, "count": count}})
    return {"success": True, "count": count}

@router.delete("/{plant_id}")
def remove_plant(plant_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    plant = get_owned_plant(plant_id, db, current_user)
    plant.status = PLANT_STATUS_REMOVED
    plant.position = None
    db.commit()
    return {"success": True}

@router.patch("/{plant_id}", response_model=PlantResponse)
def update_plant_parameters(plant_id: int, update: PlantUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    plant = get_owned_plant(plant_id, db, current_user)

    # Only fields present in the body change; an explicit null clears the bound
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(plant, field, value)
    db.commit()
    db.refresh(plant)

    logger.info("Plant parameters updated", extra={"context": {"plant_id": plant_id}})
    return plant

@router.get("/{plant_id}/logs", response_model=List[PlantLogResponse])
def read_plant_logs(plant_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    get_owned_plant(plant_id, db, current_user)
    return db.query(PlantLog).filter(PlantLog.plant_id == plant_id).order_by(PlantLog.created_at.desc(), PlantLog.id.desc()).all()

@router.post("/{plant_id}/logs", response_model=PlantLogResponse)
def create_plant_log(plant_id: int, entry: PlantLogCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    plant = get_owned_plant(plant_id, db, current_user)

    log = PlantLog(
        plant_id=plant.id,
        status=entry.status,
        note=entry.note,
        log_date=entry.log_date or utcnow(),
    )
    db.add(log)
    plant.status = entry.status
    db.commit()
    db.refresh(log)
    return log
