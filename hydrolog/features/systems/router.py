from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from hydrolog.config.database import get_db
from hydrolog.features.auth.router import get_current_user
from hydrolog.features.systems.schemas import SystemCreate, SystemLayout, SystemResponse, UserSystemResponse
from hydrolog.features.systems.service import (
    Outcome,
    OutcomeStatus,
    list_systems,
    get_active,
    get_user_system,
    set_active,
    add_system,
    remove_system,
    update_layout,
)
from hydrolog.models.user import User
from hydrolog.models.user_system import UserSystem

router = APIRouter(prefix="/api/system", tags=["Systems"])

STATUS_CODES = {
    OutcomeStatus.NOT_FOUND: 404,
    OutcomeStatus.INVALID: 400,
    OutcomeStatus.STORE_FAULT: 500,
}

def raise_for_outcome(outcome: Outcome):
    if not outcome:
        raise HTTPException(status_code=STATUS_CODES[outcome.status], detail=outcome.message)

def get_active_link(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Dependency for routes that operate on the caller's active system."""
    active = get_active(db, current_user.id)
    raise_for_outcome(active)
    return active.value

def systems_payload(db: Session, user: User):
    return [UserSystemResponse.model_validate(link) for link in list_systems(db, user.id).value]

@router.get("", response_model=SystemResponse)
def read_active_system(link: UserSystem = Depends(get_active_link)):
    return link.system

@router.get("/list")
def read_systems(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    listed = list_systems(db, current_user.id)
    raise_for_outcome(listed)
    return {"success": True, "systems": [UserSystemResponse.model_validate(link) for link in listed.value]}

@router.post("/add")
def create_system(system: SystemCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    added = add_system(db, current_user.id, system.name, system.rows, system.positions_per_row)
    raise_for_outcome(added)
    return {
        "success": True,
        "user_system": UserSystemResponse.model_validate(added.value),
        "systems": systems_payload(db, current_user),
    }

@router.post("/update")
def update_system_layout(layout: SystemLayout, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    updated = update_layout(db, current_user.id, layout.positions_per_row)
    raise_for_outcome(updated)
    return {"success": True, "system": SystemResponse.model_validate(updated.value)}

@router.post("/{system_id}/activate")
def activate_system(system_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    raise_for_outcome(set_active(db, current_user.id, system_id))
    return {"success": True, "systems": systems_payload(db, current_user)}

@router.delete("/{system_id}/remove")
def delete_system(system_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    raise_for_outcome(remove_system(db, current_user.id, system_id))
    return {"success": True, "systems": systems_payload(db, current_user)}

@router.get("/{system_id}", response_model=UserSystemResponse)
def read_system(system_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    link = get_user_system(db, current_user.id, system_id)
    if link is None:
        raise HTTPException(status_code=404, detail="System not found or does not belong to you")
    return link
