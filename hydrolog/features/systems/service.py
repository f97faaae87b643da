"""
Active-system management.

Every user owns zero or more hydroponic systems through ``UserSystem`` links,
and whenever they own at least one, exactly one link is active. The functions
below are the only code that writes ``UserSystem.is_active``; each mutation
runs as a single transaction on the session it is given, so concurrent
readers see either the state before or the state after, never a user with
zero (or two) active systems.

Nothing here raises for expected conditions. Every function returns an
``Outcome`` whose status tells "not found" apart from a store fault, and
whose value is the fail-soft default (``[]``, ``None``, ``False``) when the
operation did not succeed.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from hydrolog.models.plant import Plant, PlantLog
from hydrolog.models.system import System
from hydrolog.models.system_log import SystemLog
from hydrolog.models.user_system import UserSystem

logger = logging.getLogger(__name__)


class OutcomeStatus(str, enum.Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    STORE_FAULT = "store_fault"


@dataclass
class Outcome:
    status: OutcomeStatus
    value: Any = None
    message: Optional[str] = None

    def __bool__(self):
        return self.status is OutcomeStatus.SUCCESS

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @classmethod
    def success(cls, value: Any = True) -> "Outcome":
        return cls(OutcomeStatus.SUCCESS, value)

    @classmethod
    def not_found(cls, message: str, value: Any = None) -> "Outcome":
        return cls(OutcomeStatus.NOT_FOUND, value, message)

    @classmethod
    def invalid(cls, message: str, value: Any = None) -> "Outcome":
        return cls(OutcomeStatus.INVALID, value, message)

    @classmethod
    def store_fault(cls, message: str, value: Any = None) -> "Outcome":
        return cls(OutcomeStatus.STORE_FAULT, value, message)


def validate_layout(name: str, rows: int, positions_per_row: List[int]) -> Optional[str]:
    """Structural checks only; returns an error message or None."""
    if not name or not name.strip():
        return "System name is required"
    if not isinstance(rows, int) or rows < 1:
        return "At least one row is required"
    return validate_positions(positions_per_row, rows)


def validate_positions(positions_per_row: List[int], rows: Optional[int] = None) -> Optional[str]:
    if not positions_per_row:
        return "Position configuration is required"
    if any(not isinstance(p, int) or isinstance(p, bool) or p < 0 for p in positions_per_row):
        return "Positions per row must be non-negative integers"
    if rows is not None and rows != len(positions_per_row):
        return "Row count must match the number of position entries"
    return None


def _links_for_update(db: Session, user_id: int):
    # Row locks serialize concurrent switches for the same user (no-op on SQLite,
    # where the database-level write lock does the same job)
    return db.query(UserSystem).filter(UserSystem.user_id == user_id).with_for_update().all()


def list_systems(db: Session, user_id: int) -> Outcome:
    try:
        links = (
            db.query(UserSystem)
            .options(joinedload(UserSystem.system))
            .filter(UserSystem.user_id == user_id)
            .order_by(UserSystem.is_active.desc(), UserSystem.created_at.desc(), UserSystem.id.desc())
            .all()
        )
        return Outcome.success(links)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to get user systems", extra={"context": {"user_id": user_id}})
        return Outcome.store_fault("Failed to get user systems", value=[])


def get_active(db: Session, user_id: int) -> Outcome:
    try:
        link = (
            db.query(UserSystem)
            .options(joinedload(UserSystem.system))
            .filter(UserSystem.user_id == user_id, UserSystem.is_active.is_(True))
            .first()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to get active user system", extra={"context": {"user_id": user_id}})
        return Outcome.store_fault("Failed to get active user system")

    if link is None:
        return Outcome.not_found("No active system found")
    return Outcome.success(link)


def get_user_system(db: Session, user_id: int, system_id: int) -> Optional[UserSystem]:
    return (
        db.query(UserSystem)
        .options(joinedload(UserSystem.system))
        .filter(UserSystem.user_id == user_id, UserSystem.system_id == system_id)
        .first()
    )


def set_active(db: Session, user_id: int, system_id: int) -> Outcome:
    context = {"user_id": user_id, "system_id": system_id}
    try:
        links = _links_for_update(db, user_id)
        if not any(link.system_id == system_id for link in links):
            db.rollback()
            logger.warning("System not found for user", extra={"context": context})
            return Outcome.not_found("System not found or does not belong to you", value=False)

        db.query(UserSystem).filter(UserSystem.user_id == user_id).update(
            {UserSystem.is_active: False}, synchronize_session=False
        )
        db.query(UserSystem).filter(
            UserSystem.user_id == user_id, UserSystem.system_id == system_id
        ).update({UserSystem.is_active: True}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to set active system", extra={"context": context})
        return Outcome.store_fault("Failed to set system as active", value=False)

    logger.info("Set active system for user", extra={"context": context})
    return Outcome.success(True)


def stage_system(db: Session, user_id: int, name: str, rows: int, positions_per_row: List[int]) -> UserSystem:
    """
    Adds a new System and the user's link to it to the session, without
    committing. The link is active only when it is the user's first.

    Callers validate the layout first and own the transaction: commit on
    success, roll back on ``SQLAlchemyError``.
    """
    existing = _links_for_update(db, user_id)
    should_be_active = len(existing) == 0

    system = System(name=name.strip(), rows=rows, positions_per_row=list(positions_per_row))
    db.add(system)
    db.flush()

    if should_be_active:
        # Normally a no-op, the user has no links yet
        db.query(UserSystem).filter(UserSystem.user_id == user_id).update(
            {UserSystem.is_active: False}, synchronize_session=False
        )

    link = UserSystem(user_id=user_id, system_id=system.id, is_active=should_be_active)
    db.add(link)
    db.flush()
    return link


def add_system(db: Session, user_id: int, name: str, rows: int, positions_per_row: List[int]) -> Outcome:
    error = validate_layout(name, rows, positions_per_row)
    if error:
        logger.warning("Rejected system layout", extra={"context": {"user_id": user_id, "error": error}})
        return Outcome.invalid(error)

    try:
        link = stage_system(db, user_id, name, rows, positions_per_row)
        db.commit()
        db.refresh(link)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Failed to add system for user",
            extra={"context": {"user_id": user_id, "name": name, "rows": rows, "positions_per_row": positions_per_row}},
        )
        return Outcome.store_fault("Failed to add system")

    logger.info(
        "Added system for user",
        extra={"context": {"user_id": user_id, "system_id": link.system_id, "is_active": link.is_active}},
    )
    return Outcome.success(link)


def _delete_system_cascade(db: Session, system_id: int) -> None:
    # Children before parent: plant logs -> plants, system logs, then the system
    plant_ids = select(Plant.id).where(Plant.system_id == system_id)
    db.query(PlantLog).filter(PlantLog.plant_id.in_(plant_ids)).delete(synchronize_session=False)
    db.query(Plant).filter(Plant.system_id == system_id).delete(synchronize_session=False)
    db.query(SystemLog).filter(SystemLog.system_id == system_id).delete(synchronize_session=False)
    db.query(System).filter(System.id == system_id).delete(synchronize_session=False)


def remove_system(db: Session, user_id: int, system_id: int) -> Outcome:
    context = {"user_id": user_id, "system_id": system_id}
    try:
        links = _links_for_update(db, user_id)
        target = next((link for link in links if link.system_id == system_id), None)
        if target is None:
            db.rollback()
            logger.warning("System not found for user", extra={"context": context})
            return Outcome.not_found("System not found or does not belong to you", value=False)

        was_active = target.is_active
        db.delete(target)
        db.flush()

        if was_active:
            successor = (
                db.query(UserSystem)
                .filter(UserSystem.user_id == user_id)
                .order_by(UserSystem.created_at.asc(), UserSystem.id.asc())
                .first()
            )
            if successor is not None:
                successor.is_active = True
                db.flush()
                context["promoted_system_id"] = successor.system_id

        # Lock the system row so no new reference appears between count and delete
        db.query(System).filter(System.id == system_id).with_for_update().first()
        references = db.query(func.count(UserSystem.id)).filter(UserSystem.system_id == system_id).scalar()
        if references == 0:
            _delete_system_cascade(db, system_id)
            context["system_deleted"] = True

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to remove system for user", extra={"context": context})
        return Outcome.store_fault("Failed to remove system", value=False)

    logger.info("Removed system for user", extra={"context": context})
    return Outcome.success(True)


def update_layout(db: Session, user_id: int, positions_per_row: List[int]) -> Outcome:
    """Replaces the active system's layout; plants no longer fit, so they go."""
    error = validate_positions(positions_per_row)
    if error:
        return Outcome.invalid(error)

    active = get_active(db, user_id)
    if not active:
        return active

    system = active.value.system
    context = {"user_id": user_id, "system_id": system.id}
    try:
        plant_ids = select(Plant.id).where(Plant.system_id == system.id)
        db.query(PlantLog).filter(PlantLog.plant_id.in_(plant_ids)).delete(synchronize_session=False)
        removed = db.query(Plant).filter(Plant.system_id == system.id).delete(synchronize_session=False)
        system.positions_per_row = list(positions_per_row)
        system.rows = len(positions_per_row)
        db.commit()
        db.refresh(system)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to update system layout", extra={"context": context})
        return Outcome.store_fault("Failed to update system layout")

    context["plants_removed"] = removed
    logger.info("Updated system layout", extra={"context": context})
    return Outcome.success(system)
