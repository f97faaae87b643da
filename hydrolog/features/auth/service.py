import logging
import uuid
from datetime import timedelta
from typing import List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from hydrolog.config.database import utcnow
from hydrolog.config.settings import settings
from hydrolog.features.systems.service import Outcome, stage_system, validate_layout
from hydrolog.models.session import AuthSession
from hydrolog.models.user import User
from hydrolog.utils.security import verify_password, get_password_hash, create_access_token, decode_access_token

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "User with this email already exists"

def authenticate_user(db: Session, email: str, password: str):
    user = db.query(User).filter(User.email == email).first()
    if not user:
        return False
    if not verify_password(password, user.hashed_password):
        return False
    return user

def create_session(db: Session, user: User) -> str:
    now = utcnow()
    db.query(AuthSession).filter(AuthSession.user_id == user.id, AuthSession.expires_at < now).delete(
        synchronize_session=False
    )
    session = AuthSession(
        id=uuid.uuid4().hex,
        user_id=user.id,
        expires_at=now + timedelta(days=settings.SESSION_EXPIRE_DAYS),
    )
    db.add(session)
    db.commit()

    return create_access_token(
        data={"sub": user.email, "user_id": user.id, "session_id": session.id},
        expires_delta=timedelta(days=settings.SESSION_EXPIRE_DAYS),
    )

def resolve_session(db: Session, token: str) -> Optional[User]:
    """User behind a session token, or None when the token or its session is no longer valid."""
    payload = decode_access_token(token)
    if payload is None:
        logger.warning("Rejected session token")
        return None

    user_id = payload.get("user_id")
    session_id = payload.get("session_id")
    if user_id is None or session_id is None:
        return None

    session = db.query(AuthSession).filter(AuthSession.id == session_id, AuthSession.user_id == user_id).first()
    if session is None or session.expires_at < utcnow():
        if session is not None:
            db.delete(session)
            db.commit()
        logger.warning("Session expired or invalid", extra={"context": {"session_id": session_id, "user_id": user_id}})
        return None

    return db.query(User).filter(User.id == user_id).first()

def end_session(db: Session, token: Optional[str]) -> None:
    if not token:
        return
    payload = decode_access_token(token)
    if payload is None:
        logger.warning("Logout with an unreadable token, clearing cookie only")
        return
    try:
        deleted = db.query(AuthSession).filter(
            AuthSession.id == payload.get("session_id"), AuthSession.user_id == payload.get("user_id")
        ).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        # The cookie is cleared regardless
        db.rollback()
        logger.exception("Failed to delete session", extra={"context": {"user_id": payload.get("user_id")}})
        return
    logger.info("User session deleted", extra={"context": {"user_id": payload.get("user_id"), "deleted": deleted}})

def register_user(
    db: Session,
    email: str,
    password: str,
    name: Optional[str] = None,
    system_name: Optional[str] = None,
    positions_per_row: Optional[List[int]] = None,
) -> Outcome:
    """Creates the account together with its first (active) system, in one transaction."""
    positions = list(positions_per_row or settings.DEFAULT_POSITIONS_PER_ROW)
    system_name = system_name or settings.DEFAULT_SYSTEM_NAME
    error = validate_layout(system_name, len(positions), positions)
    if error:
        return Outcome.invalid(error)

    if db.query(User).filter(User.email == email).first():
        return Outcome.invalid(DUPLICATE_EMAIL)

    user = User(
        email=email,
        name=name or email.split("@")[0],
        hashed_password=get_password_hash(password),
    )
    try:
        db.add(user)
        db.flush()
    except IntegrityError:
        # Lost a race against a concurrent signup with the same email
        db.rollback()
        logger.warning("Duplicate signup rejected by the store", extra={"context": {"email": email}})
        return Outcome.invalid(DUPLICATE_EMAIL)

    try:
        stage_system(db, user.id, system_name, len(positions), positions)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to register user", extra={"context": {"email": email}})
        return Outcome.store_fault("Failed to create account")

    logger.info("User registered", extra={"context": {"user_id": user.id, "email": email}})
    return Outcome.success(user)
