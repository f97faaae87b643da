import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session
from hydrolog.config.database import get_db
from hydrolog.config.settings import settings
from hydrolog.features.auth.service import DUPLICATE_EMAIL, authenticate_user, create_session, resolve_session, end_session, register_user
from hydrolog.features.systems.schemas import SystemCreate, UserSystemResponse
from hydrolog.features.systems.service import OutcomeStatus, list_systems
from hydrolog.models.user import User
from hydrolog.utils.security import MAX_PASSWORD_BYTES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# OAuth2 scheme for Swagger UI; browsers use the cookie instead
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/token", auto_error=False)

class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()

    @field_validator("password")
    @classmethod
    def bcrypt_length(cls, value):
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value

class SignupRequest(Credentials):
    password: str = Field(..., min_length=6)
    name: Optional[str] = None
    system: Optional[SystemCreate] = None

class UserResponse(BaseModel):
    id: int
    email: EmailStr
    name: Optional[str]
    is_admin: bool
    systems: List[UserSystemResponse] = []

def session_token(request: Request, bearer: Optional[str]) -> Optional[str]:
    return request.cookies.get(settings.COOKIE_NAME) or bearer

async def get_current_user(request: Request, token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = session_token(request, token)
    if not token:
        raise credentials_exception
    user = resolve_session(db, token)
    if user is None:
        raise credentials_exception
    return user

def user_payload(db: Session, user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        is_admin=user.is_admin,
        systems=[UserSystemResponse.model_validate(link) for link in list_systems(db, user.id).value],
    )

def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        httponly=True,
        path="/",
        secure=settings.COOKIE_SECURE or settings.is_production,
        max_age=settings.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
        samesite="strict",
    )

@router.post("/signup")
def signup(req: SignupRequest, response: Response, db: Session = Depends(get_db)):
    system = req.system
    result = register_user(
        db,
        email=req.email,
        password=req.password,
        name=req.name,
        system_name=system.name if system else None,
        positions_per_row=system.positions_per_row if system else None,
    )
    if result.message == DUPLICATE_EMAIL:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.message)
    if result.status is OutcomeStatus.STORE_FAULT:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.message)
    if not result:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)

    user = result.value
    set_session_cookie(response, create_session(db, user))
    return {"success": True, "user": user_payload(db, user)}

@router.post("/login")
def login(req: Credentials, response: Response, db: Session = Depends(get_db)):
    user = authenticate_user(db, req.email, req.password)
    if not user:
        logger.warning("Failed login attempt", extra={"context": {"email": req.email}})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    set_session_cookie(response, create_session(db, user))
    logger.info("User logged in", extra={"context": {"user_id": user.id}})
    return {"success": True, "user": user_payload(db, user)}

@router.post("/token")
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = authenticate_user(db, form_data.username.strip().lower(), form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"access_token": create_session(db, user), "token_type": "bearer"}

@router.post("/logout")
def logout(request: Request, response: Response, token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    end_session(db, session_token(request, token))
    response.delete_cookie(settings.COOKIE_NAME, path="/")
    return {"success": True}

@router.get("/user")
def read_current_user(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"user": user_payload(db, current_user)}
