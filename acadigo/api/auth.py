"""Authentication API."""

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from acadigo.api.deps import client_meta, get_current_user, limit_by_client, require_admin
from acadigo.api.users import UserCreate
from acadigo.config import Settings, get_settings
from acadigo.db import get_db
from acadigo.models import ResourceType, User
from acadigo.schemas.common import MessageResponse, UserResponse
from acadigo.services import auth as auth_service
from acadigo.services import users as user_service
from acadigo.services.activity import log_activity

router = APIRouter()


# === Schemas ===

class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


# === API endpoints ===

@router.post("/login", response_model=LoginResponse, dependencies=[Depends(limit_by_client)])
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Exchange email and password for a bearer token."""
    user, token = auth_service.login(db, settings, payload.email, payload.password, client_meta(request))
    return LoginResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: UserCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Accounts are provisioned by an admin; there is no self sign-up."""
    user = user_service.create_user(db, **payload.model_dump())
    log_activity(
        db, current_user.id, "register_user", ResourceType.USER, user.id,
        details={"role": user.role.value}, meta=client_meta(request),
    )
    return user


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tokens are stateless; the client drops its copy."""
    log_activity(db, current_user.id, "logout", ResourceType.AUTH, meta=client_meta(request))
    return MessageResponse(message="Logged out")
