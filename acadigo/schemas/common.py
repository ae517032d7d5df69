"""Response models shared by several routers."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from acadigo.models import UserRole


class FileDescriptor(BaseModel):
    file_name: str
    file_url: str
    file_path: str
    file_size: int

    model_config = {"from_attributes": True}


class UserBrief(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    batch_id: Optional[int] = None
    active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BatchBrief(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    success: bool = True
    message: str
