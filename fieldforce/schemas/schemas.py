"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=4)

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=2)
    phone: Optional[str] = Field(None, min_length=10, max_length=20)
    entity_id: Optional[str] = None
    reports_to_id: Optional[str] = None

class RefreshRequest(BaseModel):
    refresh_token: str

class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=4)
    new_password: str = Field(..., min_length=8)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

class ClaimsOut(BaseModel):
    user_id: str
    email: str
    role_name: str
    role_level: int
    permissions: List[str] = []
    expires_at: Optional[datetime] = None


# ---- Role / Permission ----
class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None

class PermissionOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    level: int = Field(..., ge=0)
    entity_id: Optional[str] = None
    description: Optional[str] = None
    permission_ids: List[str] = []

class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    level: Optional[int] = Field(None, ge=0)
    entity_id: Optional[str] = None
    description: Optional[str] = None
    permission_ids: Optional[List[str]] = None

class RolePermissionsUpdate(BaseModel):
    permission_ids: List[str]

class RoleOut(BaseModel):
    id: str
    name: str
    level: int
    entity_id: Optional[str] = None
    description: Optional[str] = None
    permissions: List[str] = Field(default=[], validation_alias="permission_names")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


# ---- Entity ----
class EntityCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)

class EntityUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    is_active: Optional[bool] = None

class EntityOut(BaseModel):
    id: str
    name: str
    code: str
    is_active: bool = True
    created_at: Optional[datetime] = None
    user_count: Optional[int] = None
    role_count: Optional[int] = None

    class Config:
        from_attributes = True


# ---- User ----
class UserCreate(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    role_id: str
    entity_id: Optional[str] = None
    reports_to_id: Optional[str] = None

class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role_id: Optional[str] = None
    is_active: Optional[bool] = None

class ManagerUpdate(BaseModel):
    reports_to_id: Optional[str] = None

class UserOut(BaseModel):
    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    role: Optional[str] = None
    role_level: Optional[int] = None
    entity_id: Optional[str] = None
    reports_to_id: Optional[str] = None
    is_active: bool = True
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            phone=user.phone,
            role=user.role.name if user.role else None,
            role_level=user.role.level if user.role else None,
            entity_id=user.entity_id,
            reports_to_id=user.reports_to_id,
            is_active=user.is_active,
            avatar_url=user.avatar_url,
            created_at=user.created_at,
        )

class LoginResponse(TokenResponse):
    user: UserOut

class DownlineOut(BaseModel):
    user_id: str
    user_ids: List[str]


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None

class PaginatedResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[Any] = []
