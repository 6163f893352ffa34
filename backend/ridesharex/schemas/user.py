# ridesharex/schemas/user.py
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field


class UserBase(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: Optional[str] = None
    role: str
    approval_status: str
    document_status: str

    model_config = {"from_attributes": True}


class UserAdminOut(UserBase):
    rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8)
    phone: Optional[str] = Field(default=None, max_length=20)
    # admins are never self-registered
    role: Literal["renter", "host"] = "renter"


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserRoleUpdate(BaseModel):
    """
    Admin role change:
      body: { "role": "renter" | "host" | "admin" }
    """
    role: Literal["renter", "host", "admin"]


class UserOut(UserBase):
    """
    Public-facing user data (e.g. auth token payload).
    """
    pass
