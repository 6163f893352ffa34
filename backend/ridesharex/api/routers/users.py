# ridesharex/api/routers/users.py
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.api.dependencies import get_current_user
from ridesharex.db.session import get_db
from ridesharex.schemas.user import UserBase

router = APIRouter()


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=20)


@router.get("/me")
async def me(current_user=Depends(get_current_user)):
    return UserBase.model_validate(current_user)


@router.patch("/me")
async def update_me(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """
    Users edit their own profile; approval fields are admin-only.
    """
    for k, v in body.model_dump(exclude_unset=True).items():
        if v is not None:
            setattr(current_user, k, v)
    await db.commit()
    await db.refresh(current_user)
    return UserBase.model_validate(current_user)
