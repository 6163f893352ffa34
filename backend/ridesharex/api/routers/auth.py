# ridesharex/api/routers/auth.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from jose import JWTError

from ridesharex.db.session import get_db
from ridesharex.db import crud_users
from ridesharex.schemas.auth import RefreshRequest, Token
from ridesharex.schemas.user import UserCreate, UserLogin, UserOut
from ridesharex.core.security import create_token_pair, decode_refresh_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


async def _login_response(db: AsyncSession, user) -> Token:
    """
    Issue a new token pair; the refresh token is stored so it can be revoked.
    """
    access, refresh = create_token_pair(user)
    await crud_users.save_refresh_token(db, user.id, refresh)
    return Token(access_token=access, refresh_token=refresh, user=UserOut.model_validate(user))


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(payload: UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Sign up as renter or host. The account waits for admin approval
    ('pending') but can log in straight away.
    """
    if await crud_users.get_user_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email exists")

    user = await crud_users.create_user(
        db=db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        phone=payload.phone,
        role=payload.role,
    )
    logger.info("Registered user %s as %s", user.id, user.role)
    return await _login_response(db, user)


@router.post("/login", response_model=Token)
async def login(payload: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await crud_users.get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.hashed_password):
        logger.info("Failed login for %s", payload.email)
        raise _unauthorized("Invalid credentials")
    return await _login_response(db, user)


@router.post("/refresh", response_model=Token)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    try:
        claims = decode_refresh_token(body.refresh_token)
    except JWTError:
        raise _unauthorized("Invalid refresh token")

    if not await crud_users.is_refresh_token_active(db, body.refresh_token):
        raise _unauthorized("Refresh token revoked")

    user = await crud_users.get_user(db, int(claims["user_id"]))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return await _login_response(db, user)


@router.post("/logout")
async def logout(body: Optional[RefreshRequest] = None, db: AsyncSession = Depends(get_db)):
    # clients without a stored refresh token may post an empty body
    if body is not None:
        await crud_users.revoke_refresh_token(db, body.refresh_token)
    return {"ok": True}
