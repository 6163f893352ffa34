# ridesharex/db/crud_users.py

from typing import Optional, List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.db.models import User, UserRefreshToken
from ridesharex.core.security import get_password_hash
from ridesharex.workflow.states import Role, UserApprovalStatus


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    res = await db.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == email.lower()))
    return res.scalar_one_or_none()


async def list_users(
    db: AsyncSession,
    *,
    role: Optional[str] = None,
    approval_status: Optional[str] = None,
) -> List[User]:
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    if approval_status:
        stmt = stmt.where(User.approval_status == approval_status)
    res = await db.execute(stmt.order_by(User.id.desc()))
    return list(res.scalars().all())


async def create_user(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    phone: Optional[str] = None,
    role: str = Role.RENTER.value,
    approval_status: str = UserApprovalStatus.PENDING.value,
) -> User:
    """
    Create a user with hashed password.
    Everyone enters approval as 'pending'; seeds may pass 'approved'.
    """
    hashed = get_password_hash(password)
    user = User(
        name=name,
        email=email.lower(),
        phone=phone,
        hashed_password=hashed,
        role=role,
        approval_status=approval_status,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def update_user_role(db: AsyncSession, user_id: int, role: str) -> Optional[User]:
    user = await get_user(db, user_id)
    if not user:
        return None

    user.role = role
    await db.commit()
    await db.refresh(user)
    return user


async def save_refresh_token(db: AsyncSession, user_id: int, token: str) -> None:
    """
    Store a new refresh token for the user.
    Simple strategy: revoke existing, then insert new.
    """
    await db.execute(
        update(UserRefreshToken)
        .where(UserRefreshToken.user_id == user_id, UserRefreshToken.revoked == False)  # noqa: E712
        .values(revoked=True)
    )

    db.add(UserRefreshToken(user_id=user_id, token=token))
    await db.commit()


async def is_refresh_token_active(db: AsyncSession, token: str) -> bool:
    res = await db.execute(
        select(UserRefreshToken.id).where(
            UserRefreshToken.token == token,
            UserRefreshToken.revoked == False,  # noqa: E712
        )
    )
    return res.first() is not None


async def revoke_refresh_token(db: AsyncSession, token: str) -> None:
    """
    Mark a single refresh token as revoked.
    """
    await db.execute(
        update(UserRefreshToken)
        .where(UserRefreshToken.token == token, UserRefreshToken.revoked == False)  # noqa: E712
        .values(revoked=True)
    )
    await db.commit()
