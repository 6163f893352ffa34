# ridesharex/api/dependencies.py
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridesharex.core.security import verify_access_token
from ridesharex.db import crud_users
from ridesharex.db.models import User
from ridesharex.db.session import AsyncSessionLocal, get_db
from ridesharex.realtime.manager import ConnectionManager, manager
from ridesharex.workflow.context import RequestContext
from ridesharex.workflow.states import Role

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


async def user_from_token(db: AsyncSession, token: str) -> Optional[User]:
    """
    Resolve an access token to its user, or None. Shared by HTTP and websocket auth.
    """
    try:
        payload = verify_access_token(token)
    except JWTError:
        logger.info("Rejected access token", exc_info=True)
        return None

    try:
        uid = int(payload.get("sub") or payload.get("user_id"))
    except (TypeError, ValueError):
        return None
    return await crud_users.get_user(db, uid)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )

    user = await user_from_token(db, credentials.credentials)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )
    return user


def require_role(role: str):
    """
    Dependency factory:
      current_user = Depends(require_role("host"))
    Admins always pass.
    """

    async def dep(user: User = Depends(get_current_user)) -> User:
        if user.role != role and user.role != Role.ADMIN.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
            )
        return user

    return dep


def get_request_context(request: Request) -> RequestContext:
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return RequestContext(ip_address=ip, user_agent=request.headers.get("user-agent"))


def get_session_factory(request: Request) -> async_sessionmaker:
    # tests swap the factory on app.state
    return getattr(request.app.state, "session_factory", AsyncSessionLocal)


def get_publisher(request: Request) -> ConnectionManager:
    return getattr(request.app.state, "connection_manager", manager)

