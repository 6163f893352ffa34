# ridesharex/db/crud_admin_logs.py

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.db.models import AdminLog, User
from ridesharex.workflow.context import RequestContext


async def record_admin_action(
    db: AsyncSession,
    *,
    actor: Optional[User],
    action: str,
    entity_type: str,
    entity_id: Optional[int],
    target_user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    context: Optional[RequestContext] = None,
) -> AdminLog:
    """
    Append one audit row. Does NOT commit: the caller's transaction owns it,
    so the row lands together with the change it describes.
    """
    context = context or RequestContext()
    log = AdminLog(
        user_id=actor.id if actor is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        target_user_id=target_user_id,
        details=details or {},
        ip_address=context.ip_address,
        user_agent=context.user_agent,
    )
    db.add(log)
    return log


async def list_admin_logs(
    db: AsyncSession,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[AdminLog]:
    stmt = select(AdminLog)
    if entity_type:
        stmt = stmt.where(AdminLog.entity_type == entity_type)
    if entity_id is not None:
        stmt = stmt.where(AdminLog.entity_id == entity_id)
    if actor_id is not None:
        stmt = stmt.where(AdminLog.user_id == actor_id)
    stmt = stmt.order_by(AdminLog.id.desc()).offset(offset).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())
