# ridesharex/db/crud_notifications.py

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.db.models import Notification, utcnow


async def create_notification(
    db: AsyncSession,
    *,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    priority: str = "medium",
) -> Notification:
    """
    Add an unread, unsent notification and flush so its id is known.
    No commit here; see workflow.executor.
    """
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data or {},
        priority=priority,
        is_read=False,
        is_sent=False,
    )
    db.add(notification)
    await db.flush()
    return notification


async def list_notifications_for_user(
    db: AsyncSession,
    user_id: int,
    *,
    unread_only: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> Tuple[List[Notification], int, int]:
    """
    Returns (items, total, unread_count) for the user's inbox, newest first.
    """
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    unread = (
        await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
    ).scalar_one()

    stmt = stmt.order_by(Notification.id.desc()).offset((page - 1) * per_page).limit(per_page)
    res = await db.execute(stmt)
    return list(res.scalars().all()), int(total), int(unread)


async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> Optional[Notification]:
    res = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = res.scalar_one_or_none()
    if notification is None:
        return None
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await db.commit()
        await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    res = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True, read_at=utcnow())
    )
    await db.commit()
    return res.rowcount or 0
