# ridesharex/api/transitions.py
from fastapi import BackgroundTasks, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.api.dependencies import get_publisher, get_session_factory
from ridesharex.db.models import User
from ridesharex.workflow import outbox
from ridesharex.workflow.context import RequestContext
from ridesharex.workflow.executor import TransitionRequest, TransitionResult, apply_transition


async def run_transition(
    db: AsyncSession,
    actor: User,
    transition: TransitionRequest,
    *,
    context: RequestContext,
    request: Request,
    background_tasks: BackgroundTasks,
) -> TransitionResult:
    """
    Apply the transition, then try to deliver its notification right after
    the response. Whatever is not delivered here the periodic dispatcher
    picks up.
    """
    result = await apply_transition(db, actor, transition, context)
    background_tasks.add_task(
        outbox.dispatch_now,
        get_session_factory(request),
        get_publisher(request),
    )
    return result
