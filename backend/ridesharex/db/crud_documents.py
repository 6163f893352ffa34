# ridesharex/db/crud_documents.py

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.db.models import Document, User
from ridesharex.workflow.states import DocumentStatus, UserDocumentStatus


def summarize_document_status(statuses: List[str]) -> str:
    """
    Roll a user's document statuses up into User.document_status.
    """
    if not statuses:
        return UserDocumentStatus.NOT_UPLOADED.value
    if DocumentStatus.REJECTED.value in statuses:
        return UserDocumentStatus.REJECTED.value
    if DocumentStatus.PENDING.value in statuses:
        return UserDocumentStatus.PENDING.value
    return UserDocumentStatus.APPROVED.value


async def refresh_user_document_status(db: AsyncSession, user_id: int) -> str:
    """
    Recompute and set (not commit) the user's document_status.
    """
    res = await db.execute(select(Document.status).where(Document.user_id == user_id))
    summary = summarize_document_status([row[0] for row in res.all()])
    user = await db.get(User, user_id)
    if user is not None and user.document_status != summary:
        user.document_status = summary
    return summary


async def create_document(
    db: AsyncSession,
    *,
    user_id: int,
    document_type: str,
    file_name: str,
    file_url: str,
    expiry_date: Optional[date] = None,
) -> Document:
    """
    New uploads ALWAYS start as status='pending'.
    """
    document = Document(
        user_id=user_id,
        document_type=document_type,
        file_name=file_name,
        file_url=file_url,
        expiry_date=expiry_date,
        status=DocumentStatus.PENDING.value,
    )
    db.add(document)
    await db.flush()
    await refresh_user_document_status(db, user_id)
    await db.commit()
    await db.refresh(document)
    return document


async def list_documents_for_user(db: AsyncSession, user_id: int) -> List[Document]:
    res = await db.execute(
        select(Document).where(Document.user_id == user_id).order_by(Document.id.desc())
    )
    return list(res.scalars().all())


async def list_documents(db: AsyncSession, status: Optional[str] = None) -> List[Document]:
    stmt = select(Document)
    if status:
        stmt = stmt.where(Document.status == status)
    res = await db.execute(stmt.order_by(Document.uploaded_at.asc(), Document.id.asc()))
    return list(res.scalars().all())
