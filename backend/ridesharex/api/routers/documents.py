from datetime import date
from pathlib import Path
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.api.dependencies import get_current_user, get_request_context, require_role
from ridesharex.api.transitions import run_transition
from ridesharex.core.config import get_settings
from ridesharex.db.session import get_db
from ridesharex.db import crud_documents
from ridesharex.schemas.document import DocumentOut
from ridesharex.schemas.workflow import StatusUpdate
from ridesharex.workflow.context import RequestContext
from ridesharex.workflow.executor import TransitionRequest
from ridesharex.workflow.permissions import DOCUMENT_UPLOAD, require_capability
from ridesharex.workflow.states import DocumentType, EntityType

router = APIRouter()

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "application/pdf"}
CHUNK_SIZE = 1024 * 1024


def _too_large() -> HTTPException:
    return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")


def _save_upload(upload: UploadFile, user_id: int) -> tuple[str, str]:
    """
    Store the file under STATIC_UPLOAD_DIR/documents and return (file_name, url).
    """
    settings = get_settings()
    upload_dir = Path(settings.STATIC_UPLOAD_DIR) / "documents"
    upload_dir.mkdir(parents=True, exist_ok=True)

    original = Path(upload.filename or "document").name
    stored = f"{user_id}_{uuid4().hex}_{original}"
    dest = upload_dir / stored
    written = 0
    with dest.open("wb") as f:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > settings.MAX_UPLOAD_BYTES:
                break
            f.write(chunk)

    if written > settings.MAX_UPLOAD_BYTES:
        dest.unlink(missing_ok=True)
        raise _too_large()
    return original, f"/static/uploads/documents/{stored}"


@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_document(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
    document_type: DocumentType = Form(...),
    expiry_date: Optional[date] = Form(None),
    file: UploadFile = File(...),
):
    """
    Upload a proof document (licence, ID, registration, roadworthy, insurance).
    Every upload starts as 'pending' and waits for admin review.
    """
    require_capability(current_user, DOCUMENT_UPLOAD)
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported file type")
    # the multipart parser records the spooled size; reject before copying
    if file.size is not None and file.size > get_settings().MAX_UPLOAD_BYTES:
        raise _too_large()

    file_name, url = _save_upload(file, current_user.id)
    document = await crud_documents.create_document(
        db,
        user_id=current_user.id,
        document_type=document_type.value,
        file_name=file_name,
        file_url=url,
        expiry_date=expiry_date,
    )
    return {
        "success": True,
        "message": "Document uploaded successfully",
        "data": DocumentOut.model_validate(document),
    }


@router.get("/mine")
async def my_documents(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    documents = await crud_documents.list_documents_for_user(db, current_user.id)
    return {
        "document_status": current_user.document_status,
        "items": [DocumentOut.model_validate(d) for d in documents],
    }


@router.get("")
async def list_documents(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    status: Optional[str] = None,
):
    """
    Admin review queue; pass ?status=pending for outstanding documents.
    """
    documents = await crud_documents.list_documents(db, status=status)
    return {"items": [DocumentOut.model_validate(d) for d in documents]}


@router.put("/{document_id}/status")
async def review_document(
    document_id: int,
    body: StatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    context: RequestContext = Depends(get_request_context),
):
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.DOCUMENT.value,
            entity_id=document_id,
            new_status=body.status,
            reason=body.reason,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    return {
        "success": True,
        "message": f"Document {result.new_status} successfully",
        "data": DocumentOut.model_validate(result.entity),
    }
