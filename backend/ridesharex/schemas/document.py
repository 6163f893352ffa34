# ridesharex/schemas/document.py
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel


class DocumentOut(BaseModel):
    id: int
    user_id: int
    document_type: str
    file_name: str
    file_url: str
    status: str
    rejection_reason: Optional[str] = None
    uploaded_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by_id: Optional[int] = None
    expiry_date: Optional[date] = None

    model_config = {"from_attributes": True}
