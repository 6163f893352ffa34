# ridesharex/schemas/auth.py
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field

from ridesharex.schemas.user import UserOut


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: Optional[UserOut] = None

    model_config = {"from_attributes": True}


class RefreshRequest(BaseModel):
    # the web client sends "refresh", the mobile app "refresh_token"
    refresh_token: str = Field(
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refresh"),
    )
