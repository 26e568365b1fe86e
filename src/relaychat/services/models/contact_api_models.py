from pydantic import BaseModel, Field
from datetime import datetime


class ContactCreateRequest(BaseModel):
    contact_email: str
    contact_name: str | None = Field(None, max_length=100)

class ContactResponse(BaseModel):
    id: int
    contact_id: int
    contact_name: str
    contact_username: str | None = None
    contact_email: str | None = None
    contact_avatar: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True

class BlockCreateRequest(BaseModel):
    blocked_user_id: int

class BlockResponse(BaseModel):
    id: int
    blocked_user_id: int
    blocked_username: str | None = None
    blocked_email: str | None = None
    blocked_avatar: str | None = None
    created_at: datetime
