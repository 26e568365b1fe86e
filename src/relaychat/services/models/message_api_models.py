from pydantic import BaseModel
from datetime import datetime


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    message: str
    read: bool
    delivered: bool
    edited: bool
    edited_at: datetime | None = None
    deleted: bool
    created_at: datetime
    sender_username: str | None = None
    sender_avatar: str | None = None
    receiver_username: str | None = None
    receiver_avatar: str | None = None

class MessageEditRequest(BaseModel):
    message: str

class MessageDeleteResponse(BaseModel):
    success: bool = True
    message_id: int
    delete_for_everyone: bool

class UnreadCountResponse(BaseModel):
    sender_id: int
    count: int

class ChatResponse(BaseModel):
    id: int
    username: str
    email: str
    avatar: str
    last_message: str
    last_message_time: datetime
    is_sent: bool
    unread_count: int

    class Config:
        from_attributes = True
