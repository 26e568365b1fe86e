from pydantic import BaseModel
from datetime import datetime

class UserDTO(BaseModel):
    """ Public profile, never carries the password hash """
    id: int
    username: str
    email: str
    avatar: str
    created_at: datetime | None = None

class UserCredentialsDTO(UserDTO):
    hashed_password: str

class ContactDTO(BaseModel):
    id: int
    owner_id: int
    contact_id: int
    contact_name: str
    created_at: datetime

class ContactWithUserDTO(ContactDTO):
    contact_username: str | None = None
    contact_email: str | None = None
    contact_avatar: str | None = None

class BlockDTO(BaseModel):
    id: int
    owner_id: int
    blocked_id: int
    created_at: datetime

class BlockWithUserDTO(BlockDTO):
    blocked_username: str | None = None
    blocked_email: str | None = None
    blocked_avatar: str | None = None

class MessageDTO(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    body: str
    is_read: bool
    is_delivered: bool
    is_edited: bool
    edited_at: datetime | None = None
    is_deleted: bool
    deleted_at: datetime | None = None
    created_at: datetime

class ConversationMessageDTO(MessageDTO):
    """ Message annotated with profile snapshots joined at read time """
    sender_username: str | None = None
    sender_avatar: str | None = None
    receiver_username: str | None = None
    receiver_avatar: str | None = None

class ChatSummaryDTO(BaseModel):
    id: int
    username: str
    email: str
    avatar: str
    last_message: str
    last_message_time: datetime
    is_sent: bool
    unread_count: int
