from pydantic import BaseModel, Field


class SocketPayload(BaseModel):
    class Config:
        populate_by_name = True

class AuthenticatePayload(SocketPayload):
    token: str = Field(..., min_length=1)

class SendMessagePayload(SocketPayload):
    receiver_id: int = Field(..., alias="receiverId")
    message: str

class TypingPayload(SocketPayload):
    receiver_id: int = Field(..., alias="receiverId")
    is_typing: bool = Field(False, alias="isTyping")

class MarkReadPayload(SocketPayload):
    sender_id: int = Field(..., alias="senderId")

class EditMessagePayload(SocketPayload):
    message_id: int = Field(..., alias="messageId")
    message: str
    receiver_id: int | None = Field(None, alias="receiverId") # routing uses the stored receiver

class DeleteMessagePayload(SocketPayload):
    message_id: int = Field(..., alias="messageId")
    delete_for_everyone: bool = Field(False, alias="deleteForEveryone")
    receiver_id: int | None = Field(None, alias="receiverId") # routing uses the stored receiver
