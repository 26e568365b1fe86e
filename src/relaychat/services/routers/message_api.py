from fastapi import APIRouter, Depends, Query

from dishka import FromDishka
from dishka.integrations.fastapi import inject

import logging

from relaychat.core.dto import ConversationMessageDTO
from relaychat.services.conversation import ConversationState
from relaychat.services.identity import IdentityService
from relaychat.services.lifecycle import ConnectionLifecycleManager
from ..models.message_api_models import (
    MessageResponse,
    MessageEditRequest,
    MessageDeleteResponse,
    UnreadCountResponse,
    ChatResponse,
)
from .auth_api import AuthAPI


def to_message_response(msg: ConversationMessageDTO) -> MessageResponse:
    return MessageResponse(
        id=msg.id,
        sender_id=msg.sender_id,
        receiver_id=msg.receiver_id,
        message=msg.body,
        read=msg.is_read,
        delivered=msg.is_delivered,
        edited=msg.is_edited,
        edited_at=msg.edited_at,
        deleted=msg.is_deleted,
        created_at=msg.created_at,
        sender_username=msg.sender_username,
        sender_avatar=msg.sender_avatar,
        receiver_username=msg.receiver_username,
        receiver_avatar=msg.receiver_avatar
    )


class MessageAPI:
    """
    Message history and management endpoints.

    Sending happens over the WebSocket; these endpoints read history and chat
    summaries and offer edit/delete for clients without a live connection.
    Edits and deletions still notify the online counterpart.

    Attributes:
        logger: Logger instance for tracking operations
        auth_api: Authentication API instance for user validation
        message_router: FastAPI router containing message endpoints
    """

    def __init__(
            self,
            logger: logging.Logger,
            auth_api: AuthAPI
    ):
        self.logger = logger
        self.auth_api = auth_api
        self._message_router = APIRouter(tags=["Messages"])
        self._register_endpoints()

    @property
    def message_router(self) -> APIRouter:
        return self._message_router

    def get_router(self) -> APIRouter:
        return self._message_router

    def _register_endpoints(self):
        @self.message_router.get("/chats", response_model=list[ChatResponse])
        @inject
        async def get_chat_list(
                identity: FromDishka[IdentityService],
                conversation: FromDishka[ConversationState],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Chat list of the current user, most recent conversation first.

            Returns:
                One entry per counterpart with the last message and unread count
            """
            user_id = await self.auth_api.get_current_user(identity, token)
            return [ChatResponse.model_validate(chat) for chat in await conversation.chat_list(user_id)]

        @self.message_router.get("/messages/{other_user_id}", response_model=list[MessageResponse])
        @inject
        async def get_conversation_history(
                other_user_id: int,
                identity: FromDishka[IdentityService],
                conversation: FromDishka[ConversationState],
                limit: int | None = Query(None, ge=1, le=500),
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Retrieve conversation history with another user.

            Args:
                other_user_id: ID of the other conversation participant
                limit: Maximum number of most recent messages

            Returns:
                Messages in chronological order
            """
            user_id = await self.auth_api.get_current_user(identity, token)
            history = await conversation.history(user_id, other_user_id, limit)
            return [to_message_response(msg) for msg in history]

        @self.message_router.get("/unread", response_model=list[UnreadCountResponse])
        @inject
        async def get_unread_counts(
                identity: FromDishka[IdentityService],
                conversation: FromDishka[ConversationState],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            user_id = await self.auth_api.get_current_user(identity, token)
            counts = await conversation.unread_counts_for(user_id)
            return [
                UnreadCountResponse(sender_id=sender_id, count=count)
                for sender_id, count in counts.items()
            ]

        @self.message_router.put("/messages/{message_id}", response_model=MessageResponse)
        @inject
        async def edit_message(
                message_id: int,
                edit_data: MessageEditRequest,
                identity: FromDishka[IdentityService],
                conversation: FromDishka[ConversationState],
                lifecycle: FromDishka[ConnectionLifecycleManager],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Edit a message. Only its sender may edit.

            Raises:
                MessageNotFound: Unknown message id
                NotAuthorized: Caller is not the sender or the message was deleted
            """
            user_id = await self.auth_api.get_current_user(identity, token)
            result = await lifecycle.execute(
                lambda: conversation.edit(user_id, message_id, edit_data.message)
            )
            msg = result.message
            return MessageResponse(
                id=msg.id,
                sender_id=msg.sender_id,
                receiver_id=msg.receiver_id,
                message=msg.body,
                read=msg.is_read,
                delivered=msg.is_delivered,
                edited=msg.is_edited,
                edited_at=msg.edited_at,
                deleted=msg.is_deleted,
                created_at=msg.created_at
            )

        @self.message_router.delete("/messages/{message_id}", response_model=MessageDeleteResponse)
        @inject
        async def delete_message(
                message_id: int,
                identity: FromDishka[IdentityService],
                conversation: FromDishka[ConversationState],
                lifecycle: FromDishka[ConnectionLifecycleManager],
                delete_for_everyone: bool = False,
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Delete a message for the caller only, or for both parties.

            Args:
                message_id: Message to delete
                delete_for_everyone: Replace the body with a tombstone for both sides (sender only)
            """
            user_id = await self.auth_api.get_current_user(identity, token)
            result = await lifecycle.execute(
                lambda: conversation.delete(user_id, message_id, delete_for_everyone)
            )
            return MessageDeleteResponse(
                message_id=result.message_id,
                delete_for_everyone=result.for_everyone
            )
