from dataclasses import dataclass, field
import logging

from relaychat.core.dto import MessageDTO, ConversationMessageDTO, ChatSummaryDTO
from relaychat.core.exceptions import ValidationError, MessageNotFound, NotAuthorized
from relaychat.core.interfaces import MessageInterface, UserInterface
from .events import Connection, OutboundEvent
from .message_router import clean_body
from .presence import PresenceRegistry


@dataclass
class UpdatedMessage:
    message: MessageDTO
    events: list[OutboundEvent] = field(default_factory=list)


@dataclass
class DeletionResult:
    message_id: int
    for_everyone: bool
    events: list[OutboundEvent] = field(default_factory=list)


@dataclass
class ReadResult:
    marked: int
    events: list[OutboundEvent] = field(default_factory=list)


class ConversationState:
    """
    Lifecycle of messages already sent: edit, delete, read receipts, and the
    derived per-pair views (history, unread counts, chat list).

    Mutations persist first, then notify the counterpart only if online, and
    always confirm to the acting connection when one is given.

    "Delete for me" hides the message from the actor's views only; the shared
    row and the counterpart's view are untouched. "Delete for everyone"
    replaces the body with a tombstone visible to both sides.
    """
    def __init__(
            self,
            message_gateway: MessageInterface,
            user_gateway: UserInterface,
            presence: PresenceRegistry,
            tombstone_text: str = "This message was deleted",
            history_limit: int = 50,
            max_message_length: int = 5000,
            logger: logging.Logger | None = None
    ):
        self.message_gateway = message_gateway
        self.user_gateway = user_gateway
        self.presence = presence
        self.tombstone_text = tombstone_text
        self.history_limit = history_limit
        self.max_message_length = max_message_length
        self.logger = logger or logging.getLogger(__name__)

    async def edit(
            self,
            actor_id: int,
            message_id: int,
            new_body: str,
            origin: Connection | None = None
    ) -> UpdatedMessage:
        new_body = clean_body(new_body, self.max_message_length)

        message = await self.message_gateway.get_message_by_id(message_id)
        if message is None:
            raise MessageNotFound()
        if message.sender_id != actor_id:
            raise NotAuthorized("Not authorized to edit this message")
        if message.is_deleted:
            raise NotAuthorized("Cannot edit a deleted message")

        updated = await self.message_gateway.update_message_body(message_id, new_body)
        if updated is None:
            raise MessageNotFound()

        payload = {
            "messageId": updated.id,
            "message": updated.body,
            "edited": True,
            "editedAt": updated.edited_at.isoformat() if updated.edited_at else None,
        }

        events = []
        receiver_handle = self.presence.handle_for(updated.receiver_id)
        if receiver_handle is not None:
            events.append(OutboundEvent.to(receiver_handle, "message-edited", payload))
        if origin is not None:
            events.append(OutboundEvent.to(origin, "message-edit-confirmed", payload))

        self.logger.info("Message %s edited by user %s", message_id, actor_id)
        return UpdatedMessage(message=updated, events=events)

    async def delete(
            self,
            actor_id: int,
            message_id: int,
            for_everyone: bool,
            origin: Connection | None = None
    ) -> DeletionResult:
        message = await self.message_gateway.get_message_by_id(message_id)
        if message is None:
            raise MessageNotFound()
        if actor_id not in (message.sender_id, message.receiver_id):
            raise NotAuthorized("Not authorized to delete this message")

        events = []
        if for_everyone:
            if message.sender_id != actor_id:
                raise NotAuthorized("Only the sender can delete a message for everyone")

            await self.message_gateway.mark_as_deleted(message_id, self.tombstone_text)

            receiver_handle = self.presence.handle_for(message.receiver_id)
            if receiver_handle is not None:
                events.append(OutboundEvent.to(
                    receiver_handle,
                    "message-deleted",
                    {"messageId": message_id, "deleteForEveryone": True}
                ))
        else:
            await self.message_gateway.hide_message(message_id, actor_id)

        if origin is not None:
            events.append(OutboundEvent.to(
                origin,
                "message-delete-confirmed",
                {"messageId": message_id, "deleteForEveryone": bool(for_everyone)}
            ))

        self.logger.info(
            "Message %s deleted by user %s (%s)",
            message_id, actor_id, "everyone" if for_everyone else "self"
        )
        return DeletionResult(message_id=message_id, for_everyone=bool(for_everyone), events=events)

    async def mark_read(self, reader_id: int, counterpart_id: int) -> ReadResult:
        """
        Mark everything counterpart sent to reader as read.
        The receipt is only emitted when something actually changed.
        """
        marked = await self.message_gateway.mark_as_read(sender_id=counterpart_id, receiver_id=reader_id)

        events = []
        if marked:
            counterpart_handle = self.presence.handle_for(counterpart_id)
            if counterpart_handle is not None:
                events.append(OutboundEvent.to(counterpart_handle, "messages-read", {"userId": reader_id}))
            self.logger.debug("User %s read %s messages from %s", reader_id, marked, counterpart_id)

        return ReadResult(marked=marked, events=events)

    async def unread_counts_for(self, user_id: int) -> dict[int, int]:
        return await self.message_gateway.get_unread_counts(user_id)

    async def history(self, viewer_id: int, counterpart_id: int, limit: int | None = None) -> list[ConversationMessageDTO]:
        """
        Transcript between viewer and counterpart, oldest first.
        Args:
            viewer_id: User reading the history; their hidden messages are skipped
            counterpart_id: Other participant
            limit: Number of most recent messages (defaults to the configured limit)
        Returns:
            Messages annotated with current sender/receiver profiles
        """
        limit = self.history_limit if limit is None else limit
        if limit <= 0:
            raise ValidationError("Limit must be positive")

        # fetching the transcript counts as delivery of what viewer received
        await self.message_gateway.mark_received_as_delivered(receiver_id=viewer_id, sender_id=counterpart_id)

        messages = await self.message_gateway.get_conversation_history(viewer_id, counterpart_id, limit)
        users = {
            user.id: user
            for user in await self.user_gateway.get_users_by_ids([viewer_id, counterpart_id])
        }

        result = []
        for m in messages:
            sender = users.get(m.sender_id)
            receiver = users.get(m.receiver_id)
            result.append(ConversationMessageDTO(
                **m.model_dump(),
                sender_username=sender.username if sender else None,
                sender_avatar=sender.avatar if sender else None,
                receiver_username=receiver.username if receiver else None,
                receiver_avatar=receiver.avatar if receiver else None
            ))
        return result

    async def chat_list(self, user_id: int) -> list[ChatSummaryDTO]:
        """ One entry per counterpart with the last visible message, newest first """
        messages = await self.message_gateway.get_messages_for_user(user_id)

        last_by_counterpart: dict[int, MessageDTO] = {}
        for m in messages:
            # messages arrive oldest first, so later ones overwrite
            other_id = m.receiver_id if m.sender_id == user_id else m.sender_id
            last_by_counterpart[other_id] = m

        unread = await self.message_gateway.get_unread_counts(user_id)
        users = {
            user.id: user
            for user in await self.user_gateway.get_users_by_ids(list(last_by_counterpart))
        }

        chats = []
        for other_id, last in last_by_counterpart.items():
            user = users.get(other_id)
            if user is None:
                continue
            chats.append(ChatSummaryDTO(
                id=user.id,
                username=user.username,
                email=user.email,
                avatar=user.avatar,
                last_message=last.body,
                last_message_time=last.created_at,
                is_sent=last.sender_id == user_id,
                unread_count=unread.get(other_id, 0)
            ))

        chats.sort(key=lambda c: c.last_message_time, reverse=True)
        return chats
