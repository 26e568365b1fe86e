from dataclasses import dataclass, field
import logging

from relaychat.core.dto import MessageDTO, UserDTO
from relaychat.core.exceptions import ValidationError, NotAuthenticated, NotAuthorized
from relaychat.core.interfaces import MessageInterface
from .contacts import ContactService
from .events import Connection, OutboundEvent
from .identity import IdentityService
from .presence import PresenceRegistry


def message_payload(message: MessageDTO, sender: UserDTO | None) -> dict:
    return {
        "id": message.id,
        "senderId": message.sender_id,
        "senderUsername": sender.username if sender else None,
        "senderAvatar": sender.avatar if sender else None,
        "receiverId": message.receiver_id,
        "message": message.body,
        "read": message.is_read,
        "delivered": message.is_delivered,
        "edited": message.is_edited,
        "deleted": message.is_deleted,
        "createdAt": message.created_at.isoformat(),
    }


def clean_body(body: str, max_length: int) -> str:
    if not isinstance(body, str) or not body.strip():
        raise ValidationError("Message cannot be empty")

    body = body.strip()
    if len(body) > max_length:
        raise ValidationError(f"Message must be at most {max_length} characters")
    return body


@dataclass
class DeliveryResult:
    message: MessageDTO
    delivered_live: bool
    events: list[OutboundEvent] = field(default_factory=list)


class MessageRouter:
    """
    Store-and-forward delivery of new messages.

    Every message is persisted before anything is emitted. A receiver that is
    online gets `new-message` on their connection; the sender always gets
    `message-sent` with the stored id and timestamp.
    """
    def __init__(
            self,
            message_gateway: MessageInterface,
            identity: IdentityService,
            contacts: ContactService,
            presence: PresenceRegistry,
            max_message_length: int = 5000,
            logger: logging.Logger | None = None
    ):
        self.message_gateway = message_gateway
        self.identity = identity
        self.contacts = contacts
        self.presence = presence
        self.max_message_length = max_message_length
        self.logger = logger or logging.getLogger(__name__)

    async def send(
            self,
            sender_id: int | None,
            receiver_id: int,
            body: str,
            origin: Connection | None = None
    ) -> DeliveryResult:
        """
        Persist a message and route it.
        Args:
            sender_id: Authenticated sender
            receiver_id: Target user
            body: Message text
            origin: Sender's connection, receives the confirmation
        Returns:
            DeliveryResult with the stored message and the events to dispatch
        """
        if sender_id is None:
            raise NotAuthenticated()

        body = clean_body(body, self.max_message_length)
        if receiver_id == sender_id:
            raise ValidationError("Cannot send a message to yourself")

        receiver = await self.identity.resolve(receiver_id)
        if receiver is None:
            raise ValidationError("Receiver not found")

        if await self.contacts.is_blocked(receiver_id, sender_id):
            raise NotAuthorized("You cannot message this user")

        message = await self.message_gateway.create_message(sender_id, receiver_id, body)
        sender = await self.identity.resolve(sender_id)

        events = []
        receiver_handle = self.presence.handle_for(receiver_id)
        if receiver_handle is not None:
            await self.message_gateway.mark_as_delivered([message.id])
            message = message.model_copy(update={"is_delivered": True})
            events.append(OutboundEvent.to(receiver_handle, "new-message", message_payload(message, sender)))

        if origin is not None:
            events.append(OutboundEvent.to(origin, "message-sent", message_payload(message, sender)))

        self.logger.info(
            "Message %s from %s to %s (%s)",
            message.id, sender_id, receiver_id, "live" if receiver_handle else "stored"
        )
        return DeliveryResult(message=message, delivered_live=receiver_handle is not None, events=events)
