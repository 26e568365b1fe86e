import logging

from .contacts import ContactService
from .events import OutboundEvent
from .presence import PresenceRegistry


class TypingCoordinator:
    """ Stateless typing-indicator relay; nothing is stored or retried """
    def __init__(
            self,
            presence: PresenceRegistry,
            contacts: ContactService,
            logger: logging.Logger | None = None
    ):
        self.presence = presence
        self.contacts = contacts
        self.logger = logger or logging.getLogger(__name__)

    async def set_typing(
            self,
            sender_id: int,
            sender_username: str | None,
            receiver_id: int,
            is_typing: bool
    ) -> list[OutboundEvent]:
        receiver_handle = self.presence.handle_for(receiver_id)
        if receiver_handle is None:
            return []

        if await self.contacts.is_blocked(receiver_id, sender_id):
            return []

        return [OutboundEvent.to(
            receiver_handle,
            "user-typing",
            {"userId": sender_id, "username": sender_username, "isTyping": bool(is_typing)}
        )]
