from .events import Connection, EventDispatcher, OutboundEvent
from .presence import PresenceRegistry
from .identity import IdentityService
from .contacts import ContactService
from .message_router import MessageRouter
from .conversation import ConversationState
from .typing_relay import TypingCoordinator
from .lifecycle import ConnectionLifecycleManager

__all__ = [
    "Connection",
    "EventDispatcher",
    "OutboundEvent",
    "PresenceRegistry",
    "IdentityService",
    "ContactService",
    "MessageRouter",
    "ConversationState",
    "TypingCoordinator",
    "ConnectionLifecycleManager",
]
