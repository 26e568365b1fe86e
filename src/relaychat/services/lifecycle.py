from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar
import asyncio
import logging

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from relaychat.core.dto import UserDTO
from relaychat.core.exceptions import ChatError, ValidationError, NotAuthenticated, InvalidToken
from relaychat.services.models.ws_models import (
    AuthenticatePayload,
    SendMessagePayload,
    TypingPayload,
    MarkReadPayload,
    EditMessagePayload,
    DeleteMessagePayload,
)
from .conversation import ConversationState
from .events import Connection, EventDispatcher, OutboundEvent
from .identity import IdentityService
from .message_router import MessageRouter
from .presence import PresenceRegistry
from .typing_relay import TypingCoordinator

T = TypeVar("T")


class ConnectionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


@dataclass
class ConnectionSession:
    connection: Connection
    state: ConnectionState = ConnectionState.UNAUTHENTICATED
    user_id: int | None = None
    username: str | None = None


def profile_payload(user: UserDTO) -> dict:
    return user.model_dump(mode="json")


class ConnectionLifecycleManager:
    """
    Per-connection state machine and the single entry point for inbound events.

    UNAUTHENTICATED -> AUTHENTICATED -> CLOSED. Only `authenticate` is accepted
    before authentication; everything else fails with NotAuthenticated. CLOSED
    is terminal and ignores further events.

    Every event is handled to completion under one process-wide lock and the
    events it produced are queued for delivery before the lock is released, so
    handlers never interleave and each connection sees events in commit order.
    Sockets are written outside the lock, so a stalled peer delays only itself.
    Failures go back to the originating connection as an `error` event
    (`auth-error` for authentication).

    Attributes:
        identity: Token verification and profile lookup
        presence: Online registry
        dispatcher: Outbound event delivery
    """
    def __init__(
            self,
            identity: IdentityService,
            presence: PresenceRegistry,
            dispatcher: EventDispatcher,
            message_router: MessageRouter,
            conversation: ConversationState,
            typing: TypingCoordinator,
            logger: logging.Logger | None = None
    ):
        self.identity = identity
        self.presence = presence
        self.dispatcher = dispatcher
        self.message_router = message_router
        self.conversation = conversation
        self.typing = typing
        self.logger = logger or logging.getLogger(__name__)
        self._lock = asyncio.Lock()

        self._handlers: dict[str, tuple[type[BaseModel], Callable[[ConnectionSession, Any], Awaitable[list[OutboundEvent]]]]] = {
            "send-message": (SendMessagePayload, self._on_send_message),
            "typing": (TypingPayload, self._on_typing),
            "mark-read": (MarkReadPayload, self._on_mark_read),
            "edit-message": (EditMessagePayload, self._on_edit_message),
            "delete-message": (DeleteMessagePayload, self._on_delete_message),
        }

    def open(self, connection: Connection) -> ConnectionSession:
        self.dispatcher.attach(connection)
        self.logger.debug("Connection opened: %s", connection.id)
        return ConnectionSession(connection=connection)

    async def authenticate(self, session: ConnectionSession, token: str) -> None:
        await self.handle(session, "authenticate", {"token": token})

    async def handle(self, session: ConnectionSession, event: str, payload: Any) -> None:
        """
        Dispatch one inbound event.
        Args:
            session: Session returned by open()
            event: Event name, e.g. "send-message"
            payload: Decoded event body
        """
        async with self._lock:
            if session.state is ConnectionState.CLOSED:
                self.logger.debug("Dropping %s on closed connection %s", event, session.connection.id)
                return

            try:
                events = await self._dispatch(session, event, payload)
            except ChatError as e:
                self.logger.info(
                    "Event %s from connection %s failed: %s (%s)",
                    event, session.connection.id, e.kind, e.message
                )
                events = [OutboundEvent.to(session.connection, "error", e.to_payload())]

            self.dispatcher.deliver(events)

    async def reject(self, session: ConnectionSession, error: ChatError) -> None:
        """ Report a frame that never became an event, e.g. one that is not JSON """
        async with self._lock:
            if session.state is ConnectionState.CLOSED:
                return
            self.dispatcher.deliver([OutboundEvent.to(session.connection, "error", error.to_payload())])

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an operation that did not arrive on a connection (REST edit/delete)
        under the same lock, then dispatch the events on its result.
        """
        async with self._lock:
            result = await operation()
            self.dispatcher.deliver(getattr(result, "events", []))
            return result

    async def close(self, session: ConnectionSession) -> None:
        async with self._lock:
            if session.state is ConnectionState.CLOSED:
                return

            was_authenticated = session.state is ConnectionState.AUTHENTICATED
            session.state = ConnectionState.CLOSED
            self.dispatcher.detach(session.connection)

            events = []
            if was_authenticated:
                # a handle superseded by a newer connection no longer maps to anyone
                user_id = self.presence.unregister(session.connection)
                if user_id is not None:
                    events.append(OutboundEvent.broadcast(
                        "user-status",
                        {"userId": user_id, "username": session.username, "online": False}
                    ))
                self.logger.info("User disconnected: %s (ID: %s)", session.username, session.user_id)
            else:
                self.logger.debug("Connection closed: %s", session.connection.id)

            self.dispatcher.deliver(events)

    async def _dispatch(self, session: ConnectionSession, event: str, payload: Any) -> list[OutboundEvent]:
        if event == "authenticate":
            return await self._on_authenticate(session, payload)

        handler = self._handlers.get(event)
        if handler is None:
            raise ValidationError(f"Unknown event: {event}")

        if session.state is not ConnectionState.AUTHENTICATED:
            raise NotAuthenticated()

        model, callback = handler
        return await callback(session, self._parse(model, payload))

    @staticmethod
    def _parse(model: type[BaseModel], payload: Any) -> Any:
        if not isinstance(payload, dict):
            raise ValidationError("Event payload must be an object")
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValidationError(f"Invalid payload: {fields}") from e

    async def _on_authenticate(self, session: ConnectionSession, payload: Any) -> list[OutboundEvent]:
        connection = session.connection
        if session.state is ConnectionState.AUTHENTICATED:
            raise ValidationError("Already authenticated")

        try:
            data = self._parse(AuthenticatePayload, payload)
            user_id = self.identity.verify(data.token)
            user = await self.identity.resolve(user_id)
            if user is None:
                raise InvalidToken()
        except (InvalidToken, ValidationError):
            self.logger.info("Authentication failed on connection %s", connection.id)
            return [OutboundEvent.to(connection, "auth-error", {"error": "Invalid token"})]

        session.state = ConnectionState.AUTHENTICATED
        session.user_id = user.id
        session.username = user.username
        self.presence.register(user.id, connection)

        self.logger.info("User authenticated: %s (ID: %s)", user.username, user.id)
        return [
            OutboundEvent.to(connection, "authenticated", {"success": True, "user": profile_payload(user)}),
            OutboundEvent.broadcast(
                "user-status",
                {"userId": user.id, "username": user.username, "online": True},
                exclude=connection
            ),
            OutboundEvent.to(
                connection,
                "online-users",
                {"users": sorted(self.presence.snapshot_online_identities())}
            ),
        ]

    async def _on_send_message(self, session: ConnectionSession, data: SendMessagePayload) -> list[OutboundEvent]:
        result = await self.message_router.send(
            session.user_id, data.receiver_id, data.message, origin=session.connection
        )
        return result.events

    async def _on_typing(self, session: ConnectionSession, data: TypingPayload) -> list[OutboundEvent]:
        return await self.typing.set_typing(session.user_id, session.username, data.receiver_id, data.is_typing)

    async def _on_mark_read(self, session: ConnectionSession, data: MarkReadPayload) -> list[OutboundEvent]:
        result = await self.conversation.mark_read(session.user_id, data.sender_id)
        return result.events

    async def _on_edit_message(self, session: ConnectionSession, data: EditMessagePayload) -> list[OutboundEvent]:
        result = await self.conversation.edit(
            session.user_id, data.message_id, data.message, origin=session.connection
        )
        return result.events

    async def _on_delete_message(self, session: ConnectionSession, data: DeleteMessagePayload) -> list[OutboundEvent]:
        result = await self.conversation.delete(
            session.user_id, data.message_id, data.delete_for_everyone, origin=session.connection
        )
        return result.events
