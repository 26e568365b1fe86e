"""Shared fixtures for RelayChat tests.

Every test gets its own SQLite file under tmp_path, so no state leaks between
tests. Services are wired by hand the same way the dishka providers wire them.
Bcrypt runs with the minimum cost factor to keep registration fast.
"""

from dataclasses import dataclass, field
from itertools import count
from typing import Any

import pytest
import pytest_asyncio

from relaychat.config import Config, JWTConfig, DBConfig, ChatConfig
from relaychat.core.db_manager import DatabaseManager
from relaychat.core.gateways import UserGateway, ContactGateway, MessageGateway
from relaychat.services import (
    PresenceRegistry,
    EventDispatcher,
    IdentityService,
    ContactService,
    MessageRouter,
    ConversationState,
    TypingCoordinator,
    ConnectionLifecycleManager,
)
from relaychat.services.identity import AuthResult

TEST_SECRET = "test-secret-key"

_connection_ids = count(1)


class RecordingConnection:
    """Connection double that records every event sent to it."""

    def __init__(self, fail: bool = False):
        self._id = f"conn-{next(_connection_ids)}"
        self.fail = fail
        self.events: list[tuple[str, dict[str, Any]]] = []

    @property
    def id(self) -> str:
        return self._id

    async def send_event(self, event: str, data: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("socket is gone")
        self.events.append((event, data))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[dict[str, Any]]:
        return [data for event, data in self.events if event == name]

    def clear(self) -> None:
        self.events.clear()


@dataclass
class Services:
    db_manager: DatabaseManager
    users: UserGateway
    contact_gateway: ContactGateway
    messages: MessageGateway
    presence: PresenceRegistry
    dispatcher: EventDispatcher
    identity: IdentityService
    contacts: ContactService
    router: MessageRouter
    conversation: ConversationState
    typing: TypingCoordinator
    lifecycle: ConnectionLifecycleManager
    registered: dict[str, AuthResult] = field(default_factory=dict)

    async def register(self, username: str, password: str = "secret123") -> AuthResult:
        result = await self.identity.register(username, f"{username}@example.com", password)
        self.registered[username] = result
        return result

    async def connect(self, auth: AuthResult | None = None, token: str | None = None, connection=None):
        """Open a recorded connection and authenticate it."""
        connection = connection or RecordingConnection()
        session = self.lifecycle.open(connection)
        await self.handle(session, "authenticate", {"token": token if token is not None else auth.token})
        return connection, session

    async def handle(self, session, event: str, payload: Any) -> None:
        """Handle an inbound event and wait until its outbound events are written."""
        await self.lifecycle.handle(session, event, payload)
        await self.dispatcher.flush()

    async def close(self, session) -> None:
        await self.lifecycle.close(session)
        await self.dispatcher.flush()


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        jwt=JWTConfig(secret_key=TEST_SECRET, access_token_expire_minutes=60, hash_rounds=4),
        db=DBConfig(path=str(tmp_path / "chat.db")),
        chat=ChatConfig(history_limit=50, max_message_length=200),
    )


@pytest_asyncio.fixture
async def db_manager(config: Config):
    manager = DatabaseManager(config)
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def services(config: Config, db_manager: DatabaseManager):
    users = UserGateway(db_manager)
    contact_gateway = ContactGateway(db_manager)
    messages = MessageGateway(db_manager)

    presence = PresenceRegistry()
    dispatcher = EventDispatcher()
    identity = IdentityService(
        user_gateway=users,
        secret_key=config.jwt.secret_key,
        access_token_expire_minutes=config.jwt.access_token_expire_minutes,
        hash_rounds=config.jwt.hash_rounds,
    )
    contacts = ContactService(users, contact_gateway)
    router = MessageRouter(
        message_gateway=messages,
        identity=identity,
        contacts=contacts,
        presence=presence,
        max_message_length=config.chat.max_message_length,
    )
    conversation = ConversationState(
        message_gateway=messages,
        user_gateway=users,
        presence=presence,
        tombstone_text=config.chat.tombstone_text,
        history_limit=config.chat.history_limit,
        max_message_length=config.chat.max_message_length,
    )
    typing = TypingCoordinator(presence, contacts)
    lifecycle = ConnectionLifecycleManager(
        identity=identity,
        presence=presence,
        dispatcher=dispatcher,
        message_router=router,
        conversation=conversation,
        typing=typing,
    )

    yield Services(
        db_manager=db_manager,
        users=users,
        contact_gateway=contact_gateway,
        messages=messages,
        presence=presence,
        dispatcher=dispatcher,
        identity=identity,
        contacts=contacts,
        router=router,
        conversation=conversation,
        typing=typing,
        lifecycle=lifecycle,
    )
    await dispatcher.close()


@pytest_asyncio.fixture
async def alice(services: Services) -> AuthResult:
    return await services.register("alice")


@pytest_asyncio.fixture
async def bob(services: Services) -> AuthResult:
    return await services.register("bob")
