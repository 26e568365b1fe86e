from dishka import Provider, Scope, provide
from typing import AsyncIterator
import logging

from relaychat.config import Config, load_config
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

class AdaptersProvider(Provider):
    def __init__(self, config: Config | None = None):
        super().__init__()
        self._config = config

    @provide(scope=Scope.APP)
    def get_config(self) -> Config:
        return self._config or load_config(".env")

    @provide(scope=Scope.APP)
    def get_logger(self) -> logging.Logger:
        return logging.getLogger("relaychat")

    @provide(scope=Scope.APP)
    async def get_db_manager(self, config: Config) -> AsyncIterator[DatabaseManager]:
        db_manager = DatabaseManager(config)
        yield db_manager
        await db_manager.close()

class GatewaysProvider(Provider):
    @provide(scope=Scope.APP)
    def get_user_gateway(
            self,
            db_manager: DatabaseManager,
            logger: logging.Logger
    ) -> UserGateway:
        return UserGateway(db_manager, logger)

    @provide(scope=Scope.APP)
    def get_contact_gateway(
            self,
            db_manager: DatabaseManager,
            logger: logging.Logger
    ) -> ContactGateway:
        return ContactGateway(db_manager, logger)

    @provide(scope=Scope.APP)
    def get_message_gateway(
            self,
            db_manager: DatabaseManager,
            logger: logging.Logger
    ) -> MessageGateway:
        return MessageGateway(db_manager, logger)

class ServicesProvider(Provider):
    @provide(scope=Scope.APP)
    def get_presence(self, logger: logging.Logger) -> PresenceRegistry:
        return PresenceRegistry(logger)

    @provide(scope=Scope.APP)
    async def get_dispatcher(self, logger: logging.Logger) -> AsyncIterator[EventDispatcher]:
        dispatcher = EventDispatcher(logger)
        yield dispatcher
        await dispatcher.close()

    @provide(scope=Scope.APP)
    def get_identity(
            self,
            config: Config,
            user_gateway: UserGateway,
            logger: logging.Logger
    ) -> IdentityService:
        return IdentityService(
            user_gateway=user_gateway,
            secret_key=config.jwt.secret_key,
            access_token_expire_minutes=config.jwt.access_token_expire_minutes,
            hash_rounds=config.jwt.hash_rounds,
            logger=logger
        )

    @provide(scope=Scope.APP)
    def get_contacts(
            self,
            user_gateway: UserGateway,
            contact_gateway: ContactGateway,
            logger: logging.Logger
    ) -> ContactService:
        return ContactService(user_gateway, contact_gateway, logger)

    @provide(scope=Scope.APP)
    def get_message_router(
            self,
            config: Config,
            message_gateway: MessageGateway,
            identity: IdentityService,
            contacts: ContactService,
            presence: PresenceRegistry,
            logger: logging.Logger
    ) -> MessageRouter:
        return MessageRouter(
            message_gateway=message_gateway,
            identity=identity,
            contacts=contacts,
            presence=presence,
            max_message_length=config.chat.max_message_length,
            logger=logger
        )

    @provide(scope=Scope.APP)
    def get_conversation(
            self,
            config: Config,
            message_gateway: MessageGateway,
            user_gateway: UserGateway,
            presence: PresenceRegistry,
            logger: logging.Logger
    ) -> ConversationState:
        return ConversationState(
            message_gateway=message_gateway,
            user_gateway=user_gateway,
            presence=presence,
            tombstone_text=config.chat.tombstone_text,
            history_limit=config.chat.history_limit,
            max_message_length=config.chat.max_message_length,
            logger=logger
        )

    @provide(scope=Scope.APP)
    def get_typing(
            self,
            presence: PresenceRegistry,
            contacts: ContactService,
            logger: logging.Logger
    ) -> TypingCoordinator:
        return TypingCoordinator(presence, contacts, logger)

    @provide(scope=Scope.APP)
    def get_lifecycle(
            self,
            identity: IdentityService,
            presence: PresenceRegistry,
            dispatcher: EventDispatcher,
            message_router: MessageRouter,
            conversation: ConversationState,
            typing: TypingCoordinator,
            logger: logging.Logger
    ) -> ConnectionLifecycleManager:
        return ConnectionLifecycleManager(
            identity=identity,
            presence=presence,
            dispatcher=dispatcher,
            message_router=message_router,
            conversation=conversation,
            typing=typing,
            logger=logger
        )
