import logging
from contextlib import asynccontextmanager

from dishka import make_async_container
from dishka.integrations.fastapi import setup_dishka
from fastapi import FastAPI
import uvicorn

from relaychat.config import Config, load_config
from relaychat.core.db_manager import DatabaseManager
from relaychat.providers.dishka_app import AdaptersProvider, GatewaysProvider, ServicesProvider
from relaychat.services.routers import AuthAPI, ContactAPI, MessageAPI, SocketAPI, register_exception_handlers

@asynccontextmanager
async def lifespan(app: FastAPI):
    # the engine must be created inside the serving loop
    db_manager = await app.state.dishka_container.get(DatabaseManager)
    await db_manager.create_tables()
    yield
    await app.state.dishka_container.close()

def create_app(config: Config | None = None) -> FastAPI:
    container = make_async_container(
        AdaptersProvider(config),
        GatewaysProvider(),
        ServicesProvider(),
    )

    app = FastAPI(title="RelayChat", lifespan=lifespan)
    setup_dishka(container, app)
    register_exception_handlers(app)

    logger = logging.getLogger("relaychat")
    auth_api = AuthAPI(logger=logger)
    contact_api = ContactAPI(logger=logger, auth_api=auth_api)
    message_api = MessageAPI(logger=logger, auth_api=auth_api)
    socket_api = SocketAPI(logger=logger)

    app.include_router(auth_api.get_router())
    app.include_router(contact_api.get_router())
    app.include_router(message_api.get_router())
    app.include_router(socket_api.get_router())

    return app

def main():
    config = load_config(".env")
    logging.basicConfig(
        level=config.log.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    app = create_app(config)
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_level=config.log.level.lower())

if __name__ == "__main__":
    main()
