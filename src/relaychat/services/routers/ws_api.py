from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from uuid import uuid4
from typing import Any
import logging

from relaychat.core.exceptions import ValidationError
from relaychat.services.lifecycle import ConnectionLifecycleManager


class WebSocketConnection:
    """ Adapts starlette's WebSocket to the Connection protocol used by the services """
    __slots__ = ("_id", "_websocket")

    def __init__(self, websocket: WebSocket):
        self._id = uuid4().hex
        self._websocket = websocket

    @property
    def id(self) -> str:
        return self._id

    async def send_event(self, event: str, data: dict[str, Any]) -> None:
        await self._websocket.send_json({"event": event, "data": data})


class SocketAPI:
    """
    Real-time endpoint.

    Frames in both directions are JSON objects `{"event": <name>, "data": <payload>}`.
    A client connects, sends `authenticate` with its token and then any of
    send-message, typing, mark-read, edit-message, delete-message.
    """
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._socket_router = APIRouter(tags=["Realtime"])
        self._register_endpoints()

    @property
    def socket_router(self) -> APIRouter:
        return self._socket_router

    def get_router(self) -> APIRouter:
        return self._socket_router

    def _register_endpoints(self):
        @self.socket_router.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            container = websocket.app.state.dishka_container
            lifecycle = await container.get(ConnectionLifecycleManager)

            await websocket.accept()
            connection = WebSocketConnection(websocket)
            session = lifecycle.open(connection)

            try:
                while True:
                    try:
                        frame = await websocket.receive_json()
                    except (ValueError, KeyError):
                        # KeyError: a binary frame has no "text" part
                        await lifecycle.reject(session, ValidationError("Frame is not a JSON text frame"))
                        continue

                    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
                        await lifecycle.reject(session, ValidationError("Frame must carry an event name"))
                        continue

                    await lifecycle.handle(session, frame["event"], frame.get("data") or {})
            except WebSocketDisconnect:
                pass
            except Exception as e:
                self.logger.error("WebSocket error on %s: %s", connection.id, e)
                raise
            finally:
                await lifecycle.close(session)
