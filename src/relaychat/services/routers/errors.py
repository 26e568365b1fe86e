from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from relaychat.core.exceptions import (
    ChatError,
    ValidationError,
    DuplicateUsername,
    DuplicateEmail,
    InvalidCredentials,
    InvalidToken,
    NotAuthenticated,
    MessageNotFound,
    NotAuthorized,
    ContactNotFound,
    AlreadyBlocked,
    AlreadyContact,
)

STATUS_BY_ERROR: dict[type[ChatError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    DuplicateUsername: status.HTTP_409_CONFLICT,
    DuplicateEmail: status.HTTP_409_CONFLICT,
    AlreadyContact: status.HTTP_409_CONFLICT,
    AlreadyBlocked: status.HTTP_409_CONFLICT,
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    InvalidToken: status.HTTP_401_UNAUTHORIZED,
    NotAuthenticated: status.HTTP_401_UNAUTHORIZED,
    NotAuthorized: status.HTTP_403_FORBIDDEN,
    MessageNotFound: status.HTTP_404_NOT_FOUND,
    ContactNotFound: status.HTTP_404_NOT_FOUND,
}


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    status_code = STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind},
        headers=headers
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatError, chat_error_handler)
