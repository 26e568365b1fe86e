from fastapi import status, Depends, APIRouter
from fastapi.security import OAuth2PasswordBearer
from datetime import datetime, timezone

from dishka import FromDishka
from dishka.integrations.fastapi import inject

import logging

from relaychat.core.exceptions import InvalidToken
from relaychat.services.identity import IdentityService
from relaychat.services.presence import PresenceRegistry
from ..models.auth_api_models import (
    UserRegisterRequest,
    LoginRequest,
    UserResponse,
    AuthResponse,
    UsersResponse,
    HealthResponse,
)


class AuthAPI:
    """
    Authentication API: registration, login and profile lookup.
    Attributes:
        logger (logging.Logger): Logger instance
        oauth2_scheme (OAuth2PasswordBearer): Bearer token extractor shared by the other routers
        _auth_router (APIRouter): FastAPI router for authentication endpoints
    """
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")
        self._auth_router = APIRouter(tags=["Authentication"])
        self._register_endpoints()

    @property
    def auth_router(self) -> APIRouter:
        return self._auth_router

    def get_router(self) -> APIRouter:
        return self._auth_router

    async def get_current_user(self, identity: IdentityService, token: str) -> int:
        """
        Validate bearer token and extract user ID.
        Args:
            identity: Identity service verifying the token
            token: JWT token string
        Returns:
            int: User ID extracted from token
        Raises:
            InvalidToken: rendered as 401 by the exception handler
        """
        user_id = identity.verify(token)
        if await identity.resolve(user_id) is None:
            raise InvalidToken()
        return user_id

    def _register_endpoints(self):
        """
        Register all authentication endpoints with the FastAPI router.

        This method sets up the following endpoints:
        - GET /health: Health check
        - POST /register: User registration
        - POST /login: User login with username and password
        - GET /me: Current user's profile
        - GET /users: All registered users
        """
        @self.auth_router.get("/health", response_model=HealthResponse)
        @inject
        async def health_check(presence: FromDishka[PresenceRegistry]):
            return HealthResponse(
                status="healthy",
                timestamp=datetime.now(timezone.utc).isoformat(),
                service="relaychat",
                online_users=len(presence.snapshot_online_identities())
            )

        @self.auth_router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
        @inject
        async def register(user_data: UserRegisterRequest, identity: FromDishka[IdentityService]):
            """
            Register a new user.
            Args: user_data: username, email and password
            Returns: AuthResponse: Created profile and session token
            """
            result = await identity.register(
                username=user_data.username,
                email=user_data.email,
                password=user_data.password
            )
            return AuthResponse(
                user=UserResponse.model_validate(result.user.model_dump()),
                token=result.token
            )

        @self.auth_router.post("/login", response_model=AuthResponse)
        @inject
        async def login(login_data: LoginRequest, identity: FromDishka[IdentityService]):
            """
            Authenticate with username and password.
            Args: login_data: Login request containing username and password
            Returns: AuthResponse: Profile and session token
            """
            result = await identity.login(login_data.username, login_data.password)
            self.logger.info("User %s logged in", result.user.id)
            return AuthResponse(
                user=UserResponse.model_validate(result.user.model_dump()),
                token=result.token
            )

        @self.auth_router.get("/me", response_model=UserResponse)
        @inject
        async def get_current_user_info(
                identity: FromDishka[IdentityService],
                token: str = Depends(self.oauth2_scheme)
        ):
            user_id = await self.get_current_user(identity, token)
            user = await identity.resolve(user_id)
            return UserResponse.model_validate(user.model_dump())

        @self.auth_router.get("/users", response_model=UsersResponse)
        @inject
        async def get_users(
                identity: FromDishka[IdentityService],
                token: str = Depends(self.oauth2_scheme)
        ):
            await self.get_current_user(identity, token)
            users = await identity.list_users()
            return UsersResponse(users=[UserResponse.model_validate(u.model_dump()) for u in users])
