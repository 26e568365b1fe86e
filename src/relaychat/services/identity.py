from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import partial
from urllib.parse import quote
import asyncio
import logging
import re

import bcrypt
from jose import jwt, JWTError
from sqlalchemy.exc import IntegrityError

from relaychat.core.dto import UserDTO
from relaychat.core.exceptions import (
    ValidationError,
    DuplicateUsername,
    DuplicateEmail,
    InvalidCredentials,
    InvalidToken,
)
from relaychat.core.interfaces import UserInterface

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
AVATAR_URL = "https://ui-avatars.com/api/?name={name}&background=random&color=fff&size=50"


@dataclass(frozen=True)
class AuthResult:
    user: UserDTO
    token: str


def avatar_for(username: str) -> str:
    return AVATAR_URL.format(name=quote(username, safe=""))


class IdentityService:
    """
    Registration, login and session token handling.

    Passwords are stored as bcrypt hashes. Sessions are HS256 JWTs carrying the
    user id and username; they are verified once per connection.
    Attributes:
        SECRET_KEY (str): Secret key for JWT token signing
        ALGORITHM (str): JWT signing algorithm (HS256)
        ACCESS_TOKEN_EXPIRE_MINUTES (int): JWT token expiration time in minutes
    """
    MIN_USERNAME_LENGTH = 3
    MAX_USERNAME_LENGTH = 50
    MIN_PASSWORD_LENGTH = 6
    MAX_PASSWORD_BYTES = 72 # bcrypt input limit

    def __init__(
            self,
            user_gateway: UserInterface,
            secret_key: str,
            access_token_expire_minutes: int = 480,
            hash_rounds: int = 12,
            logger: logging.Logger | None = None
    ):
        self.user_gateway = user_gateway
        self.SECRET_KEY = secret_key
        self.ALGORITHM = "HS256"
        self.ACCESS_TOKEN_EXPIRE_MINUTES = access_token_expire_minutes
        self.hash_rounds = hash_rounds
        self.logger = logger or logging.getLogger(__name__)
        self._dummy_hash: bytes | None = None

    async def register(self, username: str, email: str, password: str) -> AuthResult:
        username = (username or "").strip()
        email = (email or "").strip().lower()
        self._validate_registration(username, email, password or "")

        if await self.user_gateway.get_user_by_username(username):
            raise DuplicateUsername()
        if await self.user_gateway.get_user_by_email(email):
            raise DuplicateEmail()

        hashed_password = await self._run_blocking(self._hash_password, password)
        try:
            user = await self.user_gateway.create_user(
                username=username,
                email=email,
                hashed_password=hashed_password,
                avatar=avatar_for(username)
            )
        except IntegrityError:
            # lost a race against a concurrent registration
            if await self.user_gateway.get_user_by_username(username):
                raise DuplicateUsername()
            raise DuplicateEmail()

        self.logger.info("Registered user %s (id=%s)", user.username, user.id)
        return AuthResult(user=user, token=self.create_access_token(user.id, user.username))

    async def login(self, username: str, password: str) -> AuthResult:
        """
        Check credentials. Unknown users and wrong passwords fail the same way
        and cost the same bcrypt comparison.
        """
        password = password or ""
        credentials = await self.user_gateway.get_credentials_by_username((username or "").strip())

        if credentials is None:
            await self._run_blocking(self._check_password, password, self._get_dummy_hash())
            raise InvalidCredentials()

        if not await self._run_blocking(self._check_password, password, credentials.hashed_password.encode()):
            raise InvalidCredentials()

        user = UserDTO(**credentials.model_dump(exclude={"hashed_password"}))
        return AuthResult(user=user, token=self.create_access_token(user.id, user.username))

    def create_access_token(self, user_id: int, username: str) -> str:
        """
        Create JWT access token for authenticated user.
        Args:
            user_id: User ID to include in the token payload
            username: Username to include in the token payload
        Returns:
            str: Encoded JWT access token
        """
        try:
            now = datetime.now(timezone.utc)
            payload = {
                "sub": str(user_id),
                "username": username,
                "type": "access",
                "iat": now,
                "exp": now + timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES),
            }
            return jwt.encode(payload, self.SECRET_KEY, algorithm=self.ALGORITHM)
        except Exception as e:
            self.logger.error("Error creating access token: %s", str(e), exc_info=True)
            raise

    def verify(self, token: str) -> int:
        """
        Validate JWT token and extract user ID.
        Args:
            token: JWT token string
        Returns:
            int: User ID extracted from token
        Raises:
            InvalidToken: If token is invalid, expired, or has wrong type
        """
        if not token or not isinstance(token, str):
            raise InvalidToken()

        try:
            payload = jwt.decode(token, self.SECRET_KEY, algorithms=[self.ALGORITHM])
        except JWTError as e:
            raise InvalidToken() from e

        if payload.get("type") != "access":
            raise InvalidToken()

        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken() from e

    async def resolve(self, user_id: int) -> UserDTO | None:
        return await self.user_gateway.get_user_by_id(user_id)

    async def list_users(self) -> list[UserDTO]:
        return await self.user_gateway.get_all_users()

    def _validate_registration(self, username: str, email: str, password: str) -> None:
        if not username or not password or not email:
            raise ValidationError("Username, password and email required")
        if len(username) < self.MIN_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at least {self.MIN_USERNAME_LENGTH} characters")
        if len(username) > self.MAX_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at most {self.MAX_USERNAME_LENGTH} characters")
        if len(password) < self.MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {self.MIN_PASSWORD_LENGTH} characters")
        if len(password.encode()) > self.MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {self.MAX_PASSWORD_BYTES} bytes")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email address")

    def _hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.hash_rounds)).decode()

    def _check_password(self, password: str, hashed: bytes) -> bool:
        encoded = password.encode()
        if len(encoded) > self.MAX_PASSWORD_BYTES:
            return False
        return bcrypt.checkpw(encoded, hashed)

    def _get_dummy_hash(self) -> bytes:
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=self.hash_rounds))
        return self._dummy_hash

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))
