from pydantic import BaseModel
from datetime import datetime


class UserRegisterRequest(BaseModel):
    # lengths and email shape are validated by IdentityService
    username: str
    email: str
    password: str

class LoginRequest(BaseModel):
    username: str
    password: str

class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    avatar: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True

class AuthResponse(BaseModel):
    success: bool = True
    user: UserResponse
    token: str
    token_type: str = "bearer"

class UsersResponse(BaseModel):
    users: list[UserResponse]

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str
    online_users: int
