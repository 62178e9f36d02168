from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(min_length=8, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class VerifyCodeRequest(BaseModel):
    email: EmailStr
    # format is not checked here; a malformed code is just a mismatch (401)
    code: str = Field(max_length=32)


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class UserOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    email: str
    role: str


class RegisterResponse(BaseModel):
    message: str
    user_id: int


class VerifyEmailResponse(BaseModel):
    message: str
    verified: bool


class LoginResponse(BaseModel):
    message: str
    login_code_sent: bool


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class CreateAdminResponse(BaseModel):
    message: str
    user_id: int
    role: str


class MeResponse(BaseModel):
    user: UserOut
    permissions: List[str]
    role_description: str
    timestamp: datetime


class AdminUserOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    email: str
    role: str
    email_verified: bool
    created_at: datetime
    movie_count: int = 0


class AdminUserList(BaseModel):
    users: List[AdminUserOut]
    total: int
    requested_by: str
    timestamp: datetime


class RoleChangeRequest(BaseModel):
    # kept as plain str so an unknown role is reported as 400, not 422
    role: str


class RoleChangeResponse(BaseModel):
    message: str
    user: UserOut
    changed_by: str
    timestamp: datetime


class DeleteUserResponse(BaseModel):
    message: str
    deleted_by: str
    timestamp: datetime


class AdminCreatedOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    email: str
    role: str
    created_at: datetime


class AdminCreateResponse(BaseModel):
    message: str
    admin: AdminCreatedOut
    created_by: str
    permissions: List[str]
    timestamp: datetime


class CountByRole(BaseModel):
    role: str
    count: int


class CountByGenre(BaseModel):
    genre: Optional[str]
    count: int


class AnalyticsSummary(BaseModel):
    total_users: int
    verified_users: int
    total_movies: int
    unverified_users: int


class RecentUserOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    email: str
    role: str
    created_at: datetime


class AnalyticsResponse(BaseModel):
    summary: AnalyticsSummary
    users_by_role: List[CountByRole]
    top_genres: List[CountByGenre]
    recent_users: List[RecentUserOut]
    requested_by: str
    timestamp: datetime
