from typing import Annotated
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints
from app.api.dependencies import get_auth_service, get_bearer_token, get_current_user
from app.models.user import User
from app.services.auth_service import AuthResult, AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


class SignupRequest(BaseModel):
    # Trimmed before the length check, so padding neither helps nor hurts
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
    email: EmailStr
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Public projection of a user - never carries the password hash"""
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class LogoutAllResponse(MessageResponse):
    revoked: int


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(token=result.token, user=UserResponse.model_validate(result.user))


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(body: SignupRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Register a new user and start their first session"""
    return _auth_response(auth_service.signup(body.name, body.email, body.password))


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Login and get a session token"""
    return _auth_response(auth_service.login(body.email, body.password))


@router.post("/logout", response_model=MessageResponse)
def logout(
    token: str | None = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
):
    """End the session belonging to the presented token"""
    auth_service.logout(token)
    return {"message": "Logout successful"}


@router.post("/logout-all", response_model=LogoutAllResponse)
def logout_all(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """End every session of the current user"""
    revoked = auth_service.logout_all(current_user)
    return {"message": "Logged out of all sessions", "revoked": revoked}


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    token: str | None = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange a live token for a fresh one"""
    return _auth_response(auth_service.refresh(token))


@router.get("/me", response_model=MeResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return {"user": UserResponse.model_validate(current_user)}
