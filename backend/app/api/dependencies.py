from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from app.core.config import Settings
from app.core.database import get_db
from app.core.errors import AuthException
from app.models.user import User
from app.services.auth_service import AuthService
from app.services.fun_fact_service import FunFactGenerator
from app.services.fx_client import AlphaVantageClient

# Reads "Authorization: Bearer <token>"; auto_error=False lets us pick the status code
bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_fx_client(request: Request) -> AlphaVantageClient:
    return request.app.state.fx_client


def get_fun_fact_generator(request: Request) -> FunFactGenerator:
    return request.app.state.fun_fact_generator


def get_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthService:
    return AuthService(db, settings)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Raw bearer token, or None when the header is missing or not a bearer"""
    if credentials is None:
        return None
    return credentials.credentials


def get_current_user(
    token: str | None = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Get current authenticated user from the bearer token.

    The token must verify (signature and expiry) and still be one of the
    user's live sessions, so logged-out tokens are refused.
    Raises 401 for any token problem and 403 for a deactivated account;
    the route handler is never reached in those cases.
    """
    if token is None:
        raise AuthException("Unauthorized: No token")
    return auth_service.authenticate(token)
