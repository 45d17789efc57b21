import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, undefer
from app.core.config import Settings
from app.core.errors import (
    AuthException,
    DuplicateEmailException,
    ForbiddenException,
    InternalException,
    InvalidCredentialsException,
    InvalidTokenException,
    MissingTokenException,
)
from app.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from app.models.user import RefreshToken, User

logger = logging.getLogger(__name__)

# Same message whether the email is unknown or the password is wrong
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
DUPLICATE_EMAIL_MESSAGE = "Email already in use"


@dataclass
class AuthResult:
    token: str
    user: User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """
    Owns the credential lifecycle: signup, login, logout, token rotation.

    Every token handed out is also stored as a RefreshToken row on its user;
    a token is only honoured while that row exists and has not expired.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def signup(self, name: str, email: str, password: str) -> AuthResult:
        email = normalize_email(email)

        # Explicit check gives a clean message; the IntegrityError branch
        # below still catches two concurrent signups for one address
        if self.db.query(User.id).filter(User.email == email).first():
            raise DuplicateEmailException(DUPLICATE_EMAIL_MESSAGE)

        user = User(
            name=name.strip(),
            email=email,
            hashed_password=get_password_hash(password, rounds=self.settings.BCRYPT_ROUNDS),
            is_active=True,
        )
        try:
            self.db.add(user)
            token = self._issue_token(user)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateEmailException(DUPLICATE_EMAIL_MESSAGE)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error during signup")
            raise InternalException("Database error occurred")

        logger.info(f"User {user.id} signed up")
        return AuthResult(token=token, user=user)

    def login(self, email: str, password: str) -> AuthResult:
        user = (
            self.db.query(User)
            .options(undefer(User.hashed_password))
            .filter(User.email == normalize_email(email))
            .first()
        )

        if not user or not verify_password(password, user.hashed_password):
            raise InvalidCredentialsException(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            raise ForbiddenException("User account is inactive")

        token = self._issue_token(user)
        user.last_login = datetime.now(timezone.utc)
        self._commit("login")

        logger.info(f"User {user.id} logged in")
        return AuthResult(token=token, user=user)

    def logout(self, token: Optional[str]) -> None:
        if not token:
            raise MissingTokenException("Token required for logout")

        payload = decode_access_token(token, self.settings.SECRET_KEY, self.settings.ALGORITHM)
        if payload is None:
            raise InvalidTokenException("Token verification failed")

        user = self._user_from_payload(payload)
        if user is None:
            raise InvalidTokenException("User not found")

        # Removing a token that is already gone is not an error
        if user.remove_refresh_token(token):
            self._commit("logout")
        logger.info(f"User {user.id} logged out")

    def logout_all(self, user: User) -> int:
        revoked = user.remove_all_refresh_tokens()
        self._commit("logout-all")
        logger.info(f"User {user.id} revoked {revoked} sessions")
        return revoked

    def refresh(self, token: Optional[str]) -> AuthResult:
        """Swap a live token for a new one; the presented token stops working"""
        if not token:
            raise MissingTokenException("Token required for refresh")

        user = self.authenticate(token)
        user.remove_refresh_token(token)
        new_token = self._issue_token(user)
        self._commit("refresh")
        return AuthResult(token=new_token, user=user)

    def authenticate(self, token: str) -> User:
        """Resolve a bearer token to its user, or raise"""
        payload = decode_access_token(token, self.settings.SECRET_KEY, self.settings.ALGORITHM)
        if payload is None:
            raise InvalidTokenException("Token verification failed")

        user = self._user_from_payload(payload)
        if user is None:
            raise AuthException("Unauthorized: User not found")

        if not user.has_live_refresh_token(token):
            raise InvalidTokenException("Session has expired or was revoked")

        if not user.is_active:
            raise ForbiddenException("User account is inactive")

        return user

    def _issue_token(self, user: User) -> str:
        # Flush so a brand new user has an id to put in the token
        self.db.flush()
        token = create_access_token(
            subject=str(user.id),
            secret_key=self.settings.SECRET_KEY,
            algorithm=self.settings.ALGORITHM,
            expires_delta=timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )
        user.add_refresh_token(token, ttl_seconds=self.settings.REFRESH_TOKEN_TTL_SECONDS)
        return token

    def _user_from_payload(self, payload: dict) -> Optional[User]:
        try:
            user_id = int(payload.get("sub"))
        except (ValueError, TypeError):
            return None
        return self.db.query(User).filter(User.id == user_id).first()

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Database error during {action}")
            raise InternalException("Database error occurred")


def purge_expired_refresh_tokens(db: Session, now: Optional[datetime] = None) -> int:
    """Delete refresh token rows past their time-to-live; returns how many went"""
    now = now or datetime.now(timezone.utc)
    shortest_ttl = db.query(func.min(RefreshToken.ttl_seconds)).scalar()
    if shortest_ttl is None:
        return 0

    # Only rows older than the shortest TTL can have expired; the per-row TTL
    # check then runs on that subset alone
    cutoff = now - timedelta(seconds=shortest_ttl)
    candidates = db.query(RefreshToken).filter(RefreshToken.created_at <= cutoff).yield_per(500)
    expired = [record for record in candidates if record.is_expired(now)]
    for record in expired:
        db.delete(record)
    if expired:
        db.commit()
    return len(expired)
