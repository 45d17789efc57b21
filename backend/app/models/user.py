from datetime import datetime, timedelta, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import deferred, relationship
from sqlalchemy.sql import func
from app.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    User model representing application users.

    Stores authentication credentials and the user's live sessions.
    Passwords are stored as hashes (never plaintext).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    # Stored lowercased, so the unique index makes email case-insensitive
    email = Column(String, unique=True, index=True, nullable=False)
    # Deferred: ordinary queries never load the hash, login asks for it explicitly
    hashed_password = deferred(Column(String, nullable=False))
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="RefreshToken.created_at",
    )

    def add_refresh_token(self, token: str, ttl_seconds: int) -> "RefreshToken":
        record = RefreshToken(token=token, ttl_seconds=ttl_seconds)
        self.refresh_tokens.append(record)
        return record

    def remove_refresh_token(self, token: str) -> bool:
        """Drop one token; returns False when it was not present"""
        for record in list(self.refresh_tokens):
            if record.token == token:
                self.refresh_tokens.remove(record)
                return True
        return False

    def remove_all_refresh_tokens(self) -> int:
        count = len(self.refresh_tokens)
        self.refresh_tokens.clear()
        return count

    def has_live_refresh_token(self, token: str, now: datetime | None = None) -> bool:
        return any(
            record.token == token and not record.is_expired(now)
            for record in self.refresh_tokens
        )


class RefreshToken(Base):
    """A session token the user may still present; removed on logout or expiry."""
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    ttl_seconds = Column(Integer, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    @property
    def expires_at(self) -> datetime:
        created_at = self.created_at or _utcnow()
        # SQLite hands timestamps back without tzinfo; they were written as UTC
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or _utcnow())
