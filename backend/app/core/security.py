import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext

# Verification reads the cost factor out of the stored hash, so one context
# with default settings can check hashes made at any number of rounds
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@lru_cache
def get_hashing_context(rounds: int) -> CryptContext:
    """CryptContext producing bcrypt hashes at the given cost factor"""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt"""
    # bcrypt generates a fresh salt per call, so equal passwords hash differently
    return get_hashing_context(rounds).hash(password)


def create_access_token(
    subject: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed JWT for a user id"""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=30))

    # jti keeps two tokens issued for the same user in the same second distinct;
    # each one is stored and revoked on its own
    to_encode = {
        "sub": subject,
        "iat": now,
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Optional[dict]:
    """Decode and verify a JWT token"""
    try:
        # Verify signature and expiration automatically
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        # Token is invalid - could be expired, tampered, or wrong secret key
        return None
