"""API key authentication.

Dashboard users send their personal key in `x-api-key`; keys are stored as
SHA256 hashes on an indexed column so lookup is a single query. API keys are
random high-entropy strings, so a fast deterministic hash is sufficient.

Machine consumers of the live feed share one integration key, and the
provisioning endpoint is guarded by the admin key from settings.
"""
import hashlib
import hmac
import secrets
from fastapi import HTTPException, Security, Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session
from typing import Optional

from expdash.config import get_settings
from expdash.database import get_db
from expdash.models.user import User

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)
admin_key_header = APIKeyHeader(name="x-admin-key", auto_error=False)


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key for storage using SHA256.

    Args:
        api_key: Plain text API key

    Returns:
        SHA256 hex digest of the API key
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


def generate_api_key() -> str:
    """New random API key for a dashboard user."""
    return secrets.token_urlsafe(32)


async def get_current_user(
    api_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to validate the API key and get the current user.

    Usage:
        @router.get("/experiments")
        def list_experiments(user: User = Depends(get_current_user)):
            ...

    Raises:
        HTTPException: 401 if API key is invalid or missing
    """
    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    user = db.query(User).filter(
        User.api_key_hash == hash_api_key(api_key)
    ).first()

    if not user:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    return user


async def verify_integration_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """Dependency for machine-to-machine endpoints. Returns the consumer id used for rate limiting."""
    expected = get_settings().integration_api_key
    if not expected or not api_key or not hmac.compare_digest(api_key, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return hash_api_key(api_key)[:16]


async def verify_admin_key(admin_key: Optional[str] = Security(admin_key_header)) -> None:
    """Dependency for provisioning endpoints."""
    expected = get_settings().admin_api_key
    if not admin_key or not hmac.compare_digest(admin_key, expected):
        raise HTTPException(status_code=401, detail="Invalid admin key")


def create_user_with_api_key(db: Session, email: str, api_key: str, name: Optional[str] = None) -> User:
    """
    Helper to create a new user with an API key.

    Args:
        db: Database session
        email: Unique email address
        api_key: Plain text API key (stored hashed)
        name: Display name

    Returns:
        Created User instance
    """
    user = User(
        email=email,
        name=name,
        api_key_hash=hash_api_key(api_key)
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
