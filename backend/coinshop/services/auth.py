"""
CoinShop - Authentication Service

Accounts, JWT bearer tokens and API keys.

Buyers register themselves; staff and consignor accounts come from
``cli.py create-admin`` or an admin. API keys let bidding tools call the
API without a browser session: the plain key is shown once, only its bcrypt
hash is stored, and the first characters are kept in the clear so lookups
only verify hashes of keys sharing that prefix.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coinshop.core.clock import utcnow
from coinshop.core.config import settings
from coinshop.core.exceptions import NotFoundError, ValidationError
from coinshop.models.user import ApiKey, User, UserRole

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

API_KEY_PREFIX = "csk_"
KEY_PREFIX_LENGTH = 12


# =============================================================================
# Hashing and tokens
# =============================================================================


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: UUID, role: UserRole) -> tuple[str, int]:
    """
    Sign a bearer token for ``user_id``.

    Returns:
        (token, lifetime in seconds)
    """
    lifetime = timedelta(hours=settings.jwt_expire_hours)
    issued = utcnow()
    claims = {
        "sub": str(user_id),
        "role": role.value,
        "iat": issued,
        "exp": issued + lifetime,
    }
    token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, int(lifetime.total_seconds())


def decode_token(token: str) -> Optional[dict]:
    """Claims of a valid token; None when it is malformed, tampered or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def generate_api_key() -> tuple[str, str]:
    """New ``csk_`` key and its bcrypt hash."""
    plain_key = API_KEY_PREFIX + secrets.token_urlsafe(32)
    return plain_key, pwd_context.hash(plain_key)


def verify_api_key(plain_key: str, hashed_key: str) -> bool:
    return pwd_context.verify(plain_key, hashed_key)


# =============================================================================
# Accounts
# =============================================================================


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
    return await db.get(User, user_id)


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    role: UserRole = UserRole.BUYER,
    name: Optional[str] = None,
    client_id: Optional[UUID] = None,
) -> User:
    """
    Create an account. Emails are stored lowercased.

    ``client_id`` ties a consignor account to the client whose items it may
    auction; such users cannot bid on those items.
    """
    user = User(
        email=email.lower(),
        name=name,
        hashed_password=hash_password(password),
        role=role,
        client_id=client_id,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


async def register_buyer(
    db: AsyncSession, email: str, password: str, name: Optional[str] = None
) -> User:
    """
    Self-service signup; always creates a buyer.

    Raises:
        ValidationError: email already registered
    """
    if await get_user_by_email(db, email):
        raise ValidationError("Email already registered", code="email_taken")
    user = await create_user(db, email=email, password=password, name=name)
    logger.info(f"New buyer registered: {user.email}")
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """The active user matching these credentials, if any."""
    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        return None
    return user if verify_password(password, user.hashed_password) else None


# =============================================================================
# API keys
# =============================================================================


async def list_api_keys(db: AsyncSession, user: User) -> list[ApiKey]:
    result = await db.execute(
        select(ApiKey).where(ApiKey.user_id == user.id).order_by(ApiKey.created_at.desc())
    )
    return list(result.scalars().all())


async def issue_api_key(db: AsyncSession, user: User, name: str) -> tuple[ApiKey, str]:
    """
    Create a key for ``user``.

    Returns:
        (stored key, plain key). The plain key is not recoverable later.
    """
    plain_key, hashed_key = generate_api_key()
    api_key = ApiKey(
        user_id=user.id,
        name=name,
        key_hash=hashed_key,
        key_prefix=plain_key[:KEY_PREFIX_LENGTH],
    )
    db.add(api_key)
    await db.flush()
    await db.refresh(api_key)

    logger.info(f"API key '{name}' issued to {user.email}")
    return api_key, plain_key


async def revoke_api_key(db: AsyncSession, user: User, key_id: UUID) -> ApiKey:
    """
    Deactivate one of the user's keys.

    Raises:
        NotFoundError: no such key for this user
        ValidationError: already revoked
    """
    result = await db.execute(
        select(ApiKey).where(ApiKey.id == key_id, ApiKey.user_id == user.id)
    )
    api_key = result.scalar_one_or_none()
    if api_key is None:
        raise NotFoundError("API key not found")
    if not api_key.is_active:
        raise ValidationError("API key is already revoked", code="already_revoked")

    api_key.is_active = False
    await db.flush()

    logger.info(f"API key '{api_key.name}' revoked for {user.email}")
    return api_key


async def find_api_key_by_plain_key(db: AsyncSession, plain_key: str) -> Optional[ApiKey]:
    """Active key matching ``plain_key``. Keys without the ``csk_`` prefix never match."""
    if not plain_key.startswith(API_KEY_PREFIX):
        return None

    result = await db.execute(
        select(ApiKey).where(
            ApiKey.key_prefix == plain_key[:KEY_PREFIX_LENGTH],
            ApiKey.is_active.is_(True),
        )
    )
    for api_key in result.scalars():
        if verify_api_key(plain_key, api_key.key_hash):
            return api_key
    return None


async def user_for_api_key(db: AsyncSession, plain_key: str) -> Optional[User]:
    """Owner of a valid key, stamping the key's last use."""
    api_key = await find_api_key_by_plain_key(db, plain_key)
    if api_key is None:
        return None

    user = await get_user_by_id(db, api_key.user_id)
    if user is None or not user.is_active:
        return None

    api_key.last_used_at = utcnow()
    await db.flush()
    return user
