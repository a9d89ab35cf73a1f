"""
Authentication Service for the GBV case tracker
Handles password hashing, JWT issuing/decoding and login lockout
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple
import logging
import math
import os

from fastapi import Request
from passlib.context import CryptContext
from jose import JWTError, ExpiredSignatureError, jwt
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from models_auth import Actor
from services.audit_log import AuditAction, audit_service
from services.errors import AccountLocked, PermissionDenied, ServerError, Unauthenticated

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    raise RuntimeError("SECRET_KEY environment variable is required")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "240"))
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
LOCKOUT_MINUTES = int(os.getenv("LOCKOUT_MINUTES", "30"))

INVALID_CREDENTIALS = "Invalid username or password"

# Password context for bcrypt hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD HASHING
# ============================================================================

def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against a hashed password

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches, False otherwise
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


# ============================================================================
# JWT TOKENS
# ============================================================================

def create_access_token(actor: Actor, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token carrying the actor's identity claims

    Args:
        actor: Identity to encode (sub, role, region, name)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = actor.to_claims()
    to_encode.update({"exp": expire, "iat": now, "type": "access"})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify an access token

    Raises:
        Unauthenticated: If the token is malformed, expired or not an access token
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except JWTError:
        raise Unauthenticated()

    if payload.get("type") != "access" or not payload.get("sub"):
        raise Unauthenticated()
    return payload


def actor_from_token(token: str) -> Actor:
    return Actor.from_claims(decode_token(token))


# ============================================================================
# LOGIN
# ============================================================================

async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def _reject(db: AsyncSession, user: User, request: Optional[Request], **details) -> None:
    """Persist the failed attempt (and lockout) before the caller raises"""
    now = datetime.utcnow()
    attempts = (user.failed_login_attempts or 0) + 1
    user.failed_login_attempts = attempts
    user.last_failed_login = now

    if attempts >= MAX_LOGIN_ATTEMPTS:
        user.lock_until = now + timedelta(minutes=LOCKOUT_MINUTES)
        audit_service.stage(
            db, AuditAction.account_locked,
            user_id=str(user.user_id), resource_type="user", resource_id=user.user_id,
            details={"attempts": attempts, "lock_minutes": LOCKOUT_MINUTES},
            request=request,
        )
        logger.warning(f"Account {user.user_id} locked after {attempts} failed logins")

    audit_service.stage(
        db, AuditAction.login_failed,
        user_id=str(user.user_id), resource_type="user", resource_id=user.user_id,
        details={"attempts": attempts, **details}, success=False, request=request,
    )
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to record login failure for {user.user_id}: {e}")
        raise ServerError(cause=e)


async def authenticate(
    db: AsyncSession,
    username: str,
    password: str,
    request: Optional[Request] = None,
) -> Tuple[User, str]:
    """
    Check credentials and issue an access token

    Args:
        db: Database session
        username: Login name
        password: Plain text password
        request: Incoming request, for the audit trail

    Returns:
        (user, access token)

    Raises:
        Unauthenticated: Unknown user or wrong password
        AccountLocked: Too many recent failures
        PermissionDenied: Account deactivated
    """
    user = await get_user_by_username(db, username)
    if user is None:
        await audit_service.record(
            db, AuditAction.login_failed, details={"reason": "user_not_found"},
            success=False, request=request,
        )
        raise Unauthenticated(INVALID_CREDENTIALS)

    now = datetime.utcnow()
    if user.lock_until and user.lock_until > now:
        minutes_left = math.ceil((user.lock_until - now).total_seconds() / 60)
        await audit_service.record(
            db, AuditAction.login_failed, user_id=str(user.user_id),
            resource_type="user", resource_id=user.user_id,
            details={"reason": "account_locked"}, success=False, request=request,
        )
        raise AccountLocked(minutes_left)

    if user.lock_until:
        # Lock expired: start counting afresh
        user.lock_until = None
        user.failed_login_attempts = 0

    if user.status != "active":
        await audit_service.record(
            db, AuditAction.login_failed, user_id=str(user.user_id),
            resource_type="user", resource_id=user.user_id,
            details={"reason": "account_inactive"}, success=False, request=request,
        )
        raise PermissionDenied("Account inactive. Contact an administrator.")

    if not verify_password(password, user.password_hash):
        await _reject(db, user, request, reason="invalid_password")
        raise Unauthenticated(INVALID_CREDENTIALS)

    user.failed_login_attempts = 0
    user.lock_until = None
    user.last_login = now
    actor = Actor.from_user(user)
    audit_service.stage(
        db, AuditAction.login_success, actor=actor,
        resource_type="user", resource_id=user.user_id, request=request,
    )
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to record login for {user.user_id}: {e}")
        raise ServerError(cause=e)

    logger.info(f"User {user.user_id} logged in as {user.role}")
    return user, create_access_token(actor)
