"""
Authentication for hdstore
"""

import logging
from typing import Optional
from passlib.context import CryptContext

from .config import get_user_by_name
from .models import UserInfo

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str, is_bcrypt: bool = True) -> bool:
    """Verify a password against its hash"""
    if is_bcrypt:
        return pwd_context.verify(plain_password, hashed_password)
    else:
        # Plain text comparison (not recommended for production)
        return plain_password == hashed_password


def authenticate_user(username: str, password: str) -> Optional[UserInfo]:
    """Authenticate user by username and password"""
    user = get_user_by_name(username)
    if not user:
        logger.warning(f"Authentication failed: user not found: {username}")
        return None

    if not verify_password(password, user.pass_hash, user.is_bcrypt):
        logger.warning(f"Authentication failed: invalid password for user: {username}")
        return None

    logger.info(f"User authenticated successfully: {username}")
    return user
