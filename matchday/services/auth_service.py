"""
Token verification for the external identity provider.

Accounts, passwords and sessions live outside this service. Callers present a
signed JWT whose ``user_id`` claim identifies them; this module only checks
the signature and expiry. ``create_access_token`` exists for local
development scripts and tests.
"""

import os
from datetime import timedelta
from typing import Dict, Optional

import jwt
from dotenv import load_dotenv

from matchday.utils.datetime_utils import utcnow
import logging

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to embed (must include user_id)
        expires_delta: Lifetime of the token (defaults to ACCESS_TOKEN_EXPIRE_MINUTES)

    Returns:
        Encoded JWT string
    """
    to_encode = dict(data)
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """
    Decode and verify a token.

    Returns:
        The claims dict, or None if the token is malformed, tampered with or expired
    """
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired token")
        return None
    except jwt.InvalidTokenError:
        return None
