"""
Authentication Dependencies for EduVox

Provides FastAPI dependencies for:
- Firebase ID token verification
- User resolution
- Admin authorization
- IDOR protection

Usage:
    @router.get("/protected")
    def protected_endpoint(current_user: UserProfile = Depends(get_current_user)):
        return {"user_id": current_user.id}
"""

import os
import logging
import httpx
import time
import threading
from typing import Optional, Tuple
from datetime import datetime

from fastapi import Depends, HTTPException, Header, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import jwt, JWTError
from jose.exceptions import JWKError

from eduvox.database import get_db
from eduvox.models.models import UserProfile

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)

# Firebase configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
FIREBASE_JWKS_URL = os.getenv(
    "FIREBASE_JWKS_URL",
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com",
)

# JWKS cache with TTL (1 hour) and thread-safe locking
_jwks_cache: Tuple[Optional[dict], float] = (None, 0)
_jwks_lock = threading.Lock()
JWKS_CACHE_TTL_SECONDS = 3600
JWKS_MAX_STALE_SECONDS = 7200  # TTL plus one hour of tolerated staleness


def get_firebase_jwks(force_refresh: bool = False) -> dict:
    """
    Fetch and cache Google's signing keys for Firebase ID tokens.

    Args:
        force_refresh: If True, bypass cache and fetch fresh keys

    Returns:
        dict: JWKS containing public keys for verification
    """
    global _jwks_cache
    cached_jwks, cache_time = _jwks_cache

    if not force_refresh and cached_jwks is not None:
        if time.time() - cache_time < JWKS_CACHE_TTL_SECONDS:
            return cached_jwks

    with _jwks_lock:
        # Another thread might have refreshed while we waited
        cached_jwks, cache_time = _jwks_cache
        cache_age = time.time() - cache_time

        if not force_refresh and cached_jwks is not None:
            if cache_age < JWKS_CACHE_TTL_SECONDS:
                return cached_jwks

        try:
            response = httpx.get(FIREBASE_JWKS_URL, timeout=10.0)
            response.raise_for_status()
            jwks = response.json()
            _jwks_cache = (jwks, time.time())
            logger.debug("Firebase JWKS cache refreshed")
            return jwks
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch Firebase JWKS: {e}")
            if cached_jwks is not None and cache_age < JWKS_MAX_STALE_SECONDS:
                logger.warning(f"Returning stale JWKS cache (age: {cache_age:.0f}s) due to fetch failure")
                return cached_jwks
            return {"keys": []}


def _find_signing_key(kid: str) -> Optional[dict]:
    for key in get_firebase_jwks().get("keys", []):
        if key.get("kid") == kid:
            return key

    # Key not found - force refresh and retry (handles key rotation)
    for key in get_firebase_jwks(force_refresh=True).get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token and return its claims.

    Raises:
        HTTPException: If the token is invalid, expired or issued for another project
    """
    if not FIREBASE_PROJECT_ID:
        logger.critical("FIREBASE_PROJECT_ID not configured - rejecting all tokens")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication configuration error. Please contact support."
        )

    try:
        unverified_header = jwt.get_unverified_header(token)
        kid = unverified_header.get("kid")

        if not kid:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token missing key ID"
            )

        signing_key = _find_signing_key(kid)
        if not signing_key:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unable to find appropriate key"
            )

        payload = jwt.decode(
            token,
            signing_key,
            algorithms=["RS256"],
            audience=FIREBASE_PROJECT_ID,
            issuer=f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}",
        )
        return payload

    except JWTError as e:
        logger.warning(f"Firebase token verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )
    except JWKError as e:
        logger.error(f"JWK error: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token verification failed"
        )


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authorization: Optional[str] = Header(None),
) -> dict:
    """
    FastAPI dependency returning verified token claims.

    Registration uses this directly since the user row does not exist yet.
    """
    token = None
    if credentials:
        token = credentials.credentials
    elif authorization and authorization.startswith("Bearer "):
        token = authorization[7:]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    claims = verify_firebase_token(token)

    # Firebase puts the uid in both user_id and sub
    if not (claims.get("user_id") or claims.get("sub")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token claims"
        )
    return claims


async def get_current_user(
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db)
) -> UserProfile:
    """
    FastAPI dependency to get the currently authenticated user.

    Raises:
        HTTPException: 404 if the token is valid but no profile is registered
    """
    uid = claims.get("user_id") or claims.get("sub")

    user = db.query(UserProfile).filter(UserProfile.id == uid).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    user.last_login = datetime.utcnow()
    db.commit()

    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> Optional[UserProfile]:
    """
    Optional authentication - returns None if not authenticated.
    """
    try:
        claims = await get_token_claims(credentials, authorization)
        return await get_current_user(claims, db)
    except HTTPException:
        return None


async def get_admin_user(
    current_user: UserProfile = Depends(get_current_user)
) -> UserProfile:
    """FastAPI dependency to require the admin role."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user


def verify_user_access(current_user: UserProfile, user_id: str) -> None:
    """
    Verify that the current user may read or modify another user's data.

    Raises:
        HTTPException: If access is denied or user_id is invalid
    """
    if not user_id or not str(user_id).strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID"
        )

    if current_user.is_admin:
        return

    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )
