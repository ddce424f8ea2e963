"""
Authentication utilities for the Auth Service client.

This module handles:
- PKCE code verifier/challenge generation
- Mapping Auth Service user payloads to ``Identity``
- Reading access token expiry without verifying the signature
"""

import base64
import hashlib
import secrets
import time
from typing import Any, Dict, Optional

import jwt
from jwt.exceptions import InvalidTokenError

from ..models import Identity, TokenSet


# =============================================================================
# PKCE Helper Functions
# =============================================================================

def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier for PKCE.

    Returns:
        Base64-URL-encoded random string (43-128 characters)
    """
    verifier_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(verifier_bytes).decode('utf-8').rstrip('=')


def generate_code_challenge(verifier: str) -> str:
    """
    Generate code challenge from verifier using S256 method.

    Args:
        verifier: Code verifier string

    Returns:
        Base64-URL-encoded SHA256 hash of verifier
    """
    digest = hashlib.sha256(verifier.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(digest).decode('utf-8').rstrip('=')


# =============================================================================
# Payload Mapping
# =============================================================================

def identity_from_user(data: Dict[str, Any]) -> Identity:
    """
    Build an ``Identity`` from a ``/user`` or token-response ``user`` object.

    Raises:
        ValueError: If the payload has no user id
    """
    if not isinstance(data, dict) or not data.get("id"):
        raise ValueError("User payload missing 'id'")
    return Identity.model_validate(data)


def token_set_from_response(data: Dict[str, Any]) -> TokenSet:
    """
    Parse a token endpoint response.

    Raises:
        ValueError: If the response has no access token or user
    """
    if not isinstance(data, dict) or not data.get("access_token"):
        raise ValueError("Token response missing access_token")

    expires_at = data.get("expires_at")
    if expires_at is None and data.get("expires_in"):
        expires_at = int(time.time()) + int(data["expires_in"])

    return TokenSet(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        token_type=data.get("token_type", "bearer"),
        expires_at=expires_at if expires_at is not None else access_token_expiry(data["access_token"]),
        user=identity_from_user(data.get("user")),
    )


# =============================================================================
# Token Expiry
# =============================================================================

def access_token_expiry(token: str) -> Optional[int]:
    """
    Read the ``exp`` claim of an access token.

    The signature is not checked; the Auth Service remains the authority on
    validity. This only avoids a network round-trip for obviously stale
    tokens.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except InvalidTokenError:
        return None
    exp = claims.get("exp")
    return int(exp) if isinstance(exp, (int, float)) else None


def is_token_set_expired(tokens: TokenSet, leeway_seconds: int = 10) -> bool:
    """True when the stored access token is known to be expired."""
    expires_at = tokens.expires_at or access_token_expiry(tokens.access_token)
    if expires_at is None:
        return False
    return expires_at <= time.time() + leeway_seconds
