"""
Data Models Module

This module defines the Pydantic models shared by the session core, the
Auth Service client and the HTTP/WebSocket surface.

Models are organized by functional area:
- Session models (identity, session snapshot, session-change events)
- OAuth models (providers, handshake options, initiation result, token set)
- Redirect models (computed navigation targets)
- Response models (HTTP payloads)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Session Models
# ============================================================================

class Identity(BaseModel):
    """Principal record issued by the Auth Service. Never mutated here."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(..., description="Unique user identifier issued by the Auth Service")
    email: Optional[str] = Field(None, description="Primary email address")
    app_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Provider metadata (e.g. {'provider': 'github'})",
    )
    user_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Profile data reported by the OAuth provider",
    )

    @property
    def provider(self) -> Optional[str]:
        return self.app_metadata.get("provider")


class Session(BaseModel):
    """
    Snapshot of the authentication state.

    ``is_loading`` is True until the first session-change event has been
    processed; while it is True the identity is unknown, not absent.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    identity: Optional[Identity] = Field(None, description="Signed-in principal, if any")
    is_loading: bool = Field(True, alias="isLoading", description="Initial state still unresolved")

    @property
    def is_authenticated(self) -> bool:
        return not self.is_loading and self.identity is not None


class SignedIn(BaseModel):
    """A session was established or refreshed."""

    model_config = ConfigDict(frozen=True)

    type: Literal["SIGNED_IN"] = "SIGNED_IN"
    identity: Identity


class SignedOut(BaseModel):
    """No session exists (signed out, expired, or never signed in)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["SIGNED_OUT"] = "SIGNED_OUT"


SessionEvent = Union[SignedIn, SignedOut]


# ============================================================================
# OAuth Models
# ============================================================================

class OAuthProvider(str, Enum):
    """Third-party identity providers supported by the portal."""

    GOOGLE = "google"
    GITHUB = "github"


class OAuthOptions(BaseModel):
    """Options passed to the Auth Service when starting a handshake."""

    model_config = ConfigDict(frozen=True)

    redirect_to: str = Field(..., description="Where the provider sends the user back to")
    scopes: Optional[str] = Field(None, description="Space-separated provider scopes")
    query_params: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra provider-specific authorization parameters",
    )


class OAuthInitiation(BaseModel):
    """Result of a successfully initiated OAuth handshake."""

    model_config = ConfigDict(frozen=True)

    provider: OAuthProvider
    url: str = Field(..., description="Provider authorization URL the browser was sent to")


class TokenSet(BaseModel):
    """Credentials held privately by the Auth Service client."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_at: Optional[int] = Field(None, description="Unix timestamp of access token expiry")
    user: Identity


# ============================================================================
# Redirect Models
# ============================================================================

class RedirectKind(str, Enum):
    DASHBOARD = "dashboard"
    AUTH = "auth"


class RedirectTarget(BaseModel):
    """Computed navigation destination."""

    model_config = ConfigDict(frozen=True)

    kind: RedirectKind
    url: str


# ============================================================================
# Response Models
# ============================================================================

class SignInResponse(BaseModel):
    """Response returned once an OAuth handshake has been initiated."""
    provider: OAuthProvider = Field(..., description="Provider the handshake was started with")
    url: str = Field(..., description="Authorization URL the browser should load")


class SignOutResponse(BaseModel):
    """Response returned after a successful sign-out."""
    status: str = Field(default="signed_out", description="Operation status")
    redirect: str = Field(..., description="Where the browser was sent")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    session_resolved: bool = Field(..., description="Whether the first session event has arrived")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
