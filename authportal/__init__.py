"""
Auth Portal

Client-side authentication session manager for a web application that
delegates identity verification to an external OAuth-capable Auth Service.

Packages:
- auth: Session store, change listener, redirects, sign-in/out operations
- realtime: WebSocket channel to the browser pages

Modules:
- config: Environment-driven settings
- models: Shared Pydantic models
- main: FastAPI application factory
"""

__version__ = "1.0.0"
