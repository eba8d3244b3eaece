"""OAuth2 Authorization Code Grant server.

It handles:
- Authorization requests and resource owner consent (/authorize)
- A username-only login surface backed by a session cookie (/login, /logout)
- Code and refresh token redemption (/token)
- Authorization server metadata (/.well-known/oauth-authorization-server)

Run with `python cli.py serve`, or `python main.py`.
"""
import logging
from typing import Optional

from fastapi import FastAPI

from config import Settings, load_settings
from oauth.clients import ClientRegistry
from oauth.grant import AuthorizationCodeGrant
from oauth.session import CookieSessionAuthenticator
from oauth.stores import InMemoryAuthorizationCodeStore
from oauth.tickets import TicketCodec

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(
    settings: Optional[Settings] = None,
    clients: Optional[ClientRegistry] = None,
) -> FastAPI:
    """Build the FastAPI app and wire the grant flow components together."""
    settings = settings or load_settings()
    if clients is None:
        clients = ClientRegistry.from_settings(settings)

    codec = TicketCodec(settings.secret_key, issuer=settings.issuer)
    codes = InMemoryAuthorizationCodeStore(codec, ttl=settings.code_ttl)
    grant = AuthorizationCodeGrant(
        clients,
        codes,
        codec,
        code_ttl=settings.code_ttl,
        access_token_ttl=settings.access_token_ttl,
        refresh_token_ttl=settings.refresh_token_ttl,
    )
    sessions = CookieSessionAuthenticator(
        codec,
        ttl=settings.session_ttl,
        secure=settings.secure_cookies,
    )

    logger.info(f"[STARTUP] Issuer: {settings.issuer}")
    logger.info(f"[STARTUP] Registered clients: {len(clients)}")
    if settings.allow_insecure_http:
        logger.warning("[STARTUP] ALLOW_INSECURE_HTTP is on - plain http redirect URIs are accepted")

    app = FastAPI(
        title="Code Grant Server",
        description="OAuth2 Authorization Code Grant issuance service",
        version=VERSION,
    )
    app.state.settings = settings
    app.state.grant = grant

    # ============== OAuth Endpoints ==============
    from oauth.endpoints import router as oauth_router, init_oauth_routes
    init_oauth_routes(grant, sessions, settings.issuer, settings.scopes_supported)
    app.include_router(oauth_router)

    # ============== Server Info Endpoints ==============

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "code-grant-server"}

    @app.get("/")
    async def root():
        """Root endpoint with server info."""
        return {
            "name": "Code Grant Server",
            "version": VERSION,
            "issuer": settings.issuer,
            "endpoints": {
                "authorize": "/authorize",
                "token": "/token",
                "login": "/login",
                "metadata": "/.well-known/oauth-authorization-server",
            },
        }

    return app


# ============== Main Entry Point ==============

if __name__ == "__main__":
    import uvicorn
    from logging_config import setup_logging

    _settings = load_settings()
    setup_logging(level=_settings.log_level, log_format=_settings.log_format)
    uvicorn.run(create_app(_settings), host=_settings.host, port=_settings.port)
