"""OAuth 2.0 endpoints for the authorization server.

This module contains the HTTP surface of the Authorization Code Grant:
- Discovery metadata (/.well-known/oauth-authorization-server)
- Authorization and consent (/authorize)
- Login surface (/login, /logout)
- Token endpoint (/token)

The handlers only translate between HTTP and AuthorizationCodeGrant.
"""

import logging
from html import escape
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Request, Form
from fastapi.responses import JSONResponse, RedirectResponse, HTMLResponse

from oauth.errors import InvalidRequest, OAuthError
from oauth.grant import AuthorizationCodeGrant, AuthorizationFlow, GrantState
from oauth.session import SessionAuthenticator
from oauth.templates import (
    AUTHORIZE_ERROR_PAGE,
    CONSENT_PAGE,
    LOGIN_PAGE,
    NO_SCOPE_ITEM,
    SIGNED_OUT_PAGE,
)

logger = logging.getLogger(__name__)

# Router for OAuth endpoints
router = APIRouter(tags=["oauth"])

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}

# These will be set by init_oauth_routes()
_grant: Optional[AuthorizationCodeGrant] = None
_sessions: Optional[SessionAuthenticator] = None
_issuer: str = ""
_scopes_supported: list = []


def init_oauth_routes(
    grant: AuthorizationCodeGrant,
    sessions: SessionAuthenticator,
    issuer: str,
    scopes_supported: list = None,
):
    """Initialize OAuth routes with the grant flow and session authenticator.

    Must be called before including the router in the app.
    """
    global _grant, _sessions, _issuer, _scopes_supported
    _grant = grant
    _sessions = sessions
    _issuer = issuer
    _scopes_supported = list(scopes_supported or [])


# ============== Discovery ==============

@router.get("/.well-known/oauth-authorization-server")
async def oauth_authorization_server():
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    metadata = {
        "issuer": _issuer,
        "authorization_endpoint": f"{_issuer}/authorize",
        "token_endpoint": f"{_issuer}/token",
        "response_types_supported": ["code"],
        "response_modes_supported": ["query"],
        "grant_types_supported": ["authorization_code", "refresh_token"],
        "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_post"],
    }
    if _scopes_supported:
        metadata["scopes_supported"] = _scopes_supported
    return metadata


# ============== Authorization Flow ==============

def _authorize_error_page(error: OAuthError) -> HTMLResponse:
    return HTMLResponse(
        AUTHORIZE_ERROR_PAGE.format(error=escape(error.error), description=escape(error.description)),
        status_code=400,
    )


def _login_redirect(request: Request) -> RedirectResponse:
    return_url = "/authorize"
    if request.url.query:
        return_url = f"{return_url}?{request.url.query}"
    return RedirectResponse(url=f"/login?{urlencode({'return_url': return_url})}", status_code=302)


def _pending_response(request: Request, flow: AuthorizationFlow):
    """Response for a flow that cannot proceed to consent, or None."""
    if flow.status == GrantState.ERROR:
        if not flow.can_redirect:
            # Never redirect to a URI that failed validation
            return _authorize_error_page(flow.error)
        return RedirectResponse(url=flow.redirect_url(), status_code=302)

    if flow.status == GrantState.AWAITING_AUTHENTICATION:
        logger.info(f"[AUTHORIZE] No session for client {flow.client_id}, redirecting to login")
        return _login_redirect(request)

    return None


@router.get("/authorize")
async def authorize(
    request: Request,
    response_type: str = "",
    client_id: str = "",
    redirect_uri: str = "",
    scope: str = "",
    state: str = "",
):
    """OAuth 2.0 Authorization Endpoint - shows the consent page."""
    flow = _grant.begin_authorization(
        response_type, client_id, redirect_uri, scope, state,
        identity=_sessions.authenticate(request),
    )

    pending = _pending_response(request, flow)
    if pending is not None:
        return pending

    scopes_html = "".join(f"<li>{escape(s)}</li>" for s in flow.scopes) or NO_SCOPE_ITEM
    return HTMLResponse(CONSENT_PAGE.format(
        client_name=escape(flow.client.display_name),
        username=escape(flow.identity.name or flow.identity.subject),
        scopes=scopes_html,
        query=escape(request.url.query),
        consent_token=escape(_grant.issue_consent_token(flow)),
    ))


@router.post("/authorize")
async def authorize_submit(
    request: Request,
    response_type: str = "",
    client_id: str = "",
    redirect_uri: str = "",
    scope: str = "",
    state: str = "",
    action: str = Form(""),
    consent_token: str = Form(""),
):
    """Handle consent form submission."""
    flow = _grant.begin_authorization(
        response_type, client_id, redirect_uri, scope, state,
        identity=_sessions.authenticate(request),
    )

    if flow.status == GrantState.ERROR:
        return _pending_response(request, flow)

    if action == "switch_user":
        response = _login_redirect(request)
        _sessions.sign_out(response)
        return response

    pending = _pending_response(request, flow)
    if pending is not None:
        return pending

    if not _grant.verify_consent_token(flow, consent_token):
        logger.warning(f"[AUTHORIZE] Consent submission for {flow.client_id} without a valid consent token")
        return _authorize_error_page(InvalidRequest("The consent form expired or was not issued by this server"))

    if action == "grant":
        _grant.grant_consent(flow)
    elif action == "deny":
        _grant.deny_consent(flow)
    else:
        return _authorize_error_page(InvalidRequest("Unknown consent action"))

    return RedirectResponse(url=flow.redirect_url(), status_code=302)


# ============== Login Surface ==============

def _safe_return_url(return_url: str) -> str:
    """Only local paths are allowed as post-login targets."""
    if not return_url or not return_url.startswith("/") or return_url.startswith(("//", "/\\")):
        return "/"
    return return_url


@router.get("/login")
async def login_page(return_url: str = "/"):
    """Show login form."""
    return HTMLResponse(LOGIN_PAGE.format(return_url=escape(_safe_return_url(return_url)), error=""))


@router.post("/login")
async def login_submit(
    username: str = Form(""),
    return_url: str = Form("/"),
):
    """Handle login form submission."""
    username = username.strip()
    target = _safe_return_url(return_url)

    if not username:
        error_html = '<div class="error">Please enter a username</div>'
        return HTMLResponse(LOGIN_PAGE.format(return_url=escape(target), error=error_html), status_code=400)

    response = RedirectResponse(url=target, status_code=302)
    _sessions.sign_in(response, username)
    return response


@router.get("/logout")
async def logout():
    """Clear the session cookie."""
    response = HTMLResponse(SIGNED_OUT_PAGE.format())
    _sessions.sign_out(response)
    return response


# ============== Token Endpoint ==============

def _token_error(error: OAuthError) -> JSONResponse:
    headers = dict(NO_STORE_HEADERS)
    if error.status_code == 401:
        headers["WWW-Authenticate"] = 'Basic realm="token"'
    return JSONResponse(error.to_dict(), status_code=error.status_code, headers=headers)


@router.post("/token")
async def token(
    request: Request,
    grant_type: str = Form(None),
    code: str = Form(None),
    redirect_uri: str = Form(None),
    client_id: str = Form(None),
    client_secret: str = Form(None),
    refresh_token: str = Form(None),
    scope: str = Form(None),
):
    """OAuth 2.0 Token Endpoint."""
    logger.debug(f"[TOKEN] grant_type: {grant_type}, client_id: {client_id}")

    try:
        # Client authentication comes first, whatever else is wrong with the request
        client = _grant.clients.authenticate_client(
            request.headers.get("Authorization"), client_id, client_secret
        )
        result = _grant.token(
            grant_type,
            client,
            code=code,
            redirect_uri=redirect_uri,
            refresh_token=refresh_token,
            scope=scope,
        )
    except OAuthError as e:
        logger.info(f"[TOKEN] Request rejected: {e.error} ({e.description})")
        return _token_error(e)

    return JSONResponse(result.to_dict(), headers=NO_STORE_HEADERS)
