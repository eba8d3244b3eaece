"""OAuth 2.0 error taxonomy.

Every failure the grant flow can report is an OAuthError subclass carrying the
RFC 6749 error code and the HTTP status the token endpoint answers with.
Descriptions are fixed strings so no code, token or secret ever reaches a
client response.
"""

from typing import Optional


class OAuthError(Exception):
    """Base class for protocol errors reported to the client."""

    error = "server_error"
    status_code = 400
    description = "The request could not be processed"

    def __init__(self, description: Optional[str] = None):
        if description:
            self.description = description
        super().__init__(self.description)

    def to_dict(self) -> dict:
        return {"error": self.error, "error_description": self.description}


class InvalidRequest(OAuthError):
    error = "invalid_request"
    description = "The request is missing a required parameter or is malformed"


class UnknownClient(OAuthError):
    error = "invalid_client"
    description = "Unknown client"


class InvalidRedirectUri(OAuthError):
    error = "invalid_request"
    description = "The redirect URI is not registered for this client"


class InvalidClientCredentials(OAuthError):
    error = "invalid_client"
    status_code = 401
    description = "Client authentication failed"


class InvalidGrant(OAuthError):
    error = "invalid_grant"
    description = "The provided grant is invalid"


class CodeNotFound(InvalidGrant):
    description = "Unknown authorization code"


class CodeAlreadyUsed(InvalidGrant):
    description = "Authorization code has already been used"


class CodeExpired(InvalidGrant):
    description = "Authorization code expired"


class TicketError(InvalidGrant):
    description = "Invalid token"


class MalformedTicket(TicketError):
    description = "Malformed or tampered token"


class TicketExpired(TicketError):
    description = "Token expired"


class AccessDenied(OAuthError):
    error = "access_denied"
    description = "The resource owner denied the request"


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"
    description = "Unsupported grant type"


class UnsupportedResponseType(OAuthError):
    error = "unsupported_response_type"
    description = "Only the code response type is supported"


class InvalidScope(OAuthError):
    error = "invalid_scope"
    description = "The requested scope exceeds the original grant"
