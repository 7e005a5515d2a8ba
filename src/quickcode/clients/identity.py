"""Identity token verification."""

import logging
from typing import Protocol

from ..exceptions import AuthenticationError, DomainNotAllowedError
from ..models import Identity

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    """Turns a bearer token into a verified identity."""

    def verify(self, token: str) -> Identity: ...


def check_domain(email: str, allowed_domain: str) -> str:
    """
    Normalize an e-mail and enforce the allowed domain.

    Args:
        email: E-mail claim from a verified token
        allowed_domain: Required domain, blank to allow any

    Returns:
        The lower-cased e-mail

    Raises:
        DomainNotAllowedError: If the e-mail is blank or in another domain
    """
    email = (email or "").strip().lower()
    allowed = (allowed_domain or "").strip().lower()
    if not email or (allowed and not email.endswith(f"@{allowed}")):
        raise DomainNotAllowedError("Forbidden: wrong domain")
    return email


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens with google-auth."""

    def __init__(self, project_id: str | None, allowed_domain: str = ""):
        """Initialize the verifier."""
        self.project_id = project_id
        self.allowed_domain = allowed_domain
        self._request = None

    @classmethod
    def from_settings(cls, settings) -> "FirebaseTokenVerifier":
        return cls(
            project_id=settings.firebase_project_id,
            allowed_domain=settings.allowed_domain,
        )

    def _transport(self):
        if self._request is None:
            from google.auth.transport import requests as google_requests

            self._request = google_requests.Request()
        return self._request

    def verify(self, token: str) -> Identity:
        """
        Verify a Firebase ID token.

        Raises:
            AuthenticationError: If the token is missing, invalid or expired
            DomainNotAllowedError: If the e-mail is outside the allowed domain
        """
        from google.oauth2 import id_token

        if not token:
            raise AuthenticationError("Missing Authorization: Bearer <token>")

        try:
            claims = id_token.verify_firebase_token(
                token, self._transport(), audience=self.project_id
            )
        except ValueError as e:
            logger.warning(f"Token verification failed: {e}")
            raise AuthenticationError("Invalid or expired token") from e

        if not claims:
            raise AuthenticationError("Invalid or expired token")

        email = check_domain(claims.get("email", ""), self.allowed_domain)
        uid = claims.get("user_id") or claims.get("sub") or ""
        return Identity(uid=uid, email=email)
