"""Anonymous per-browser session identity backed by a signed cookie."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import string
from dataclasses import dataclass

from fastapi import Depends, Request, Response

from shopassist.config import Settings, get_settings

logger = logging.getLogger(__name__)

SESSION_ID_LENGTH = 32
_ALPHABET = string.ascii_letters + string.digits


def generate_session_id() -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(SESSION_ID_LENGTH))


def _signature(session_id: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"), session_id.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def sign_session_id(session_id: str, secret: str) -> str:
    """Return the cookie value ``{session_id}.{signature}``."""
    return f"{session_id}.{_signature(session_id, secret)}"


def verify_session_cookie(value: str | None, secret: str) -> str | None:
    """Return the session id carried by ``value`` if the signature matches."""
    if not value or "." not in value:
        return None
    session_id, _, signature = value.partition(".")
    if len(session_id) != SESSION_ID_LENGTH or not session_id.isalnum():
        return None
    if not hmac.compare_digest(signature, _signature(session_id, secret)):
        return None
    return session_id


@dataclass(frozen=True)
class SessionIdentity:
    """Resolved session for one request."""

    session_id: str
    is_new: bool
    cookie_name: str
    cookie_value: str
    max_age: int
    secure: bool

    def apply(self, response: Response) -> Response:
        """Set the session cookie on ``response`` when the id was just issued."""
        if self.is_new:
            response.set_cookie(
                key=self.cookie_name,
                value=self.cookie_value,
                httponly=True,
                secure=self.secure,
                samesite="lax",
                max_age=self.max_age,
                path="/",
            )
        return response


def resolve_session(cookie_value: str | None, config: Settings) -> SessionIdentity:
    session_id = verify_session_cookie(cookie_value, config.session_secret)
    is_new = session_id is None
    if is_new:
        if cookie_value:
            logger.warning("Rejected session cookie with invalid signature")
        session_id = generate_session_id()

    return SessionIdentity(
        session_id=session_id,
        is_new=is_new,
        cookie_name=config.session_cookie_name,
        cookie_value=sign_session_id(session_id, config.session_secret),
        max_age=config.session_max_age_days * 24 * 60 * 60,
        secure=config.is_production,
    )


def get_session(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> SessionIdentity:
    """FastAPI dependency: read the session cookie or issue a new identity."""
    return resolve_session(request.cookies.get(settings.session_cookie_name), settings)
