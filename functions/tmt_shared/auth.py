"""
Login and Request Session
=========================

Authentication is a plaintext lookup against the ``Login`` sheet
(A username, B password, C user type, D display name): the first row whose
username and password both match exactly wins.

A successful login is answered with a signed session token. Callers send it
back on every request as ``Authorization: Bearer <token>``, and
``session_from_headers`` turns it into the ``UserSession`` passed to every
operation. The user type inside the token is the one read from the Login
sheet; nothing the caller sends alongside it can change it.

Token format
------------
``<base64url(json payload)>.<hex HMAC-SHA256 of the payload>``

payload: ``{"u": username, "t": user type, "d": display name, "iat": ..., "exp": ...}``

There is no server-side session store; logging out means the client
discards its token.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .gviz_client import GvizClient
from .models import UserSession
from .sheet_config import SheetName, Column

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"
BEARER_PREFIX = "bearer "

DEFAULT_SESSION_TTL_SECONDS = 12 * 60 * 60


class SessionConfigError(Exception):
    """Raised when a token must be issued but no signing secret is configured."""
    pass


@dataclass
class SessionConfig:
    """Signing settings for session tokens."""

    secret: Optional[str] = None
    ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS

    @classmethod
    def from_environment(cls) -> "SessionConfig":
        """Load configuration from environment variables."""
        return cls(
            secret=os.environ.get("SESSION_SECRET") or None,
            ttl_seconds=int(os.environ.get("SESSION_TTL_SECONDS", str(DEFAULT_SESSION_TTL_SECONDS))),
        )


def authenticate(
    client: GvizClient,
    username: str,
    password: str,
    trace_id: str = ""
) -> Optional[UserSession]:
    """
    Look up credentials in the Login sheet.

    Returns:
        UserSession on an exact username+password match, None otherwise

    Raises:
        GvizError: If the Login sheet cannot be read
    """
    if not username or not password:
        return None

    c = Column.LOGIN
    for row in client.fetch_rows(SheetName.LOGIN.value):
        if row.text(c.USERNAME) == username and row.text(c.PASSWORD) == password:
            session = UserSession(
                username=username,
                display_name=row.text(c.DISPLAY_NAME) or username,
                user_type=row.text(c.USER_TYPE),
            )
            logger.info(f"[{trace_id}] Login ok: {username} ({session.user_type.value})")
            return session

    logger.warning(f"[{trace_id}] Login failed for: {username}")
    return None


def _sign(raw: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()


def issue_session_token(
    session: UserSession,
    config: Optional[SessionConfig] = None,
    now: Optional[float] = None
) -> Tuple[str, int]:
    """
    Sign a token for ``session``.

    Returns:
        (token, expiry as epoch seconds)

    Raises:
        SessionConfigError: If SESSION_SECRET is not set
    """
    config = config or SessionConfig.from_environment()
    if not config.secret:
        raise SessionConfigError("SESSION_SECRET is not configured")

    iat = int(now if now is not None else time.time())
    exp = iat + config.ttl_seconds
    payload = {
        "u": session.username,
        "t": session.user_type.value,
        "d": session.display_name,
        "iat": iat,
        "exp": exp,
    }
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
    token = base64.urlsafe_b64encode(raw).decode() + "." + _sign(raw, config.secret)
    return token, exp


def verify_session_token(
    token: str,
    config: Optional[SessionConfig] = None,
    now: Optional[float] = None
) -> Optional[UserSession]:
    """Return the session a token was issued for; None if it is malformed, forged or expired."""
    config = config or SessionConfig.from_environment()
    if not config.secret:
        logger.error("SESSION_SECRET is not configured; rejecting session token")
        return None

    try:
        data_b64, signature = token.split(".", 1)
        raw = base64.urlsafe_b64decode(data_b64.encode())
    except (ValueError, binascii.Error):
        return None

    if not hmac.compare_digest(signature.encode(), _sign(raw, config.secret).encode()):
        logger.warning("Session token signature mismatch")
        return None

    try:
        payload = json.loads(raw.decode())
        exp = int(payload.get("exp", 0))
        username = str(payload.get("u") or "").strip()
    except (ValueError, TypeError, AttributeError):
        return None

    current = int(now if now is not None else time.time())
    if not username or current > exp:
        return None

    return UserSession(
        username=username,
        display_name=payload.get("d"),
        user_type=payload.get("t"),
    )


def session_from_headers(
    headers: Mapping[str, str],
    config: Optional[SessionConfig] = None
) -> Optional[UserSession]:
    """Build the caller's session from the bearer token; None without a valid one."""
    lowered = {k.lower(): v for k, v in dict(headers).items()}
    authorization = (lowered.get(AUTHORIZATION_HEADER.lower()) or "").strip()
    if not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        return None
    return verify_session_token(token, config)
