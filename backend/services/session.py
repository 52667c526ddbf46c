"""Signed session cookie: ``username|hex(HMAC-SHA256(secret, username))``."""

import hashlib
import hmac
from typing import Optional

COOKIE_NAME = "dpd_auth"
COOKIE_MAX_AGE = 60 * 60 * 12


def _signature(secret: str, username: str) -> str:
    return hmac.new(secret.encode("utf-8"), username.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_token(secret: str, username: str) -> str:
    return f"{username}|{_signature(secret, username)}"


def verify_token(secret: str, token: Optional[str]) -> Optional[str]:
    """Return the username if the token's signature matches, else None."""
    if not token:
        return None
    idx = token.rfind("|")
    if idx < 1:
        return None
    username, sig = token[:idx], token[idx + 1:]
    if not hmac.compare_digest(sig, _signature(secret, username)):
        return None
    return username


def verify_credentials(accounts: dict, username: str, password: str) -> bool:
    expected = accounts.get(username)
    if not expected or not password:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8"))
