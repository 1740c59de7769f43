from datetime import datetime, timedelta, timezone

import jwt

from beton_feedback.core import config

ADMIN_SCOPE = "admin"


def create_admin_token(phone: str, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    claims = {"sub": phone, "scope": ADMIN_SCOPE, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_admin_token(token: str) -> dict:
    """Return the claims of a valid admin token.

    Raises ``jwt.PyJWTError`` for bad signatures, expired tokens, and tokens
    minted for any scope other than admin.
    """
    claims = jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    if claims.get("scope") != ADMIN_SCOPE:
        raise jwt.InvalidTokenError("Token is not scoped for admin access")
    return claims
