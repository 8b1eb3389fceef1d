from __future__ import annotations

from dataclasses import dataclass

import jwt

from logistics_hub.errors import AuthError

AUDIENCE = "authenticated"
ALGORITHMS = ["HS256"]


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str | None = None


def verify_access_token(token: str | None, secret: str) -> AuthenticatedUser:
    """Validate a Supabase-issued access token and return its subject.

    Tokens are verified only; this service never issues them.
    """

    if not token:
        raise AuthError("Missing access token")
    try:
        claims = jwt.decode(token, secret, algorithms=ALGORITHMS, audience=AUDIENCE)
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Access token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError(f"Invalid access token: {exc}") from exc

    subject = claims.get("sub")
    if not subject:
        raise AuthError("Access token has no subject")
    return AuthenticatedUser(id=str(subject), email=claims.get("email"))


def bearer_token(header_value: str | None) -> str | None:
    if not header_value:
        return None
    scheme, _, credentials = header_value.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()
