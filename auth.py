"""
Bearer-token verification for the generation API.

The API layer owns authentication; the rendering engine never sees tokens.
Tokens are Supabase-issued JWTs:

    SUPABASE_JWT_SECRET  : verifies HS256 tokens
    SUPABASE_URL         : JWKS endpoint for RS256/ES256 tokens

When neither is configured, the middleware in app_server.py lets requests
through (local development).
"""

from __future__ import annotations

import jwt

from settings import Settings

_jwks_clients: dict[str, jwt.PyJWKClient] = {}


def _get_jwks_client(supabase_url: str) -> jwt.PyJWKClient | None:
    if not supabase_url:
        return None
    client = _jwks_clients.get(supabase_url)
    if client is None:
        client = jwt.PyJWKClient(
            f"{supabase_url}/auth/v1/.well-known/jwks.json",
            cache_keys=True,
        )
        _jwks_clients[supabase_url] = client
    return client


def decode_token(token: str, settings: Settings) -> dict:
    """
    Validate a bearer token and return its claims.

    Raises jwt.InvalidTokenError (or a subclass such as ExpiredSignatureError).
    """
    header = jwt.get_unverified_header(token)
    alg = header.get("alg", "HS256")

    if alg == "HS256":
        if not settings.jwt_secret:
            raise jwt.InvalidTokenError("SUPABASE_JWT_SECRET is not set, cannot validate HS256 token.")
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )

    client = _get_jwks_client(settings.supabase_url)
    if client is None:
        raise jwt.InvalidTokenError(
            f"Token uses {alg} but SUPABASE_URL is not set, cannot fetch JWKS."
        )
    signing_key = client.get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=[alg],
        options={"verify_aud": False},
    )


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None
