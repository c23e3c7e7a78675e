"""JWT verification with dual-mode support (identity provider JWKS + mock HS256)."""

import time

import httpx
from jose import JWTError, jwt

from careteam.core.config import settings

_jwks_cache: dict | None = None
_jwks_fetched_at: float = 0.0
JWKS_REFRESH_INTERVAL = 3600  # 1 hour


async def _fetch_jwks() -> dict:
    global _jwks_cache, _jwks_fetched_at
    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await client.get(settings.AUTH_JWKS_URL)
        resp.raise_for_status()
    _jwks_cache = resp.json()
    _jwks_fetched_at = time.time()
    return _jwks_cache


async def _get_jwks() -> dict:
    if _jwks_cache is None or (time.time() - _jwks_fetched_at) > JWKS_REFRESH_INTERVAL:
        return await _fetch_jwks()
    return _jwks_cache


async def decode_access_token(token: str) -> dict:
    """Decode and verify an access token. Returns the claims dict."""
    if settings.AUTH_MOCK:
        return _decode_mock_token(token)
    return await _decode_provider_token(token)


async def _decode_provider_token(token: str) -> dict:
    """Verify an identity-provider RS256 JWT against its JWKS."""
    jwks_data = await _get_jwks()

    kid = jwt.get_unverified_header(token).get("kid")
    key = next((k for k in jwks_data.get("keys", []) if k.get("kid") == kid), None)
    if key is None:
        raise JWTError("Key not found in JWKS")

    return jwt.decode(
        token,
        key,
        algorithms=["RS256"],
        audience=settings.AUTH_AUDIENCE,
        issuer=settings.AUTH_ISSUER or None,
        options={"verify_aud": settings.AUTH_AUDIENCE is not None, "verify_at_hash": False},
    )


def _decode_mock_token(token: str) -> dict:
    """Decode a mock JWT signed with SECRET_KEY (for local dev/testing)."""
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=["HS256"],
        options={"verify_aud": False, "verify_iss": False},
    )


def create_mock_access_token(
    sub: str,
    email: str = "test@example.com",
    first_name: str | None = None,
    last_name: str | None = None,
    expires_in: int = 900,
) -> str:
    """Create a mock JWT for testing. Only usable when AUTH_MOCK=true."""
    payload = {
        "sub": sub,
        "email": email,
        "iat": int(time.time()),
        "exp": int(time.time()) + expires_in,
    }
    if first_name:
        payload["given_name"] = first_name
    if last_name:
        payload["family_name"] = last_name
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")
