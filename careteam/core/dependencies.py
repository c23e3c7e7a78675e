"""FastAPI dependency chain: JWT -> User.

Team resolution is not a dependency: routes pass the team id from the path
to the service layer, which runs the access gate itself.
"""

from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careteam.core.security import decode_access_token
from careteam.db.session import async_session_factory
from careteam.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session. Commits on success, rolls back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_optional_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict | None:
    """Verify the Bearer token if one was sent. No header means anonymous."""
    if credentials is None:
        return None

    try:
        claims = await decode_access_token(credentials.credentials)
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}") from e

    return claims


async def _user_from_claims(claims: dict, db: AsyncSession) -> User:
    """Resolve the identity provider subject to a User row.

    Auto-provisions the user on first sight and syncs name fields from the
    token claims.
    """
    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing sub claim")

    result = await db.execute(select(User).where(User.auth_sub == sub))
    user = result.scalar_one_or_none()

    first_name = claims.get("given_name")
    last_name = claims.get("family_name")
    if user is None:
        user = User(
            auth_sub=sub,
            email=(claims.get("email") or f"{sub}@placeholder.local").lower(),
            first_name=first_name,
            last_name=last_name,
            name=claims.get("name"),
        )
        db.add(user)
        await db.flush()
    elif (first_name and first_name != user.first_name) or (
        last_name and last_name != user.last_name
    ):
        user.first_name = first_name or user.first_name
        user.last_name = last_name or user.last_name
        await db.flush()

    if not user.is_active:
        raise HTTPException(status_code=403, detail="User account is deactivated")

    return user


async def get_optional_user(
    claims: dict | None = Depends(get_optional_claims),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    if claims is None:
        return None
    return await _user_from_claims(claims, db)
