"""
Bearer-token authentication.

Tokens are HS256 JWTs whose ``sub`` is the user's ObjectId string. Any
failure (missing/expired/forged token, deleted user) is a 401.
"""

from datetime import datetime, timedelta, timezone
from jose import ExpiredSignatureError, JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from app.core.config import settings
from app.db.mongo import get_db
from app.repositories.user_repo import UserRepository
from app.models.user import UserResponse

bearer_scheme = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Issue a token for user_id, valid for JWT_EXPIRATION_MINUTES unless overridden."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

    claims = {
        "sub": user_id,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp())
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the user id carried by a token, or raise 401."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError:
        raise _unauthorized("Invalid token")

    subject = claims.get("sub")
    if not subject:
        raise _unauthorized("Invalid token")
    return subject


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db = Depends(get_db)
) -> UserResponse:
    """Resolve the Authorization header to the calling user."""
    user_id = decode_access_token(credentials.credentials)

    user = await UserRepository(db).get_user_by_id(user_id)
    if user is None:
        raise _unauthorized("User not found")

    return user.to_response()
