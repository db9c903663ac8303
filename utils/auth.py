"""Bearer token verification.

Tokens are HS256 JWTs whose `sub` claim is the user identity. Issuing tokens
is the job of the account service; `create_access_token` exists for local
tooling and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

ACCESS_TOKEN_EXPIRE_MINUTES = 1440  # 24 hours

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Identity:
    """The verified caller."""

    user_id: str
    name: Optional[str] = None


def create_access_token(
    subject: str,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
    **claims: Any,
) -> str:
    to_encode = dict(claims)
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"sub": subject, "exp": expire})
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_identity(token: str, secret: str, algorithm: str = "HS256") -> Identity:
    """Verify `token` and return its identity.

    Raises:
        HTTPException(401): If the token is invalid, expired, or has no subject.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid or expired token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return Identity(user_id=str(subject), name=payload.get("name"))


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """FastAPI dependency resolving the caller from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    config = request.app.state.config
    return decode_identity(credentials.credentials, config.jwt_secret, config.jwt_algorithm)
