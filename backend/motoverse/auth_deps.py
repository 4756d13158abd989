from __future__ import annotations
import uuid
import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from motoverse.db import get_session
from motoverse.security import decode_token
from motoverse.models.user import User

# auto_error=False: a missing header must be a 401, not FastAPI's default 403
security = HTTPBearer(auto_error=False)

async def _user_from_token(request: Request, token: str, session: AsyncSession) -> User:
    try:
        data = decode_token(token, request.app.state.settings)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="invalid_token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="wrong_token_type")
    try:
        user_id = uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="invalid_token")
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="user_not_found")
    return user

async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return await _user_from_token(request, credentials.credentials, session)

async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> User | None:
    if credentials is None:
        return None
    return await _user_from_token(request, credentials.credentials, session)

async def require_staff(user: User = Depends(get_current_user)) -> User:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="forbidden")
    return user
