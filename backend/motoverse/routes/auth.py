from __future__ import annotations
import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from motoverse.auth_deps import security, get_current_user
from motoverse.db import get_session
from motoverse.models.user import User
from motoverse.schemas.auth import RegisterRequest, LoginRequest, UserPublic, TokenPair
from motoverse.security import hash_password, verify_password, make_access_token, make_refresh_token, decode_token

router = APIRouter(prefix="/api/auth", tags=["auth"])
log = structlog.get_logger()

def _tokens(request: Request, sub: str) -> TokenPair:
    cfg = request.app.state.settings
    return TokenPair(access=make_access_token(sub, cfg), refresh=make_refresh_token(sub, cfg))

@router.post("/register", status_code=201, response_model=UserPublic)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)):
    exists = await session.scalar(
        select(User).where(or_(User.email == payload.email, User.username == payload.username))
    )
    if exists:
        detail = "email_taken" if exists.email == payload.email else "username_taken"
        raise HTTPException(status_code=409, detail=detail)
    user = User(
        email=payload.email,
        username=payload.username,
        name=payload.name,
        password_hash=hash_password(payload.password),
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("user_registered", user_id=str(user.id), username=user.username)
    return UserPublic.model_validate(user)

@router.post("/login", response_model=TokenPair)
async def login(payload: LoginRequest, request: Request, session: AsyncSession = Depends(get_session)):
    user = await session.scalar(select(User).where(User.email == payload.email))
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="invalid_credentials")
    return _tokens(request, str(user.id))

@router.post("/refresh", response_model=TokenPair)
async def refresh(request: Request, credentials: HTTPAuthorizationCredentials | None = Depends(security)):
    if credentials is None:
        raise HTTPException(status_code=401, detail="missing_refresh_token")
    try:
        data = decode_token(credentials.credentials, request.app.state.settings)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="invalid_token")
    if data.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="wrong_token_type")
    return _tokens(request, data.get("sub"))

@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user)):
    return UserPublic.model_validate(user)
