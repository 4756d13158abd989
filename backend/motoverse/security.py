from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from passlib.context import CryptContext
from motoverse.config import Settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_ALG = "HS256"

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)

def _make_token(sub: str, ttl_min: int, token_type: str, secret: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "type": token_type,
        "iat": now.timestamp(),  # float keeps consecutive tokens distinct
        "exp": int((now + timedelta(minutes=ttl_min)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALG)

def make_access_token(sub: str, cfg: Settings) -> str:
    return _make_token(sub, cfg.access_ttl_min, "access", cfg.jwt_secret)

def make_refresh_token(sub: str, cfg: Settings) -> str:
    return _make_token(sub, cfg.refresh_ttl_min, "refresh", cfg.jwt_secret)

def decode_token(token: str, cfg: Settings) -> dict[str, Any]:
    return jwt.decode(token, cfg.jwt_secret, algorithms=[JWT_ALG])
