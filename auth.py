from __future__ import annotations
import json
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from config import Settings, get_settings
from schemas import AdminPrincipal

logger = logging.getLogger(__name__)

ADMIN_ID = "admin-1"

bearer = HTTPBearer(auto_error=False)


class AdminCredential(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


@lru_cache
def load_admin_credential() -> AdminCredential:
    path = get_settings().ADMIN_FILE
    with open(path, encoding="utf-8") as fh:
        return AdminCredential.model_validate(json.load(fh))


def authenticate(email: str, password: str, credential: AdminCredential) -> Optional[AdminPrincipal]:
    if email == credential.email and password == credential.password:
        return AdminPrincipal(id=ADMIN_ID, email=credential.email, name=credential.name, role="admin")
    return None


def issue_token(principal: AdminPrincipal, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": principal.id,
        "email": principal.email,
        "name": principal.name,
        "role": principal.role,
        "iat": now,
        "exp": now + timedelta(days=settings.SESSION_MAX_AGE_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, settings: Settings) -> AdminPrincipal:
    """Verify a session token; raises jwt.PyJWTError when it is invalid or expired."""
    claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    return AdminPrincipal(id=claims["sub"], email=claims["email"], name=claims.get("name"), role=claims["role"])


async def require_admin(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    settings: Settings = Depends(get_settings),
) -> AdminPrincipal:
    if creds is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        principal = decode_token(creds.credentials, settings)
    except (jwt.PyJWTError, KeyError) as e:
        logger.warning("Rejected session token: %s", e)
        raise HTTPException(status_code=401, detail="Unauthorized")
    if principal.role != "admin":
        raise HTTPException(status_code=401, detail="Unauthorized")
    return principal
