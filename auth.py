# QueryGate - Auth (JWT -> AuthenticatedCaller)
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from config import get_settings
from querygate.models import AuthenticatedCaller

bearer = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"
ACCESS_EXPIRE_MINUTES = 60


def get_secret():
    return get_settings().secret_key


def create_access_token(data: dict, expires_minutes: int = ACCESS_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, get_secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, get_secret(), algorithms=[ALGORITHM])
    except JWTError:
        return None


def caller_from_claims(payload: dict) -> AuthenticatedCaller | None:
    """Verified claims -> caller. Role, tenant and sites may be absent (filled from the users table)."""
    sub = payload.get("sub")
    if not sub:
        return None
    sites = payload.get("sites")
    if isinstance(sites, str):
        sites = [sites]
    return AuthenticatedCaller(
        caller_id=str(sub),
        tenant_id=payload.get("tenant_id") or None,
        role=payload.get("role") or None,
        scope_values=tuple(str(s) for s in sites) if isinstance(sites, list) and sites else None,
    )


async def require_caller(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> AuthenticatedCaller:
    """401 unless a valid bearer token with a subject is presented."""
    payload = decode_token(credentials.credentials) if credentials else None
    caller = caller_from_claims(payload) if payload else None
    if caller is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return caller
