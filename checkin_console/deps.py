from __future__ import annotations
from typing import Any, Dict
import time
import httpx
import jwt
from fastapi import Depends, Header, HTTPException, status

from .core import qr
from .core.camera import OpenCVCamera
from .core.config import get_settings
from .services.gym_api import GymApiClient
from .services.orchestrator import CheckInOrchestrator
from .services.sessions import CheckInSessions

settings = get_settings()

_JWKS: Dict[str, Any] | None = None
_JWKS_TS: float = 0.0
_JWKS_TTL: int = 3600

async def fetch_jwks() -> Dict[str, Any]:
    global _JWKS, _JWKS_TS
    now = time.time()
    if _JWKS is None or (now - _JWKS_TS) > _JWKS_TTL:
        async with httpx.AsyncClient() as client:
            r = await client.get(settings.auth_jwks_url, timeout=5.0)
            r.raise_for_status()
            _JWKS = r.json()
            _JWKS_TS = now
    return _JWKS

async def get_signing_key(kid: str | None):
    from jwt.algorithms import RSAAlgorithm
    jwks = await fetch_jwks()
    keys = jwks.get("keys", [])
    key = next((k for k in keys if kid and k.get("kid") == kid), keys[0] if keys else None)
    if key is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No signing key")
    return RSAAlgorithm.from_jwk(key)

async def get_claims(authorization: str | None = Header(default=None)) -> Dict[str, Any]:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    key = await get_signing_key(kid)
    try:
        payload = jwt.decode(token, key=key, algorithms=["RS256"], issuer=settings.token_issuer, options={"verify_aud": False})
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if "sub" not in payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return payload

# --- check-in sessions, one per staff member ---

_http: httpx.AsyncClient | None = None
_sessions: CheckInSessions | None = None

def get_sessions() -> CheckInSessions:
    global _http, _sessions
    if _sessions is None:
        _http = httpx.AsyncClient()
        _sessions = CheckInSessions(
            GymApiClient(_http, settings),
            OpenCVCamera(index=settings.camera_index),
            qr.encode,
            settings,
        )
    return _sessions

async def close_sessions() -> None:
    global _http, _sessions
    if _sessions is not None:
        await _sessions.close_all()
        _sessions = None
    if _http is not None:
        await _http.aclose()
        _http = None

def get_checkin(
    claims: dict = Depends(get_claims),
    sessions: CheckInSessions = Depends(get_sessions),
) -> CheckInOrchestrator:
    return sessions.get(str(claims["sub"]))
