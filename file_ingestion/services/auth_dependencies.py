"""Bearer-token authentication against the external identity provider."""

from __future__ import annotations

import logging
from threading import Lock
from time import monotonic
from typing import Any, cast

import httpx
from fastapi import Depends, Header, HTTPException, Request
from jose import JWTError, jwt

from file_ingestion.config import settings

logger = logging.getLogger(__name__)

ROLE_DESCRIPTIONS = {
    "Admin": "You have full access to all features and settings.",
    "Editor": "You can create and edit content but have limited access to settings.",
    "Viewer": "You can view content but cannot make any changes.",
}

_JWKS_CACHE: dict | None = None
_JWKS_CACHE_AT: float | None = None
_JWKS_LOCK = Lock()


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def _issuer() -> str | None:
    if not settings.oidc_issuer_url:
        return None
    return settings.oidc_issuer_url.rstrip("/")


def _fetch_jwks(issuer: str) -> dict:
    discovery_url = f"{issuer}/.well-known/openid-configuration"
    with httpx.Client(timeout=10.0) as client:
        discovery = client.get(discovery_url)
        discovery.raise_for_status()
        jwks_uri = discovery.json()["jwks_uri"]
        response = client.get(jwks_uri)
        response.raise_for_status()
        return cast(dict, response.json())


def get_jwks() -> dict:
    global _JWKS_CACHE, _JWKS_CACHE_AT
    issuer = _issuer()
    if issuer is None:
        raise HTTPException(status_code=500, detail="Identity provider not configured")
    with _JWKS_LOCK:
        now = monotonic()
        if (
            _JWKS_CACHE is not None
            and _JWKS_CACHE_AT is not None
            and now - _JWKS_CACHE_AT < settings.jwks_cache_ttl_seconds
        ):
            return _JWKS_CACHE
        try:
            _JWKS_CACHE = _fetch_jwks(issuer)
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("jwks_fetch_failed issuer=%s error=%s", issuer, exc)
            raise HTTPException(status_code=503, detail="Identity provider unavailable") from exc
        _JWKS_CACHE_AT = now
        return _JWKS_CACHE


def clear_jwks_cache() -> None:
    global _JWKS_CACHE, _JWKS_CACHE_AT
    with _JWKS_LOCK:
        _JWKS_CACHE = None
        _JWKS_CACHE_AT = None


def decode_access_token(token: str) -> dict:
    options = {"verify_aud": settings.oidc_audience is not None}
    issuer = _issuer()
    try:
        if settings.jwt_secret:
            key: Any = settings.jwt_secret
            algorithms = [settings.jwt_algorithm]
        else:
            key = get_jwks()
            header = jwt.get_unverified_header(token)
            algorithms = [header.get("alg") or "RS256"]
        payload = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=settings.oidc_audience,
            issuer=issuer,
            options=options,
        )
    except JWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    return cast(dict, payload)


def extract_roles(payload: dict) -> list[str]:
    roles: list[str] = []
    role_value = payload.get("role")
    if isinstance(role_value, str):
        roles.append(role_value)
    roles_value = payload.get("roles")
    if isinstance(roles_value, list):
        roles.extend(str(item) for item in roles_value)
    realm_access = payload.get("realm_access")
    if isinstance(realm_access, dict) and isinstance(realm_access.get("roles"), list):
        roles.extend(str(item) for item in realm_access["roles"])
    return list(dict.fromkeys(roles))


def primary_role(roles: list[str]) -> str:
    """Highest of Admin/Editor/Viewer held by the caller; Viewer by default."""
    for role in ("Admin", "Editor"):
        if role in roles:
            return role
    return "Viewer"


def can_edit(auth: dict) -> bool:
    return bool(settings.editor_role_set.intersection(auth.get("roles") or []))


def authenticate_token(token: str) -> dict:
    payload = decode_access_token(token)
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Unauthorized")
    roles = extract_roles(payload)
    return {
        "subject": str(subject),
        "username": payload.get("preferred_username") or payload.get("email") or str(subject),
        "roles": roles,
        "role": primary_role(roles),
    }


def require_user_auth(
    authorization: str | None = Header(default=None),
    request: Request = None,
):
    token = _extract_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    auth = authenticate_token(token)
    if request is not None:
        request.state.actor_id = auth["subject"]
    return auth


def require_editor(auth=Depends(require_user_auth)):
    if not can_edit(auth):
        logger.warning(
            "ingestion_access_denied subject=%s roles=%s", auth["subject"], auth["roles"]
        )
        raise HTTPException(status_code=403, detail="Forbidden")
    return auth
