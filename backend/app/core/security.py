from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.settings import settings
from app.models.profile import Profile


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str


def _normalize_email(value: str) -> str:
    return str(value or "").strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_supabase_config() -> str:
    if not settings.supabase_url:
        raise HTTPException(status_code=500, detail="SUPABASE_URL is not configured")
    return settings.supabase_url


def _decode_supabase_jwt(token: str) -> dict[str, Any]:
    import jwt

    supabase_url = _require_supabase_config().rstrip("/")
    jwks_url = f"{supabase_url}/auth/v1/.well-known/jwks.json"
    issuer = settings.supabase_jwt_issuer or f"{supabase_url}/auth/v1"
    audience = settings.supabase_jwt_audience or "authenticated"

    try:
        jwks_client = jwt.PyJWKClient(jwks_url)
        signing_key = jwks_client.get_signing_key_from_jwt(token).key
        payload = jwt.decode(
            token,
            signing_key,
            algorithms=["ES256", "RS256"],
            audience=audience,
            issuer=issuer,
            options={"require": ["exp", "sub"]},
        )
        return dict(payload)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid bearer token")
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid bearer token")


def _get_bearer_token(request: Request) -> str:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = auth.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


def _claims_full_name(claims: dict[str, Any]) -> str:
    user_meta = claims.get("user_metadata") or {}
    if not isinstance(user_meta, dict):
        return ""
    return str(user_meta.get("full_name") or user_meta.get("name") or "").strip()


def sync_profile(db: Session, user_id: str, email: str, full_name: str = "", seen_at: datetime | None = None) -> Profile:
    """Keep the local profile row in step with the token; the reminder sweep reads its email."""
    seen_at = seen_at or _utcnow()
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile is None:
        profile = Profile(id=user_id, email=email, full_name=(full_name or None), last_seen_at=seen_at)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile

    changed = False
    if email and (profile.email or "") != email:
        profile.email = email
        changed = True
    if full_name and (profile.full_name or "") != full_name:
        profile.full_name = full_name
        changed = True
    prev_seen = profile.last_seen_at
    if prev_seen is None:
        profile.last_seen_at = seen_at
        changed = True
    else:
        if prev_seen.tzinfo is None:
            prev_seen = prev_seen.replace(tzinfo=timezone.utc)
        if (seen_at - prev_seen).total_seconds() >= 600:
            profile.last_seen_at = seen_at
            changed = True
    if changed:
        try:
            db.commit()
        except SQLAlchemyError:
            # Presence updates must not fail the request.
            db.rollback()
    return profile


def get_current_user(request: Request, db: Session = Depends(get_db)) -> CurrentUser:
    token = _get_bearer_token(request)

    claims = _decode_supabase_jwt(token)
    user_id = str(claims.get("sub") or "").strip()
    email = _normalize_email(claims.get("email") or "")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    profile = sync_profile(db, user_id, email, _claims_full_name(claims))
    return CurrentUser(id=profile.id, email=profile.email or "")
