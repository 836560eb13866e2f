from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..logging import structlog
from ..models.models import User
from ..schemas.auth import LoginRequest, TokenResponse
from ..services.account import ensure_settings
from ..services.calendar_sync import CalendarSyncError, GoogleCalendarSync
from .security import (
    create_access_token,
    create_state_token,
    decode_token,
    user_from_payload,
    verify_password,
)


router = APIRouter(tags=["auth"])


@router.post("/api/auth/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email).first()
    if not user or not verify_password(req.password or "", user.password_hash):
        raise HTTPException(status_code=401, detail="Identifiants invalides.")
    return TokenResponse(token=create_access_token(user.id))


@router.get("/auth/google")
def google_connect(token: Optional[str] = None, db: Session = Depends(get_db)):
    """Start the Google Calendar consent flow. Browser navigation, so the session token comes as a query param."""
    if not token:
        raise HTTPException(status_code=400, detail="Token manquant.")
    user = user_from_payload(decode_token(token), db)
    try:
        url = GoogleCalendarSync.authorization_url(settings, create_state_token(user.id))
    except CalendarSyncError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RedirectResponse(url=url)


@router.get("/auth/google/callback")
def google_callback(code: Optional[str] = None, state: Optional[str] = None, db: Session = Depends(get_db)):
    if not code or not state:
        raise HTTPException(status_code=400, detail="Autorisation invalide.")
    payload = decode_token(state)
    if payload.get("type") != "oauth_state":
        raise HTTPException(status_code=401, detail="Session invalide.")
    user = user_from_payload(payload, db)
    if not settings.google_client_id or not settings.google_client_secret:
        raise HTTPException(status_code=400, detail="Google Calendar: identifiants non configurés.")
    try:
        tokens = GoogleCalendarSync.exchange_code(settings, code)
    except httpx.HTTPError as e:
        structlog.get_logger().warning("google_token_exchange_failed", error=str(e))
        raise HTTPException(status_code=400, detail="Impossible de finaliser la connexion Google Calendar.")
    account = ensure_settings(db, user.id)
    refresh_token = tokens.get("refresh_token") or account.google_refresh_token
    if not refresh_token:
        raise HTTPException(status_code=400, detail="Autorisation incomplète. Relancez la connexion Google Calendar.")
    account.google_refresh_token = refresh_token
    account.google_calendar_id = account.google_calendar_id or "primary"
    db.commit()
    return RedirectResponse(url=f"{settings.public_base_url}/?google=connected")
