from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import engine, get_db
from ..config import settings
from ..models.models import Integration, User
from ..auth.security import get_current_user
from ..services.account import ensure_settings


router = APIRouter(prefix="/api", tags=["integrations"])


class IntegrationUpdate(BaseModel):
    enabled: bool = False


def integration_dict(row: Integration) -> dict:
    return {"id": row.id, "name": row.name, "description": row.description, "enabled": bool(row.enabled)}


@router.get("/health")
def health():
    db_ok = True
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
    except SQLAlchemyError:
        db_ok = False
    return {"ok": True, "db": db_ok}


@router.patch("/integrations/{integration_id}")
def update_integration(
    integration_id: int,
    payload: IntegrationUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = db.query(Integration).filter(Integration.id == integration_id, Integration.user_id == user.id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Intégration introuvable.")
    row.enabled = payload.enabled
    db.commit()
    db.refresh(row)
    return {"integration": integration_dict(row)}


@router.get("/google/status")
def google_status(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    account = ensure_settings(db, user.id)
    return {
        "connected": bool(account.google_refresh_token),
        "configured": bool(settings.google_client_id and settings.google_client_secret),
    }


@router.post("/google/disconnect")
def google_disconnect(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    account = ensure_settings(db, user.id)
    account.google_refresh_token = None
    db.commit()
    return {"ok": True}
