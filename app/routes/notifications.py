from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Client, Project, Quote, User
from ..auth.security import get_current_user
from ..schemas.projects import NotificationResponse
from ..services.notifications import Alert, derive_alerts, list_notifications


router = APIRouter(prefix="/api", tags=["notifications"])


def alerts_for_user(db: Session, user: User) -> List[Alert]:
    projects = db.query(Project).filter(Project.user_id == user.id).order_by(Project.id).all()
    quotes = db.query(Quote).filter(Quote.user_id == user.id).order_by(Quote.id).all()
    client_names = {c.id: c.name for c in db.query(Client).filter(Client.user_id == user.id).all()}
    return derive_alerts(projects, quotes, client_names)


@router.get("/notifications", response_model=List[NotificationResponse])
def get_notifications(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return list_notifications(db, user.id)


@router.get("/alerts", response_model=List[NotificationResponse])
def get_alerts(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Derived on every call, never stored."""
    return [NotificationResponse(**a.to_dict()) for a in alerts_for_user(db, user)]
