from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Client, Integration, Material, Project, Quote, Service, User
from ..auth.security import get_current_user
from ..schemas.clients import ClientResponse, MaterialResponse, ServiceResponse
from ..schemas.projects import NotificationResponse, ProjectResponse
from ..schemas.quotes import QuoteResponse
from ..services.account import ensure_settings, to_initials
from ..services.notifications import list_notifications
from .integrations import integration_dict
from .notifications import alerts_for_user


router = APIRouter(prefix="/api", tags=["dashboard"])

DEFAULT_SATISFACTION = 4.6


@router.get("/bootstrap")
def bootstrap(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Everything the single-page UI needs on load, including the derived alerts."""
    account = ensure_settings(db, user.id)

    def owned(model):
        return db.query(model).filter(model.user_id == user.id)

    return {
        "user": {"id": user.id, "name": user.name, "email": user.email, "initials": to_initials(user.name)},
        "data": {
            "clients": [ClientResponse.model_validate(c) for c in owned(Client).order_by(Client.id).all()],
            "services": [ServiceResponse.model_validate(s) for s in owned(Service).order_by(Service.id).all()],
            "materials": [MaterialResponse.model_validate(m) for m in owned(Material).order_by(Material.id).all()],
            "laborRate": account.labor_rate,
            "quotes": [QuoteResponse.model_validate(q) for q in owned(Quote).order_by(Quote.id.desc()).all()],
            "projects": [ProjectResponse.model_validate(p) for p in owned(Project).order_by(Project.id).all()],
            "notifications": [NotificationResponse.model_validate(n) for n in list_notifications(db, user.id)],
            "alerts": [a.to_dict() for a in alerts_for_user(db, user)],
            "integrations": [integration_dict(i) for i in owned(Integration).order_by(Integration.id).all()],
            "satisfaction": {
                "score": account.satisfaction_score or DEFAULT_SATISFACTION,
                "responses": account.satisfaction_responses or 0,
            },
        },
    }
