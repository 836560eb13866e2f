"""
Notifications: the persisted feed (project created / status changed) and the
dashboard alerts, which are derived on every request and never stored.
"""
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

import pytz
from sqlalchemy.orm import Session

from ..models.models import (
    Notification,
    Project,
    Quote,
    PROJECT_DONE,
    PROJECT_URGENT,
    QUOTE_PENDING,
    QUOTE_SENT,
)
from ..config import settings


MAX_ALERTS = 6
DUE_SOON_DAYS = 5
FOLLOW_UP_AFTER_DAYS = 7
MISSING_ACK_AFTER_DAYS = 2


def add_notification(db: Session, user_id: int, label: str, type_: str) -> Notification:
    """
    Append a notification to the account feed.

    Args:
        db: Database session
        user_id: Account id
        label: Human-readable text
        type_: danger|warning|success

    Returns:
        The persisted Notification (flushed, not committed)
    """
    notification = Notification(user_id=user_id, label=label, type=type_)
    db.add(notification)
    db.flush()
    return notification


def list_notifications(db: Session, user_id: int, limit: int = 50) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.id.desc())
        .limit(limit)
        .all()
    )


@dataclass
class Alert:
    label: str
    type: str

    def to_dict(self) -> dict:
        return asdict(self)


def today_local(timezone_str: Optional[str] = None) -> date:
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.now(tz).date()


def _days_until(value: Optional[date], today: date) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return (value - today).days


def derive_alerts(
    projects: Iterable[Project],
    quotes: Iterable[Quote],
    client_names: Dict[int, str],
    today: Optional[date] = None,
    limit: int = MAX_ALERTS,
) -> List[Alert]:
    """
    Actionable dashboard alerts, projects first then quotes, in storage order,
    truncated to `limit`. No further prioritization.
    """
    today = today or today_local()
    items: List[Alert] = []

    for project in projects:
        if project.status == PROJECT_DONE:
            continue
        if project.status == PROJECT_URGENT:
            items.append(Alert(f"Projet urgent : {project.name}", "danger"))
        diff = _days_until(project.due_date, today)
        if diff is None:
            continue
        if diff < 0:
            items.append(Alert(f"Projet en retard : {project.name}", "danger"))
        elif diff <= DUE_SOON_DAYS:
            items.append(Alert(f"Échéance proche ({diff} j) : {project.name}", "warning"))

    for quote in quotes:
        diff = _days_until(quote.sent_at, today)
        if diff is None:
            continue
        client_name = client_names.get(quote.client_id, "")
        if quote.status == QUOTE_PENDING and diff <= -FOLLOW_UP_AFTER_DAYS:
            items.append(Alert(f"Relance devis : {client_name}", "warning"))
        if quote.status == QUOTE_SENT and not quote.ack and diff <= -MISSING_ACK_AFTER_DAYS:
            items.append(Alert(f"Accusé manquant : {client_name}", "warning"))

    return items[:limit]
