from sqlalchemy.orm import Session

from ..config import settings
from ..auth.security import get_password_hash
from ..models.models import AccountSettings, Integration, User


DEFAULT_INTEGRATIONS = (
    ("Google Calendar", "Synchronise les échéances des chantiers."),
    ("iCloud (CalDAV)", "Publie les chantiers dans un calendrier CalDAV."),
    ("Email (SMTP)", "Envoi des devis et des devis signés."),
)


def ensure_settings(db: Session, user_id: int) -> AccountSettings:
    """Account settings row, created with defaults on first access."""
    row = db.query(AccountSettings).filter(AccountSettings.user_id == user_id).first()
    if row is None:
        row = AccountSettings(
            user_id=user_id,
            labor_rate=settings.default_labor_rate,
            satisfaction_score=0,
            satisfaction_responses=0,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def ensure_single_user(db: Session) -> User:
    user = db.query(User).filter(User.email == settings.account_login).first()
    if user:
        return user
    user = User(
        name=settings.account_name,
        email=settings.account_login,
        password_hash=get_password_hash(settings.account_password),
    )
    db.add(user)
    db.flush()
    for name, description in DEFAULT_INTEGRATIONS:
        db.add(Integration(user_id=user.id, name=name, description=description, enabled=False))
    db.commit()
    db.refresh(user)
    return user


def to_initials(name: str) -> str:
    return "".join(part[0].upper() for part in name.split() if part)[:2]
