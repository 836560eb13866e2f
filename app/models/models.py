from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


# Quote statuses (stored labels)
QUOTE_PENDING = "En attente"
QUOTE_SENT = "Envoyé"
QUOTE_ACCEPTED = "Accepté"
QUOTE_REFUSED = "Refusé"
QUOTE_STATUSES = (QUOTE_PENDING, QUOTE_SENT, QUOTE_ACCEPTED, QUOTE_REFUSED)

# Project statuses (stored labels)
PROJECT_PLANNED = "Planifié"
PROJECT_IN_PROGRESS = "En cours"
PROJECT_URGENT = "Urgent"
PROJECT_DONE = "Terminé"
PROJECT_STATUSES = (PROJECT_PLANNED, PROJECT_IN_PROGRESS, PROJECT_URGENT, PROJECT_DONE)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    segment: Mapped[str] = mapped_column(String(50), nullable=False)  # VIP|Standard|...
    last_project: Mapped[Optional[str]] = mapped_column(String(255), default="Nouveau projet")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)


class Material(Base):
    """Catalog material. Ad hoc material lines live on the quote itself."""
    __tablename__ = "materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0)


class Quote(Base):
    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id: Mapped[int] = mapped_column(Integer, ForeignKey("clients.id"), nullable=False)
    service_id: Mapped[int] = mapped_column(Integer, ForeignKey("services.id"), nullable=False)
    # NULL means ad hoc materials (see materials_total / materials_desc)
    material_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("materials.id"))
    hours: Mapped[float] = mapped_column(Float, nullable=False)
    discount: Mapped[float] = mapped_column(Float, default=0)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=QUOTE_PENDING)
    sent_at: Mapped[Optional[date]] = mapped_column(Date)
    ack: Mapped[bool] = mapped_column(Boolean, default=False)
    materials_desc: Mapped[Optional[str]] = mapped_column(Text)
    materials_total: Mapped[float] = mapped_column(Float, default=0)
    # Public accept/sign capability
    accept_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True, index=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    signature_name: Mapped[Optional[str]] = mapped_column(String(255))
    signature_data: Mapped[Optional[str]] = mapped_column(Text)  # data:image/png;base64,...
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    client = relationship("Client")
    service = relationship("Service")
    material = relationship("Material")


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id: Mapped[int] = mapped_column(Integer, ForeignKey("clients.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PROJECT_PLANNED)
    # Visual progress percentage 0-100
    progress: Mapped[int] = mapped_column(Integer, default=0)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    responsible: Mapped[Optional[str]] = mapped_column(String(255), default="")
    comment: Mapped[Optional[str]] = mapped_column(String(2000), default="")
    calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    client = relationship("Client")


class Notification(Base):
    """Persisted notifications (project creation and status changes)"""
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # danger|warning|success
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index('idx_notifications_created', 'created_at'),
    )


class AccountSettings(Base):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    labor_rate: Mapped[float] = mapped_column(Float, nullable=False, default=65)
    satisfaction_score: Mapped[float] = mapped_column(Float, default=0)
    satisfaction_responses: Mapped[int] = mapped_column(Integer, default=0)
    google_refresh_token: Mapped[Optional[str]] = mapped_column(String(512))
    google_calendar_id: Mapped[Optional[str]] = mapped_column(String(255))


class Integration(Base):
    __tablename__ = "integrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
