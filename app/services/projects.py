"""
Project operations: creation, PATCH updates with status/progress coupling,
and the best-effort calendar push that follows both.
"""
from typing import Optional, Tuple

import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import Settings, settings as default_settings
from ..models.models import Client, Project, User, PROJECT_PLANNED
from ..schemas.projects import ProjectCreate, ProjectUpdate
from .account import ensure_settings
from .calendar_sync import CalendarSyncError, EventRef, build_ics, calendar_sync_for, event_for_project
from .notifications import add_notification
from .project_status import apply_status_update, notification_type_for_status, progress_for_status


logger = structlog.get_logger(__name__)


def get_project(db: Session, user: User, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id, Project.user_id == user.id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Projet introuvable.")
    return project


def _client_name(project: Project) -> Optional[str]:
    return project.client.name if project.client is not None else None


def push_to_calendar(db: Session, project: Project, cfg: Settings = default_settings) -> Optional[EventRef]:
    """
    Upsert the project's calendar event. Returns None when no calendar is
    configured; raises CalendarSyncError when the remote side refuses.
    """
    account = ensure_settings(db, project.user_id)
    sync = calendar_sync_for(cfg, account)
    if sync is None:
        return None
    with sync:
        ref = sync.upsert_event(event_for_project(project, _client_name(project)))
    if ref.id and ref.id != project.calendar_event_id:
        project.calendar_event_id = ref.id
        db.commit()
    return ref


def try_push_to_calendar(db: Session, project: Project, cfg: Settings = default_settings) -> Optional[str]:
    """Best-effort variant. Returns the error message, if any."""
    try:
        push_to_calendar(db, project, cfg)
    except CalendarSyncError as e:
        logger.warning("calendar_sync_failed", project_id=project.id, error=str(e))
        return str(e)
    except Exception as e:
        logger.warning("calendar_sync_failed", project_id=project.id, error=str(e))
        return "Synchronisation du calendrier impossible."
    return None


def create_project(db: Session, user: User, payload: ProjectCreate, cfg: Settings = default_settings) -> Tuple[Project, Optional[str]]:
    client = db.query(Client).filter(Client.id == payload.client_id, Client.user_id == user.id).first()
    if not client:
        raise HTTPException(status_code=400, detail="Client introuvable.")
    status = (payload.status or "").strip() or PROJECT_PLANNED
    project = Project(
        user_id=user.id,
        client_id=client.id,
        name=payload.name.strip(),
        status=status,
        progress=progress_for_status(status, 0),
        due_date=payload.due_date,
        responsible=payload.responsible or "",
        comment=payload.comment or "",
    )
    db.add(project)
    db.flush()
    add_notification(db, user.id, f"Nouveau chantier : {project.name} ({status})", notification_type_for_status(status))
    db.commit()
    db.refresh(project)
    logger.info("project_created", project_id=project.id, status=status)
    return project, try_push_to_calendar(db, project, cfg)


def update_project(db: Session, user: User, project_id: int, payload: ProjectUpdate) -> Project:
    project = get_project(db, user, project_id)
    change = apply_status_update(project.status, project.progress, status=payload.status, progress=payload.progress)
    project.status = change.status
    project.progress = change.progress
    if payload.responsible is not None:
        project.responsible = payload.responsible
    if payload.comment is not None:
        project.comment = payload.comment
    if change.changed:
        add_notification(
            db,
            user.id,
            f"Statut modifié : {project.name} → {change.status}",
            notification_type_for_status(change.status),
        )
    db.commit()
    db.refresh(project)
    return project


def project_ics(db: Session, user: User, project_id: int) -> Tuple[str, str]:
    """Returns (filename, calendar text)."""
    project = get_project(db, user, project_id)
    return f"chantier-{project.id}.ics", build_ics(event_for_project(project, _client_name(project)))
