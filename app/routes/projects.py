from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..auth.security import get_current_user
from ..schemas.projects import ProjectCreate, ProjectResponse, ProjectUpdate
from ..services import projects as project_service
from ..services.calendar_sync import CalendarSyncError


router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("")
def create_project(payload: ProjectCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    project, calendar_error = project_service.create_project(db, user, payload)
    return {"project": ProjectResponse.model_validate(project), "calendar_error": calendar_error}


@router.patch("/{project_id}")
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = project_service.update_project(db, user, project_id, payload)
    return {"project": ProjectResponse.model_validate(project)}


@router.get("/{project_id}/ics")
def export_ics(project_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    filename, body = project_service.project_ics(db, user, project_id)
    return Response(
        content=body,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{project_id}/sync-calendar")
def sync_calendar(project_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    project = project_service.get_project(db, user, project_id)
    try:
        ref = project_service.push_to_calendar(db, project)
    except CalendarSyncError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if ref is None:
        raise HTTPException(status_code=400, detail="Aucun calendrier connecté.")
    return {"ok": True, "url": ref.url}
