"""
Project status rules: canonical progress per status and the PATCH merge logic.
"""
from dataclasses import dataclass
from typing import Optional

from ..models.models import (
    PROJECT_PLANNED,
    PROJECT_IN_PROGRESS,
    PROJECT_URGENT,
    PROJECT_DONE,
)


PROGRESS_BY_STATUS = {
    PROJECT_PLANNED: 15,
    PROJECT_IN_PROGRESS: 55,
    PROJECT_URGENT: 75,
    PROJECT_DONE: 100,
}


def progress_for_status(status: Optional[str], fallback: int) -> int:
    return PROGRESS_BY_STATUS.get(status, fallback)


def notification_type_for_status(status: str) -> str:
    if status == PROJECT_URGENT:
        return "danger"
    if status == PROJECT_DONE:
        return "success"
    return "warning"


def clamp_progress(value, current: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return int(current or 0)
    if number != number:  # NaN
        return int(current or 0)
    return int(round(max(0.0, min(100.0, number))))


@dataclass
class StatusChange:
    status: str
    progress: int
    changed: bool


def apply_status_update(
    current_status: str,
    current_progress: int,
    status: Optional[str] = None,
    progress=None,
) -> StatusChange:
    """
    Merge a PATCH into (status, progress).

    - explicit status: status replaced, progress derived from it
      (an unmapped status keeps the requested/current progress)
    - progress only: clamped to 0..100; reaching 100 marks the project Terminé
    """
    has_status = isinstance(status, str) and status.strip() != ""
    new_progress = clamp_progress(current_progress if progress is None else progress, current_progress)
    new_status = current_status
    if has_status:
        new_status = status.strip()
        new_progress = progress_for_status(new_status, new_progress)
    elif new_progress >= 100:
        new_status = PROJECT_DONE
    return StatusChange(status=new_status, progress=new_progress, changed=new_status != current_status)
