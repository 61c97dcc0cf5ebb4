from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.user import User
from app.schemas.timetable import GenerateTimetableRequest, GenerationResult

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """Stage an audit row in the caller's transaction; the caller commits."""
    record = ActivityLog(
        institution_id=user.institution_id if user is not None else None,
        user_id=user.id if user is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
    logger.debug("Activity staged | action=%s entity_type=%s entity_id=%s", action, entity_type, entity_id)
    return record


def log_timetable_generation(
    db: Session,
    *,
    user: User,
    request: GenerateTimetableRequest,
    result: GenerationResult,
) -> ActivityLog:
    return log_activity(
        db,
        user=user,
        action="timetable.generate",
        entity_type="section",
        entity_id=request.section_id,
        details={
            "session_id": request.session_id,
            "template_id": request.template_id,
            "slots_created": result.slots_created,
            "warnings": len(result.warnings),
        },
    )
