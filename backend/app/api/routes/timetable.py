import logging
from time import perf_counter

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_institution_id, require_roles
from app.models.timetable import TimetableTemplate
from app.models.user import User, UserRole
from app.schemas.timetable import (
    GenerateTimetableRequest,
    GenerationResult,
    SectionTimetableView,
    TimetableSlotOut,
    TimetableTemplateCreate,
    TimetableTemplateOut,
)
from app.services.audit import log_activity, log_timetable_generation
from app.services.timetable_generator import TimetableGenerator
from app.services.timetable_views import get_section_timetable, get_teacher_timetable

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/generate", response_model=GenerationResult)
def generate_timetable(
    payload: GenerateTimetableRequest,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> GenerationResult:
    started = perf_counter()
    logger.info(
        "TIMETABLE GENERATION START | user_id=%s | section_id=%s | session_id=%s | template_id=%s",
        current_user.id,
        payload.section_id,
        payload.session_id,
        payload.template_id,
    )
    try:
        result = TimetableGenerator(db, current_user.institution_id).generate(payload)
        # Grid is already committed at this point.
        try:
            log_timetable_generation(db, user=current_user, request=payload, result=result)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "Timetable generation audit write failed | user_id=%s | section_id=%s",
                current_user.id,
                payload.section_id,
            )

        elapsed_ms = int((perf_counter() - started) * 1000)
        logger.info(
            "TIMETABLE GENERATION COMPLETE | user_id=%s | section_id=%s | session_id=%s | slots=%s | warnings=%s | wall_ms=%s",
            current_user.id,
            payload.section_id,
            payload.session_id,
            result.slots_created,
            len(result.warnings),
            elapsed_ms,
        )
        return result
    except Exception:
        elapsed_ms = int((perf_counter() - started) * 1000)
        logger.exception(
            "TIMETABLE GENERATION FAILED | user_id=%s | section_id=%s | session_id=%s | wall_ms=%s",
            current_user.id,
            payload.section_id,
            payload.session_id,
            elapsed_ms,
        )
        raise


@router.get("/sections/{section_id}", response_model=SectionTimetableView)
def read_section_timetable(
    section_id: str,
    session_id: str = Query(min_length=1),
    institution_id: str = Depends(get_institution_id),
    db: Session = Depends(get_db),
) -> SectionTimetableView:
    return get_section_timetable(
        db,
        institution_id=institution_id,
        section_id=section_id,
        session_id=session_id,
    )


@router.get("/teachers/{teacher_id}", response_model=list[TimetableSlotOut])
def read_teacher_timetable(
    teacher_id: str,
    session_id: str = Query(min_length=1),
    institution_id: str = Depends(get_institution_id),
    db: Session = Depends(get_db),
) -> list[TimetableSlotOut]:
    return get_teacher_timetable(
        db,
        institution_id=institution_id,
        teacher_id=teacher_id,
        session_id=session_id,
    )


@router.get("/templates", response_model=list[TimetableTemplateOut])
def list_templates(
    institution_id: str = Depends(get_institution_id),
    db: Session = Depends(get_db),
) -> list[TimetableTemplateOut]:
    return list(
        db.execute(
            select(TimetableTemplate)
            .where(TimetableTemplate.institution_id == institution_id)
            .order_by(TimetableTemplate.created_at.asc(), TimetableTemplate.name.asc())
        ).scalars()
    )


@router.post("/templates", response_model=TimetableTemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TimetableTemplateCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.scheduler)),
    db: Session = Depends(get_db),
) -> TimetableTemplateOut:
    if payload.is_default:
        db.execute(
            update(TimetableTemplate)
            .where(
                TimetableTemplate.institution_id == current_user.institution_id,
                TimetableTemplate.is_default.is_(True),
            )
            .values(is_default=False)
        )
    data = payload.model_dump(exclude={"generation_rules"})
    template = TimetableTemplate(
        **data,
        institution_id=current_user.institution_id,
        generation_rules=payload.generation_rules.model_dump(exclude_none=True),
    )
    db.add(template)
    db.flush()
    log_activity(
        db,
        user=current_user,
        action="timetable.template.create",
        entity_type="timetable_template",
        entity_id=template.id,
        details={"name": payload.name, "is_default": payload.is_default},
    )
    db.commit()
    db.refresh(template)
    return template
