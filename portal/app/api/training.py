from datetime import datetime
import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.application import Application
from ..models.training_program import TrainingProgram
from ..services.workflow import APPLICANT, SEAT_HOLDING_STATUSES, ProgramStatus
from ..utils.dependencies import get_current_user
from ..utils.error_handlers import NotFoundError, get_error_message
from ..utils.roles import staff_only
from ..utils.validation import validate_program_status, validate_string_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/training", tags=["Training"])

HIDDEN_FROM_APPLICANTS = {ProgramStatus.CANCELLED.value, ProgramStatus.ARCHIVED.value}


class ProgramCreate(BaseModel):
    title: str = Field(min_length=2, max_length=150)
    description: str | None = Field(default=None, max_length=5000)
    capacity: int | None = Field(default=None, ge=1)
    status: str | None = Field(default="upcoming")


def _seats_taken(db: Session, program_id: int) -> int:
    return int(
        db.query(func.count(Application.id))
        .filter(
            Application.program_id == int(program_id),
            Application.status.in_([s.value for s in SEAT_HOLDING_STATUSES]),
        )
        .scalar()
        or 0
    )


def _program_to_public(p: TrainingProgram, *, seats_taken: int | None = None) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "capacity": p.capacity,
        "seats_taken": seats_taken,
        "status": p.status,
        "created_by": p.created_by,
        "created_at": p.created_at.isoformat() if isinstance(p.created_at, datetime) else p.created_at,
    }


@router.post("/programs", status_code=201)
def create_program(
    payload: ProgramCreate,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    program = TrainingProgram(
        title=validate_string_field(payload.title, "Title", min_length=2, max_length=150, required=True),
        description=validate_string_field(payload.description, "Description", min_length=1, max_length=5000, required=False),
        capacity=payload.capacity,
        status=validate_program_status(payload.status),
        created_by=int(user.get("sub")),
    )
    try:
        db.add(program)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(program)
    logger.info("Training program %s created by %s", program.id, user.get("sub"))
    return {"success": True, "program": _program_to_public(program, seats_taken=0)}


@router.get("/programs")
def list_programs(
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    q = db.query(TrainingProgram)
    if user.get("role") == APPLICANT:
        q = q.filter(TrainingProgram.status.notin_(HIDDEN_FROM_APPLICANTS))
    if status and status.strip().lower() != "all":
        q = q.filter(TrainingProgram.status == validate_program_status(status))
    programs = q.order_by(TrainingProgram.id.asc()).all()
    return {
        "success": True,
        "programs": [_program_to_public(p, seats_taken=_seats_taken(db, p.id)) for p in programs],
    }


@router.get("/programs/{program_id:int}")
def get_program(
    program_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    program = db.query(TrainingProgram).filter(TrainingProgram.id == int(program_id)).first()
    if not program or (user.get("role") == APPLICANT and program.status in HIDDEN_FROM_APPLICANTS):
        raise NotFoundError(get_error_message("program_not_found"))
    return {"success": True, "program": _program_to_public(program, seats_taken=_seats_taken(db, program.id))}
