from datetime import datetime
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.applicant import Applicant
from ..models.application import Application
from ..schemas.applications import ApplicationCreate, ReleaseHireRequest, StatusChange
from ..services import audit_log, status_engine
from ..services.workflow import APPLICANT, valid_transitions
from ..utils.dependencies import actor_from_user, get_current_user
from ..utils.error_handlers import ForbiddenError, ValidationError, get_error_message
from ..utils.roles import admin_only, applicant_only, staff_only

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else value


def application_to_public(a: Application, *, include_history: bool = False) -> dict:
    applicant = a.applicant
    payload = {
        "id": a.id,
        "domain": a.domain,
        "job_id": a.job_id,
        "program_id": a.program_id,
        "target_title": status_engine.target_title(a),
        "applicant": {
            "id": applicant.id if applicant else a.applicant_id,
            "name": applicant.name if applicant else None,
            "email": applicant.email if applicant else None,
        },
        "status": a.status,
        "match_score": a.match_score,
        "rank": a.rank,
        "education_score": a.education_score,
        "experience_score": a.experience_score,
        "skills_score": a.skills_score,
        "eligibility_score": a.eligibility_score,
        "matched_skills_count": a.matched_skills_count,
        "matched_eligibilities_count": a.matched_eligibilities_count,
        "reroute_count": int(a.reroute_count or 0),
        "rerouted_from_job_id": a.rerouted_from_job_id,
        "denial_reason": a.denial_reason,
        "next_steps": a.next_steps,
        "hr_notes": a.hr_notes,
        "interview_date": _iso(a.interview_date),
        "withdrawn_at": _iso(a.withdrawn_at),
        "created_at": _iso(a.created_at),
        "updated_at": _iso(a.updated_at),
    }
    if include_history:
        payload["history"] = [audit_log.entry_to_public(e) for e in a.history]
    return payload


def _applicant_for_user(db: Session, user: dict) -> Applicant | None:
    return db.query(Applicant).filter(Applicant.user_id == int(user.get("sub"))).first()


def _load_visible(db: Session, application_id: int, user: dict) -> Application:
    """Staff see everything; applicants only their own applications."""
    a = status_engine.get_application(db, application_id)
    if user.get("role") == APPLICANT:
        owner = a.applicant
        if owner is None or int(owner.user_id) != int(user.get("sub")):
            raise ForbiddenError(get_error_message("forbidden"))
    return a


def _public_for(a: Application, user: dict) -> dict:
    payload = application_to_public(a, include_history=True)
    if user.get("role") == APPLICANT:
        # Staff notes stay internal.
        payload.pop("hr_notes", None)
    return payload


@router.post("", status_code=201)
def submit_application(
    payload: ApplicationCreate,
    db: Session = Depends(get_db),
    user=Depends(applicant_only),
):
    applicant = _applicant_for_user(db, user)
    if not applicant:
        raise ValidationError(get_error_message("profile_required"))

    a = status_engine.submit_application(
        db,
        applicant,
        job_id=payload.job_id,
        program_id=payload.program_id,
    )
    return {"success": True, "application": _public_for(a, user)}


@router.get("/{application_id:int}")
def get_application(
    application_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    a = _load_visible(db, application_id, user)
    return {"success": True, "application": _public_for(a, user)}


@router.get("/{application_id:int}/history")
def get_application_history(
    application_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    a = _load_visible(db, application_id, user)
    entries = audit_log.history_for(db, a.id)
    return {
        "success": True,
        "application_id": a.id,
        "status": a.status,
        "history": [audit_log.entry_to_public(e) for e in entries],
    }


@router.get("/{application_id:int}/transitions")
def get_application_transitions(
    application_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    a = _load_visible(db, application_id, user)
    allowed = valid_transitions(a.status, a.domain, user.get("role"))
    return {
        "success": True,
        "application_id": a.id,
        "domain": a.domain,
        "current_status": a.status,
        "transitions": [s.value for s in allowed],
    }


@router.patch("/{application_id:int}/status")
def change_application_status(
    application_id: int,
    payload: StatusChange,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    _load_visible(db, application_id, user)
    a = status_engine.transition(
        db,
        application_id,
        payload.status,
        actor_from_user(user),
        payload.metadata(),
        expected_status=payload.expected_status,
    )
    return {"success": True, "application": _public_for(a, user)}


@router.post("/{application_id:int}/release-hire")
def release_hire(
    application_id: int,
    payload: ReleaseHireRequest | None = None,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    a = status_engine.release_hire(
        db,
        application_id,
        actor_from_user(user),
        reason=payload.release_reason if payload else None,
    )
    return {"success": True, "application": _public_for(a, user)}


@router.post("/{application_id:int}/reapply")
def reapply(
    application_id: int,
    db: Session = Depends(get_db),
    user=Depends(applicant_only),
):
    _load_visible(db, application_id, user)
    a = status_engine.reapply(db, application_id, actor_from_user(user))
    return {"success": True, "application": _public_for(a, user)}


@router.delete("/{application_id:int}")
def purge_application(
    application_id: int,
    db: Session = Depends(get_db),
    user=Depends(admin_only),
):
    summary = status_engine.purge_application(db, application_id, actor_from_user(user))
    return {"success": True, "deleted_application_id": summary["application_id"], "purged": summary}
