from datetime import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.application import Application
from ..models.job import Job
from ..schemas.applications import CloseAndDenyRequest, CloseAndRerouteRequest, ListOptions
from ..services import cascade, ranking, status_engine
from ..services.audit_log import utcnow
from ..services.workflow import APPLICANT, SYSTEM_ACTOR, JobStatus, valid_job_transitions
from ..utils.dependencies import get_current_user
from ..utils.error_handlers import NotFoundError, get_error_message
from ..utils.json_fields import clean_string_list, dump_string_list
from ..utils.roles import staff_only
from ..utils.validation import validate_job_status, validate_string_field
from .applications import application_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _job_to_public(job: Job) -> dict:
    return {
        "id": job.id,
        "title": job.title,
        "description": job.description,
        "degree_requirement": job.degree_requirement,
        "required_skills": clean_string_list(job.required_skills),
        "required_eligibilities": clean_string_list(job.required_eligibilities),
        "years_of_experience": job.years_of_experience,
        "status": job.status or JobStatus.ACTIVE.value,
        "allowed_status_changes": [s.value for s in valid_job_transitions(job.status or "active")],
        "created_by": job.created_by,
        "created_at": job.created_at.isoformat() if isinstance(job.created_at, datetime) else job.created_at,
        "updated_at": job.updated_at.isoformat() if isinstance(job.updated_at, datetime) else job.updated_at,
    }


class JobCreate(BaseModel):
    title: str = Field(min_length=2, max_length=150)
    description: str | None = Field(default=None, max_length=5000)
    degree_requirement: str | None = Field(default=None, max_length=255)
    required_skills: list[str] | None = None
    required_eligibilities: list[str] | None = None
    years_of_experience: float | None = Field(default=None, ge=0, le=60)
    status: str | None = Field(default="active")  # active/hidden


class JobUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=150)
    description: str | None = Field(default=None, max_length=5000)
    degree_requirement: str | None = Field(default=None, max_length=255)
    required_skills: list[str] | None = None
    required_eligibilities: list[str] | None = None
    years_of_experience: float | None = Field(default=None, ge=0, le=60)
    status: str | None = None  # goes through the job transition table


def _get_job_or_404(db: Session, job_id: int) -> Job:
    job = db.query(Job).filter(Job.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"), details={"job_id": int(job_id)})
    return job


def query_applications(db: Session, job_id: int, options: ListOptions) -> tuple[int, list[Application]]:
    q = db.query(Application).filter(Application.job_id == int(job_id))
    if options.status and options.status != "all":
        q = q.filter(func.lower(Application.status) == options.status)
    total = q.count()

    column = {
        "rank": Application.rank,
        "match_score": Application.match_score,
        "created_at": Application.created_at,
    }[options.sort_by]
    ordering = column.desc() if options.descending else column.asc()
    # Unranked rows always sort last.
    q = q.order_by(column.is_(None), ordering, Application.id.asc())
    return total, q.offset(options.offset).limit(options.limit).all()


@router.post("", status_code=201)
def create_job(
    payload: JobCreate,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    status = validate_job_status(payload.status or "active")
    if status not in (JobStatus.ACTIVE.value, JobStatus.HIDDEN.value):
        raise HTTPException(status_code=400, detail="New jobs must be active or hidden")

    title = validate_string_field(payload.title, "Title", min_length=2, max_length=150, required=True)
    description = validate_string_field(payload.description, "Description", min_length=1, max_length=5000, required=False)
    degree_requirement = validate_string_field(
        payload.degree_requirement, "Degree requirement", min_length=1, max_length=255, required=False
    )

    job = Job(
        title=title,
        description=description,
        degree_requirement=degree_requirement,
        required_skills=dump_string_list(payload.required_skills),
        required_eligibilities=dump_string_list(payload.required_eligibilities),
        years_of_experience=payload.years_of_experience,
        status=status,
        created_by=int(user.get("sub")),
    )
    try:
        db.add(job)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info("Job %s created by %s", job.id, user.get("sub"))
    return {"success": True, "job": _job_to_public(job)}


@router.get("")
def list_jobs(
    status: str | None = Query(default=None, description="active/hidden/closed/archived/all"),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    q = db.query(Job)

    # Applicants should only ever see active jobs.
    if user.get("role") == APPLICANT:
        q = q.filter(func.lower(Job.status) == JobStatus.ACTIVE.value)

    status_norm = (status or "").strip().lower()
    if status_norm and status_norm != "all":
        q = q.filter(func.lower(Job.status) == validate_job_status(status_norm))

    jobs = q.order_by(Job.created_at.desc(), Job.id.desc()).all()
    return {"success": True, "jobs": [_job_to_public(j) for j in jobs]}


@router.get("/{job_id:int}")
def get_job(
    job_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    job = _get_job_or_404(db, job_id)
    if user.get("role") == APPLICANT and job.status != JobStatus.ACTIVE.value:
        raise NotFoundError(get_error_message("job_not_found"))
    return {"success": True, "job": _job_to_public(job)}


@router.patch("/{job_id:int}")
def update_job(
    job_id: int,
    payload: JobUpdate,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    job = _get_job_or_404(db, job_id)
    data = payload.model_dump(exclude_unset=True)

    # Validate everything first so a rejected request leaves the job untouched.
    changes = {}
    if "title" in data:
        changes["title"] = validate_string_field(data["title"], "Title", min_length=2, max_length=150, required=True)
    if "description" in data:
        changes["description"] = validate_string_field(
            data["description"], "Description", min_length=1, max_length=5000, required=False
        )
    if "degree_requirement" in data:
        changes["degree_requirement"] = validate_string_field(
            data["degree_requirement"], "Degree requirement", min_length=1, max_length=255, required=False
        )
    if "required_skills" in data:
        changes["required_skills"] = dump_string_list(data["required_skills"])
    if "required_eligibilities" in data:
        changes["required_eligibilities"] = dump_string_list(data["required_eligibilities"])
    if "years_of_experience" in data:
        changes["years_of_experience"] = data["years_of_experience"]

    new_status = validate_job_status(data["status"]) if data.get("status") else None
    if new_status:
        status_engine.check_job_transition(job, new_status)

    try:
        for field, value in changes.items():
            setattr(job, field, value)
        if changes:
            job.updated_at = utcnow()
        # Closing here only changes the job; remaining applications are resolved
        # through the close-and-* endpoints.
        if new_status:
            job = status_engine.set_job_status(db, job, new_status)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)

    return {"success": True, "job": _job_to_public(job)}


@router.post("/{job_id:int}/rank")
def rank_job(
    job_id: int,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    pool = ranking.rank_job(db, job_id)
    return {"success": True, "ranking": pool.to_dict()}


@router.get("/{job_id:int}/applications")
def list_job_applications(
    job_id: int,
    status: str | None = Query(default=None),
    sort_by: str = Query(default="rank", description="rank/match_score/created_at"),
    descending: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    job = _get_job_or_404(db, job_id)
    try:
        options = ListOptions(status=status, sort_by=sort_by, descending=descending, limit=limit, offset=offset)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    total, rows = query_applications(db, job.id, options)
    return {
        "success": True,
        "job": _job_to_public(job),
        "total": total,
        "options": options.model_dump(),
        "applications": [application_to_public(a) for a in rows],
    }


@router.post("/{job_id:int}/close-and-deny-remaining")
def close_and_deny_remaining(
    job_id: int,
    payload: CloseAndDenyRequest | None = None,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    reason = (payload.reason if payload else None) or None
    logger.info("Close-and-deny on job %s requested by %s", job_id, user.get("sub"))
    result = cascade.resolve_remaining(db, job_id, cascade.CascadeMode.DENY, reason, actor=SYSTEM_ACTOR)
    job = _get_job_or_404(db, job_id)
    return {"success": True, "job": _job_to_public(job), **result.to_dict()}


@router.post("/{job_id:int}/close-and-reroute-remaining")
def close_and_reroute_remaining(
    job_id: int,
    payload: CloseAndRerouteRequest | None = None,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    custom_reason = (payload.custom_reason if payload else None) or None
    logger.info("Close-and-reroute on job %s requested by %s", job_id, user.get("sub"))
    result = cascade.resolve_remaining(db, job_id, cascade.CascadeMode.REROUTE, custom_reason, actor=SYSTEM_ACTOR)
    job = _get_job_or_404(db, job_id)
    return {"success": True, "job": _job_to_public(job), **result.to_dict()}
