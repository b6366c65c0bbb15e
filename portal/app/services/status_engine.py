"""
Status engine: the only writer of `Application.status`.

Every transition is validated against the tables in `workflow.py`, recorded in
the audit log in the same transaction, and announced on the event hub after the
commit. Re-requesting the current status is a successful no-op.
"""
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import MAX_REROUTES
from ..models.applicant import Applicant
from ..models.application import Application
from ..models.job import Job
from ..models.training_program import TrainingProgram
from ..utils.error_handlers import (
    AppError,
    ConflictError,
    ExhaustedReroutesError,
    ForbiddenError,
    InvalidTransitionError,
    MissingMetadataError,
    NotFoundError,
    ValidationError,
    get_error_message,
)
from ..utils.validation import parse_datetime
from . import audit_log, events
from .workflow import (
    JOB_TRANSITIONS,
    OPEN_JOB_APPLICATION_STATUSES,
    SEAT_HOLDING_STATUSES,
    SYSTEM_ACTOR,
    Actor,
    Domain,
    JobApplicationStatus,
    JobStatus,
    ProgramStatus,
    TrainingApplicationStatus,
    parse_domain,
    parse_status,
    valid_transitions,
)

logger = logging.getLogger(__name__)

RANKING_FIELDS = (
    "match_score",
    "rank",
    "education_score",
    "experience_score",
    "skills_score",
    "eligibility_score",
    "matched_skills_count",
    "matched_eligibilities_count",
)

OPEN_PROGRAM_STATUSES = {ProgramStatus.UPCOMING.value, ProgramStatus.ACTIVE.value}

# Metadata that only has an effect when the status actually changes.
NOTE_FIELDS = ("denial_reason", "next_steps", "hr_notes", "interview_date", "reason")


def get_application(db: Session, application_id: int) -> Application:
    a = db.query(Application).filter(Application.id == int(application_id)).first()
    if not a:
        raise NotFoundError(
            get_error_message("application_not_found"),
            details={"application_id": int(application_id)},
        )
    return a


def get_job(db: Session, job_id: int) -> Job:
    job = db.query(Job).filter(Job.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"), details={"job_id": int(job_id)})
    return job


def clear_ranking(application: Application) -> None:
    for field in RANKING_FIELDS:
        setattr(application, field, None)


def record_ranking(
    application: Application,
    *,
    match_score: float,
    rank: int,
    education_score: float,
    experience_score: float,
    skills_score: float,
    eligibility_score: float,
    matched_skills_count: int | None = None,
    matched_eligibilities_count: int | None = None,
) -> None:
    """Stage one ranking run's output. Score and rank always move together; status is untouched."""
    application.match_score = float(match_score)
    application.rank = int(rank)
    application.education_score = float(education_score)
    application.experience_score = float(experience_score)
    application.skills_score = float(skills_score)
    application.eligibility_score = float(eligibility_score)
    application.matched_skills_count = matched_skills_count
    application.matched_eligibilities_count = matched_eligibilities_count


def target_title(application: Application) -> str | None:
    if application.job is not None:
        return application.job.title
    if application.program is not None:
        return application.program.title
    return None


def _status_value(status) -> str:
    return str(getattr(status, "value", status) or "").strip().lower()


def _check_owner(application: Application, actor: Actor) -> None:
    if not actor.is_applicant:
        return
    owner = application.applicant
    if owner is None or int(owner.user_id) != int(actor.id or 0):
        raise ForbiddenError("You can only change your own applications")


def _check_actor(application: Application, target, actor: Actor) -> None:
    if actor.is_applicant:
        if target.value != "withdrawn":
            raise ForbiddenError("Applicants can only withdraw their applications")
    elif target.value == "withdrawn":
        raise InvalidTransitionError(
            "Only the applicant can withdraw an application",
            details={"current_status": application.status, "attempted_status": target.value},
        )


def _check_edge(current, target, domain: Domain, actor: Actor) -> None:
    allowed = valid_transitions(current, domain, actor.role)
    if target in allowed:
        return
    allowed_values = [s.value for s in allowed]
    allowed_text = ", ".join(allowed_values) if allowed_values else "none (final state)"
    raise InvalidTransitionError(
        f'Cannot change status from "{current.value}" to "{target.value}". '
        f'Valid transitions from "{current.value}": {allowed_text}',
        details={
            "current_status": current.value,
            "attempted_status": target.value,
            "allowed": allowed_values,
        },
    )


def _clean_metadata(target, metadata: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key in ("denial_reason", "next_steps", "hr_notes", "reason"):
        value = metadata.get(key)
        if value is not None and str(value).strip():
            cleaned[key] = str(value).strip()

    if target.value == "denied" and not cleaned.get("denial_reason"):
        raise MissingMetadataError(
            "A denial_reason is required to deny an application",
            details={"field": "denial_reason"},
        )

    if target == JobApplicationStatus.INTERVIEWED:
        raw = metadata.get("interview_date")
        if raw is None or not str(raw).strip():
            raise MissingMetadataError(
                "An interview_date is required to schedule an interview",
                details={"field": "interview_date"},
            )
        try:
            when = parse_datetime(raw, metadata.get("timezone"))
        except ValueError:
            raise MissingMetadataError(
                "interview_date must be an ISO 8601 datetime",
                details={"field": "interview_date"},
            ) from None
        if when <= audit_log.utcnow():
            raise MissingMetadataError(
                "interview_date must be in the future",
                details={"field": "interview_date"},
            )
        cleaned["interview_date"] = when
    return cleaned


def _check_not_hired_elsewhere(db: Session, application: Application) -> None:
    other = (
        db.query(Application)
        .filter(
            Application.applicant_id == application.applicant_id,
            Application.domain == Domain.JOB.value,
            Application.id != application.id,
            Application.status == JobApplicationStatus.HIRED.value,
        )
        .first()
    )
    if other:
        other_title = target_title(other) or "another position"
        raise ConflictError(
            f'This applicant is already hired for "{other_title}". '
            "Release their hire status before hiring them for another position.",
            details={"hired_application_id": other.id},
        )


def _check_capacity(db: Session, application: Application, current, target) -> None:
    if current in SEAT_HOLDING_STATUSES or target not in SEAT_HOLDING_STATUSES:
        return
    # Row lock so two approvals cannot both take the last seat.
    program = (
        db.query(TrainingProgram)
        .filter(TrainingProgram.id == application.program_id)
        .with_for_update()
        .first()
    )
    if not program:
        raise NotFoundError(get_error_message("program_not_found"))
    if program.capacity is None:
        return
    taken = (
        db.query(func.count(Application.id))
        .filter(
            Application.program_id == program.id,
            Application.id != application.id,
            Application.status.in_([s.value for s in SEAT_HOLDING_STATUSES]),
        )
        .scalar()
    ) or 0
    if int(taken) >= int(program.capacity):
        raise ConflictError(
            f'Training program "{program.title}" is full ({taken}/{program.capacity} seats taken)',
            details={"program_id": program.id, "capacity": program.capacity, "taken": int(taken)},
        )


def _event_payload(application: Application, *, from_status: str | None, actor: Actor) -> dict[str, Any]:
    applicant = application.applicant
    interview_date = application.interview_date
    return {
        "application_id": application.id,
        "applicant_id": application.applicant_id,
        "applicant_user_id": applicant.user_id if applicant else None,
        "domain": application.domain,
        "job_id": application.job_id,
        "program_id": application.program_id,
        "from_status": from_status,
        "to_status": application.status,
        "changed_by": actor.id,
        "actor_role": actor.role,
        "target_title": target_title(application),
        "denial_reason": application.denial_reason,
        "next_steps": application.next_steps,
        "interview_date": interview_date.isoformat() if isinstance(interview_date, datetime) else None,
    }


def transition(
    db: Session,
    application_id: int,
    target_status,
    actor: Actor,
    metadata: dict[str, Any] | None = None,
    *,
    expected_status=None,
) -> Application:
    """
    Move one application to `target_status`.

    Raises NotFoundError, InvalidTransitionError, MissingMetadataError,
    ConflictError (stale `expected_status`, double hire, full program),
    ForbiddenError (applicant asking for anything but their own withdrawal) or
    ValidationError (notes sent along with the unchanged current status).
    """
    metadata = dict(metadata or {})
    application = get_application(db, application_id)
    try:
        _check_owner(application, actor)
        domain = parse_domain(application.domain)
        current = parse_status(application.status, domain)
        try:
            target = parse_status(target_status, domain)
        except ValueError:
            raise InvalidTransitionError(
                f"Unknown status '{_status_value(target_status)}' for {domain.value} applications",
                details={
                    "current_status": current.value,
                    "attempted_status": _status_value(target_status),
                    "allowed": [s.value for s in valid_transitions(current, domain, actor.role)],
                },
            ) from None

        if expected_status is not None and _status_value(expected_status) != current.value:
            raise ConflictError(
                f"Application status is '{current.value}' but '{_status_value(expected_status)}' was expected",
                details={"current_status": current.value, "expected_status": _status_value(expected_status)},
            )

        if target == current:
            ignored = sorted(k for k in NOTE_FIELDS if str(metadata.get(k) or "").strip())
            if ignored:
                raise ValidationError(
                    f"Application is already '{current.value}'; {', '.join(ignored)} was not saved",
                    details={"current_status": current.value, "ignored_fields": ignored},
                )
            return application

        _check_actor(application, target, actor)
        _check_edge(current, target, domain, actor)
        cleaned = _clean_metadata(target, metadata)
        if target == JobApplicationStatus.HIRED:
            _check_not_hired_elsewhere(db, application)
        if domain == Domain.TRAINING:
            _check_capacity(db, application, current, target)

        now = audit_log.utcnow()
        application.status = target.value
        application.updated_at = now
        if "denial_reason" in cleaned:
            application.denial_reason = cleaned["denial_reason"]
        if "next_steps" in cleaned:
            application.next_steps = cleaned["next_steps"]
        if "hr_notes" in cleaned:
            application.hr_notes = cleaned["hr_notes"]
        if "interview_date" in cleaned:
            application.interview_date = cleaned["interview_date"]
        if target.value == "withdrawn":
            application.withdrawn_at = now
            clear_ranking(application)

        audit_log.append_entry(
            db,
            application=application,
            from_status=current,
            to_status=target,
            changed_by=actor.id,
            reason=cleaned.get("denial_reason") or cleaned.get("reason"),
            changed_at=now,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(application)
    logger.info(
        "Application %s: %s -> %s by %s:%s",
        application.id, current.value, target.value, actor.role, actor.id,
    )
    events.emit(events.STATUS_CHANGED, _event_payload(application, from_status=current.value, actor=actor))

    if target == JobApplicationStatus.HIRED:
        deny_other_open_applications(db, application)
    return application


def deny_other_open_applications(db: Session, hired: Application) -> int:
    """Auto-deny the hired applicant's other in-flight job applications. Failures are logged only."""
    title = target_title(hired) or "the position"
    reason = f"Auto-denied because applicant was hired for another position ({title})"
    others = (
        db.query(Application.id, Application.status)
        .filter(
            Application.applicant_id == hired.applicant_id,
            Application.domain == Domain.JOB.value,
            Application.id != hired.id,
            Application.status.in_([s.value for s in OPEN_JOB_APPLICATION_STATUSES]),
        )
        .order_by(Application.id.asc())
        .all()
    )
    denied = 0
    for other_id, observed in others:
        try:
            transition(
                db,
                other_id,
                JobApplicationStatus.DENIED,
                SYSTEM_ACTOR,
                {"denial_reason": reason},
                expected_status=observed,
            )
            denied += 1
        except AppError as e:
            logger.warning("Auto-deny failed for application %s: %s", other_id, e.message)
    if denied:
        logger.info("Auto-denied %d open applications for hired applicant %s", denied, hired.applicant_id)
    return denied


def reroute(
    db: Session,
    application_id: int,
    target_job_id: int,
    actor: Actor,
    *,
    expected_status=None,
    message: str | None = None,
) -> Application:
    """
    Move a job application to another open job and restart it at `pending`.

    The application keeps its id and history; `reroute_count` goes up by one and
    ranking data is cleared because the applicant joins a new pool.
    """
    application = get_application(db, application_id)
    try:
        if application.domain != Domain.JOB.value:
            raise InvalidTransitionError("Only job applications can be re-routed")
        previous = _status_value(application.status)
        if expected_status is not None and _status_value(expected_status) != previous:
            raise ConflictError(
                f"Application status is '{previous}' but '{_status_value(expected_status)}' was expected",
                details={"current_status": previous, "expected_status": _status_value(expected_status)},
            )
        if int(application.reroute_count or 0) >= MAX_REROUTES:
            raise ExhaustedReroutesError(
                f"Maximum re-routes reached ({MAX_REROUTES})",
                details={"application_id": application.id, "reroute_count": application.reroute_count},
            )

        # Lock the destination so concurrent moves into it see one consistent state.
        target = db.query(Job).filter(Job.id == int(target_job_id)).with_for_update().first()
        if not target:
            raise NotFoundError(get_error_message("job_not_found"), details={"job_id": int(target_job_id)})
        if target.id == application.job_id:
            raise InvalidTransitionError("Cannot re-route an application to the job it is already on")
        if target.status != JobStatus.ACTIVE.value:
            raise ConflictError(
                f'Job "{target.title}" is no longer accepting applications',
                details={"job_id": target.id, "job_status": target.status},
            )
        duplicate = (
            db.query(Application.id)
            .filter(Application.applicant_id == application.applicant_id, Application.job_id == target.id)
            .first()
        )
        if duplicate:
            raise ConflictError(
                get_error_message("already_applied"),
                details={"job_id": target.id, "application_id": duplicate[0]},
            )

        old_job = application.job
        old_title = old_job.title if old_job else f"job {application.job_id}"
        now = audit_log.utcnow()
        application.rerouted_from_job_id = application.job_id
        application.job = target
        application.status = JobApplicationStatus.PENDING.value
        application.reroute_count = int(application.reroute_count or 0) + 1
        application.denial_reason = None
        application.interview_date = None
        application.updated_at = now
        clear_ranking(application)
        audit_log.append_entry(
            db,
            application=application,
            from_status=previous,
            to_status=JobApplicationStatus.PENDING,
            changed_by=actor.id,
            reason=f"re-routed from {old_title}",
            changed_at=now,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(application)
    logger.info(
        "Application %s re-routed from job %s to job %s (reroute %d/%d)",
        application.id, application.rerouted_from_job_id, application.job_id,
        application.reroute_count, MAX_REROUTES,
    )
    events.emit(
        events.APPLICATION_REROUTED,
        {
            "application_id": application.id,
            "applicant_id": application.applicant_id,
            "from_job_id": application.rerouted_from_job_id,
            "from_job_title": old_title,
            "to_job_id": target.id,
            "to_job_title": target.title,
            "reroute_count": application.reroute_count,
            "changed_by": actor.id,
            "message": message,
        },
    )
    return application


def release_hire(db: Session, application_id: int, actor: Actor, *, reason: str | None = None) -> Application:
    """
    Staff-only exit from the terminal `hired` status: the application is archived
    so the applicant can be hired elsewhere. The release is stamped into `hr_notes`
    and recorded in the audit log.
    """
    if actor.is_applicant or actor.id is None:
        raise ForbiddenError("Only HR and Admin can release hire status")
    application = get_application(db, application_id)
    reason = (reason or "").strip() or None
    try:
        if application.status != JobApplicationStatus.HIRED.value:
            raise InvalidTransitionError(
                f"Cannot release hire status - application status is '{application.status}', not 'hired'",
                details={"current_status": application.status, "attempted_status": "archived"},
            )

        now = audit_log.utcnow()
        stamp = f"[{now.isoformat()}] Hire status released by {actor.role}:{actor.id}"
        if reason:
            stamp = f"{stamp}: {reason}"
        application.hr_notes = f"{application.hr_notes}\n\n{stamp}" if application.hr_notes else stamp
        application.status = JobApplicationStatus.ARCHIVED.value
        application.updated_at = now
        audit_log.append_entry(
            db,
            application=application,
            from_status=JobApplicationStatus.HIRED,
            to_status=JobApplicationStatus.ARCHIVED,
            changed_by=actor.id,
            reason=f"hire released: {reason}" if reason else "hire released",
            changed_at=now,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(application)
    logger.info("Application %s: hire released by %s:%s", application.id, actor.role, actor.id)
    payload = _event_payload(application, from_status=JobApplicationStatus.HIRED.value, actor=actor)
    payload["release_reason"] = reason
    events.emit(events.HIRE_RELEASED, payload)
    return application


def reapply(db: Session, application_id: int, actor: Actor) -> Application:
    """Applicant restarts their own archived job application at `pending`."""
    application = get_application(db, application_id)
    try:
        if not actor.is_applicant:
            raise ForbiddenError("Only the applicant can reapply")
        _check_owner(application, actor)
        if application.domain != Domain.JOB.value:
            raise InvalidTransitionError("Only job applications can be reapplied")
        if application.status != JobApplicationStatus.ARCHIVED.value:
            raise InvalidTransitionError(
                f"Only archived applications can be reapplied. Current status: {application.status}",
                details={"current_status": application.status, "attempted_status": "pending"},
            )
        job = application.job
        if job is None or job.status != JobStatus.ACTIVE.value:
            raise ConflictError(get_error_message("job_closed"), details={"job_id": application.job_id})
        hired = (
            db.query(Application.id)
            .filter(
                Application.applicant_id == application.applicant_id,
                Application.status == JobApplicationStatus.HIRED.value,
            )
            .first()
        )
        if hired:
            raise ConflictError(
                "You are currently hired and cannot reapply yet.",
                details={"hired_application_id": hired[0]},
            )

        now = audit_log.utcnow()
        application.status = JobApplicationStatus.PENDING.value
        application.denial_reason = None
        application.interview_date = None
        application.updated_at = now
        clear_ranking(application)
        audit_log.append_entry(
            db,
            application=application,
            from_status=JobApplicationStatus.ARCHIVED,
            to_status=JobApplicationStatus.PENDING,
            changed_by=actor.id,
            reason="reapplied",
            changed_at=now,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(application)
    logger.info("Application %s reapplied by applicant %s", application.id, actor.id)
    events.emit(
        events.STATUS_CHANGED,
        _event_payload(application, from_status=JobApplicationStatus.ARCHIVED.value, actor=actor),
    )
    return application


def submit_application(
    db: Session,
    applicant: Applicant,
    *,
    job_id: int | None = None,
    program_id: int | None = None,
) -> Application:
    """Create an application at `pending` with its initial history entry."""
    if (job_id is None) == (program_id is None):
        raise MissingMetadataError("Provide exactly one of job_id or program_id")

    if job_id is not None:
        job = get_job(db, job_id)
        if job.status != JobStatus.ACTIVE.value:
            raise ConflictError(get_error_message("job_closed"), details={"job_status": job.status})
        domain = Domain.JOB
        existing = (
            db.query(Application.id)
            .filter(Application.applicant_id == applicant.id, Application.job_id == job.id)
            .first()
        )
    else:
        program = db.query(TrainingProgram).filter(TrainingProgram.id == int(program_id)).first()
        if not program:
            raise NotFoundError(get_error_message("program_not_found"), details={"program_id": int(program_id)})
        if program.status not in OPEN_PROGRAM_STATUSES:
            raise ConflictError(get_error_message("program_closed"), details={"program_status": program.status})
        domain = Domain.TRAINING
        existing = (
            db.query(Application.id)
            .filter(Application.applicant_id == applicant.id, Application.program_id == program.id)
            .first()
        )
    if existing:
        raise ConflictError(get_error_message("already_applied"), details={"application_id": existing[0]})

    initial = JobApplicationStatus.PENDING if domain == Domain.JOB else TrainingApplicationStatus.PENDING
    now = audit_log.utcnow()
    application = Application(
        domain=domain.value,
        job_id=int(job_id) if job_id is not None else None,
        program_id=int(program_id) if program_id is not None else None,
        applicant_id=applicant.id,
        status=initial.value,
        reroute_count=0,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(application)
        audit_log.append_entry(
            db,
            application=application,
            from_status=None,
            to_status=initial,
            changed_by=applicant.user_id,
            changed_at=now,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(application)
    logger.info("Application %s submitted by applicant %s (%s)", application.id, applicant.id, domain.value)
    return application


def purge_application(db: Session, application_id: int, actor: Actor) -> dict[str, Any]:
    """Hard-delete an application together with its history. Irrecoverable."""
    application = get_application(db, application_id)
    summary = {
        "application_id": application.id,
        "applicant_id": application.applicant_id,
        "job_id": application.job_id,
        "program_id": application.program_id,
        "status": application.status,
        "history_entries": len(application.history),
    }
    try:
        db.delete(application)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.warning("Application %s purged by %s:%s (%s)", summary["application_id"], actor.role, actor.id, summary)
    return summary


def check_job_transition(job: Job, target_status) -> tuple[JobStatus, JobStatus]:
    """Validate a job status change without applying it. Returns (current, target)."""
    try:
        current = JobStatus(_status_value(job.status))
        target = JobStatus(_status_value(target_status))
    except ValueError:
        raise InvalidTransitionError(
            f"Unknown job status '{_status_value(target_status)}'",
            details={"current_status": job.status, "attempted_status": _status_value(target_status)},
        ) from None
    allowed = JOB_TRANSITIONS[current]
    if target != current and target not in allowed:
        allowed_values = [s.value for s in allowed]
        raise InvalidTransitionError(
            f'Cannot change job status from "{current.value}" to "{target.value}". '
            f'Valid transitions from "{current.value}": {", ".join(allowed_values) or "none (final state)"}',
            details={"current_status": current.value, "attempted_status": target.value, "allowed": allowed_values},
        )
    return current, target


def set_job_status(db: Session, job: Job, target_status) -> Job:
    """Move a job along the job transition table. Same status is a no-op."""
    current, target = check_job_transition(job, target_status)
    if target == current:
        return job
    try:
        job.status = target.value
        job.updated_at = audit_log.utcnow()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info("Job %s: %s -> %s", job.id, current.value, target.value)
    return job
