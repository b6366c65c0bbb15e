"""
Closure cascade: resolve a closed job's still-open applications in one batch.

Each application is handled on its own and its outcome is folded into a
`CascadeResult`. A failure on one application becomes a skip and the batch
carries on; only problems with the job itself fail the call.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import DEFAULT_DENIAL_REASON, MAX_REROUTES, NO_ALTERNATIVE_REASON, REROUTE_MIN_SCORE
from ..models.application import Application
from ..models.job import Job
from ..utils.error_handlers import (
    AppError,
    ExhaustedReroutesError,
    InvalidTransitionError,
    ValidationError,
)
from . import status_engine
from .scoring_engine import SubScores, score_application
from .workflow import SYSTEM_ACTOR, Actor, Domain, JobApplicationStatus, JobStatus

logger = logging.getLogger(__name__)


class CascadeMode(str, Enum):
    DENY = "deny"
    REROUTE = "reroute"


STILL_OPEN = {
    CascadeMode.DENY: (JobApplicationStatus.PENDING,),
    CascadeMode.REROUTE: (JobApplicationStatus.PENDING, JobApplicationStatus.UNDER_REVIEW),
}

DENIED = "denied"
REROUTED = "rerouted"
SKIPPED = "skipped"


@dataclass
class CascadeOutcome:
    application_id: int
    action: str
    detail: str | None = None
    target_job_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "action": self.action,
            "detail": self.detail,
            "target_job_id": self.target_job_id,
        }


@dataclass
class CascadeResult:
    job_id: int
    mode: CascadeMode
    denied_count: int = 0
    rerouted_count: int = 0
    skipped_count: int = 0
    outcomes: list[CascadeOutcome] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        return self.denied_count + self.rerouted_count

    def record(self, outcome: CascadeOutcome) -> "CascadeResult":
        if outcome.action == DENIED:
            self.denied_count += 1
        elif outcome.action == REROUTED:
            self.rerouted_count += 1
        else:
            self.skipped_count += 1
        self.outcomes.append(outcome)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "mode": self.mode.value,
            "resolved_count": self.resolved_count,
            "denied_count": self.denied_count,
            "rerouted_count": self.rerouted_count,
            "skipped_count": self.skipped_count,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def parse_mode(mode) -> CascadeMode:
    try:
        return mode if isinstance(mode, CascadeMode) else CascadeMode(str(mode).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown cascade mode '{mode}'. Must be one of: deny, reroute",
        ) from None


def ensure_closed(db: Session, job: Job) -> Job:
    """Close an active/hidden job. Closed is accepted as-is; archived is refused."""
    status = (job.status or "").lower()
    if status == JobStatus.CLOSED.value:
        return job
    if status == JobStatus.ARCHIVED.value:
        raise InvalidTransitionError(
            f'Job "{job.title}" is archived; its applications can no longer be resolved',
            details={"current_status": status, "attempted_status": JobStatus.CLOSED.value, "allowed": []},
        )
    return status_engine.set_job_status(db, job, JobStatus.CLOSED)


def find_reroute_target(db: Session, application: Application, *, closing_job_id: int) -> tuple[Job, SubScores] | None:
    """
    Best other active job for the applicant at or above REROUTE_MIN_SCORE.
    Equal scores resolve to the lowest job id.
    """
    applied = {
        row[0]
        for row in db.query(Application.job_id)
        .filter(Application.applicant_id == application.applicant_id, Application.job_id.isnot(None))
        .all()
    }
    candidates = (
        db.query(Job)
        .filter(Job.status == JobStatus.ACTIVE.value, Job.id != int(closing_job_id))
        .order_by(Job.id.asc())
        .all()
    )
    best: tuple[Job, SubScores] | None = None
    for job in candidates:
        if job.id in applied:
            continue
        scores = score_application(job, application.applicant)
        if scores.match_score < REROUTE_MIN_SCORE:
            continue
        if best is None or scores.match_score > best[1].match_score:
            best = (job, scores)
    return best


def _deny(db: Session, application_id: int, observed: str, reason: str, actor: Actor) -> CascadeOutcome:
    status_engine.transition(
        db,
        application_id,
        JobApplicationStatus.DENIED,
        actor,
        {"denial_reason": reason},
        expected_status=observed,
    )
    return CascadeOutcome(application_id=application_id, action=DENIED, detail=reason)


def _reroute_or_deny(
    db: Session,
    job: Job,
    application_id: int,
    observed: str,
    actor: Actor,
    message: str | None,
) -> CascadeOutcome:
    application = status_engine.get_application(db, application_id)
    if int(application.reroute_count or 0) >= MAX_REROUTES:
        raise ExhaustedReroutesError(
            f"Maximum re-routes reached ({MAX_REROUTES})",
            details={"application_id": application_id},
        )
    found = find_reroute_target(db, application, closing_job_id=job.id)
    if found is None:
        return _deny(db, application_id, observed, NO_ALTERNATIVE_REASON, actor)
    target, scores = found
    status_engine.reroute(
        db,
        application_id,
        target.id,
        actor,
        expected_status=observed,
        message=message,
    )
    return CascadeOutcome(
        application_id=application_id,
        action=REROUTED,
        detail=f"re-routed to {target.title} (match {scores.match_score})",
        target_job_id=target.id,
    )


def resolve_one(
    db: Session,
    job: Job,
    application_id: int,
    observed: str,
    mode: CascadeMode,
    reason: str | None,
    actor: Actor,
) -> CascadeOutcome:
    try:
        if mode == CascadeMode.DENY:
            return _deny(db, application_id, observed, reason or DEFAULT_DENIAL_REASON, actor)
        return _reroute_or_deny(db, job, application_id, observed, actor, reason)
    except AppError as e:
        logger.warning("Cascade on job %s skipped application %s: %s", job.id, application_id, e.message)
        return CascadeOutcome(application_id=application_id, action=SKIPPED, detail=e.message)
    except SQLAlchemyError as e:
        logger.error("Cascade on job %s failed for application %s: %s", job.id, application_id, e)
        return CascadeOutcome(application_id=application_id, action=SKIPPED, detail="database error")


def resolve_remaining(
    db: Session,
    job_id: int,
    mode,
    reason: str | None = None,
    actor: Actor = SYSTEM_ACTOR,
) -> CascadeResult:
    """
    Close the job if needed, then deny or re-route each still-open application.
    Safe to re-run: a fully resolved job has nothing left to process.
    """
    mode = parse_mode(mode)
    job = status_engine.get_job(db, job_id)
    ensure_closed(db, job)

    statuses = [s.value for s in STILL_OPEN[mode]]
    rows = (
        db.query(Application.id, Application.status)
        .filter(
            Application.job_id == job.id,
            Application.domain == Domain.JOB.value,
            Application.status.in_(statuses),
        )
        .order_by(Application.id.asc())
        .all()
    )
    # Snapshot: each application is claimed once per run.
    snapshot: dict[int, str] = {}
    for app_id, observed in rows:
        snapshot.setdefault(int(app_id), observed)

    result = CascadeResult(job_id=job.id, mode=mode)
    for app_id, observed in snapshot.items():
        result.record(resolve_one(db, job, app_id, observed, mode, reason, actor))

    logger.info(
        "Cascade %s on job %s: resolved=%d denied=%d rerouted=%d skipped=%d",
        mode.value, job.id, result.resolved_count, result.denied_count,
        result.rerouted_count, result.skipped_count,
    )
    return result
