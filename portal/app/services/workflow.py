"""
Workflow graph for applications and jobs.

This module owns the transition tables. Every code path that can move an
application or a job between statuses (API validation, the status engine, the
closure cascade, UI affordances via `valid_transitions`) reads from here.
"""
from dataclasses import dataclass
from enum import Enum


class Domain(str, Enum):
    JOB = "job"
    TRAINING = "training"


class JobApplicationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    INTERVIEWED = "interviewed"
    APPROVED = "approved"
    DENIED = "denied"
    HIRED = "hired"
    ARCHIVED = "archived"
    WITHDRAWN = "withdrawn"


class TrainingApplicationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    DENIED = "denied"
    ENROLLED = "enrolled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CERTIFIED = "certified"
    FAILED = "failed"
    WITHDRAWN = "withdrawn"
    ARCHIVED = "archived"


class JobStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    CLOSED = "closed"
    ARCHIVED = "archived"


class ProgramStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


_J = JobApplicationStatus
_T = TrainingApplicationStatus

JOB_APPLICATION_TRANSITIONS: dict[JobApplicationStatus, tuple[JobApplicationStatus, ...]] = {
    _J.PENDING: (_J.UNDER_REVIEW, _J.SHORTLISTED, _J.DENIED, _J.WITHDRAWN, _J.ARCHIVED),
    _J.UNDER_REVIEW: (_J.SHORTLISTED, _J.INTERVIEWED, _J.APPROVED, _J.DENIED, _J.WITHDRAWN, _J.ARCHIVED),
    _J.SHORTLISTED: (_J.INTERVIEWED, _J.APPROVED, _J.DENIED, _J.ARCHIVED),
    _J.INTERVIEWED: (_J.APPROVED, _J.HIRED, _J.DENIED, _J.ARCHIVED),
    _J.APPROVED: (_J.HIRED, _J.DENIED, _J.ARCHIVED),
    _J.DENIED: (_J.ARCHIVED,),
    _J.HIRED: (),
    _J.ARCHIVED: (),
    _J.WITHDRAWN: (),
}

TRAINING_APPLICATION_TRANSITIONS: dict[TrainingApplicationStatus, tuple[TrainingApplicationStatus, ...]] = {
    _T.PENDING: (_T.UNDER_REVIEW, _T.APPROVED, _T.DENIED, _T.WITHDRAWN, _T.ARCHIVED),
    _T.UNDER_REVIEW: (_T.APPROVED, _T.DENIED, _T.WITHDRAWN, _T.ARCHIVED),
    _T.APPROVED: (_T.ENROLLED, _T.DENIED, _T.WITHDRAWN, _T.ARCHIVED),
    _T.ENROLLED: (_T.IN_PROGRESS, _T.WITHDRAWN, _T.ARCHIVED),
    _T.IN_PROGRESS: (_T.COMPLETED, _T.FAILED, _T.ARCHIVED),
    _T.COMPLETED: (_T.CERTIFIED, _T.ARCHIVED),
    _T.DENIED: (_T.ARCHIVED,),
    _T.CERTIFIED: (),
    _T.FAILED: (),
    _T.WITHDRAWN: (),
    _T.ARCHIVED: (),
}

TRANSITIONS = {
    Domain.JOB: JOB_APPLICATION_TRANSITIONS,
    Domain.TRAINING: TRAINING_APPLICATION_TRANSITIONS,
}

STATUS_TYPES = {
    Domain.JOB: JobApplicationStatus,
    Domain.TRAINING: TrainingApplicationStatus,
}

JOB_TRANSITIONS: dict[JobStatus, tuple[JobStatus, ...]] = {
    JobStatus.ACTIVE: (JobStatus.HIDDEN, JobStatus.CLOSED),
    JobStatus.HIDDEN: (JobStatus.ACTIVE, JobStatus.CLOSED),
    JobStatus.CLOSED: (JobStatus.ARCHIVED,),
    JobStatus.ARCHIVED: (),
}

# Job applications that still hold a place in some job's pipeline.
OPEN_JOB_APPLICATION_STATUSES = frozenset({
    _J.PENDING, _J.UNDER_REVIEW, _J.SHORTLISTED, _J.INTERVIEWED, _J.APPROVED,
})

# Training statuses that occupy a seat in the program.
SEAT_HOLDING_STATUSES = frozenset({_T.APPROVED, _T.ENROLLED, _T.IN_PROGRESS})

# Roles
APPLICANT = "applicant"
HR = "hr"
ADMIN = "admin"
SYSTEM = "system"
STAFF_ROLES = frozenset({HR, ADMIN})


@dataclass(frozen=True)
class Actor:
    """Who is asking for a change. `id` is None for the system actor."""

    id: int | None
    role: str

    @property
    def is_applicant(self) -> bool:
        return self.role == APPLICANT

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES or self.role == SYSTEM


SYSTEM_ACTOR = Actor(id=None, role=SYSTEM)


def parse_domain(value) -> Domain:
    return value if isinstance(value, Domain) else Domain(str(value).strip().lower())


def parse_status(value, domain) -> Enum:
    """Coerce a raw value into the closed status type of `domain`. Raises ValueError."""
    status_type = STATUS_TYPES[parse_domain(domain)]
    if isinstance(value, status_type):
        return value
    return status_type(str(value or "").strip().lower())


def is_terminal(status, domain) -> bool:
    domain = parse_domain(domain)
    return not TRANSITIONS[domain][parse_status(status, domain)]


def _edge_allowed_for_role(target, role: str | None) -> bool:
    if role is None:
        return True
    if target.value == "withdrawn":
        return role == APPLICANT
    return role != APPLICANT


def valid_transitions(status, domain, role: str | None = None) -> list:
    """
    Next statuses reachable from `status` in `domain`.

    With `role` given, the list is narrowed to the edges that role may use:
    applicants only ever get `withdrawn`, staff and the system never do.
    """
    domain = parse_domain(domain)
    current = parse_status(status, domain)
    return [t for t in TRANSITIONS[domain][current] if _edge_allowed_for_role(t, role)]


def is_transition_allowed(current, target, domain, role: str | None = None) -> bool:
    domain = parse_domain(domain)
    return parse_status(target, domain) in valid_transitions(current, domain, role)


def valid_job_transitions(status) -> list[JobStatus]:
    return list(JOB_TRANSITIONS[JobStatus(str(status).strip().lower())])
