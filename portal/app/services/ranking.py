"""
Pool ranking for a job.

`rank_job` scores every application in the job's pool, assigns ranks 1..N with
no ties, and reports per-dimension statistics and percentiles. The pool is read
once at the start and every later step works on that snapshot.
"""
import logging
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy.orm import Session, joinedload

from ..config import RANK_EXCLUDED_STATUSES
from ..models.application import Application
from ..utils.error_handlers import EmptyPoolError
from . import status_engine
from .scoring_engine import SubScores, score_application
from .workflow import Domain

logger = logging.getLogger(__name__)

# Reporting name -> SubScores attribute
DIMENSIONS = {
    "match": "match_score",
    "education": "education",
    "experience": "experience",
    "skills": "skills",
    "eligibility": "eligibility",
}


@dataclass
class RankedItem:
    rank: int
    application_id: int
    applicant_id: int
    status: str
    scores: SubScores
    percentiles: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "application_id": self.application_id,
            "applicant_id": self.applicant_id,
            "status": self.status,
            "match_score": self.scores.match_score,
            "education_score": self.scores.education,
            "experience_score": self.scores.experience,
            "skills_score": self.scores.skills,
            "eligibility_score": self.scores.eligibility,
            "matched_skills_count": self.scores.matched_skills_count,
            "matched_eligibilities_count": self.scores.matched_eligibilities_count,
            "percentiles": dict(self.percentiles),
        }


@dataclass
class RankedPool:
    job_id: int
    pool_size: int = 0
    items: list[RankedItem] = field(default_factory=list)
    statistics: dict[str, dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "pool_size": self.pool_size,
            "items": [it.to_dict() for it in self.items],
            "statistics": {k: dict(v) for k, v in self.statistics.items()},
        }


def compute_statistics(values: Iterable[float | None]) -> dict[str, float]:
    """min/max/mean/median/population stddev over the non-null values; all zero when empty."""
    vals = [float(v) for v in values if v is not None]
    if not vals:
        return {"min": 0.0, "max": 0.0, "mean": 0.0, "median": 0.0, "stddev": 0.0}
    stddev = statistics.pstdev(vals) if len(vals) >= 2 else 0.0
    return {
        "min": round(min(vals), 2),
        "max": round(max(vals), 2),
        "mean": round(statistics.fmean(vals), 2),
        "median": round(statistics.median(vals), 2),
        "stddev": round(stddev, 2),
    }


def percentile(value: float, pool: list[float]) -> float:
    """Share of the rest of the pool scoring strictly lower, on a 0-100 scale."""
    n = len(pool)
    if n <= 1:
        return 100.0
    lower = sum(1 for v in pool if v < value)
    pct = 100.0 * lower / (n - 1)
    if pct < 0.0:
        return 0.0
    if pct > 100.0:
        return 100.0
    return round(pct, 2)


def _created_key(a: Application) -> datetime:
    dt = a.created_at
    if dt is None:
        return datetime.max
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def sort_key(a: Application, scores: SubScores) -> tuple:
    """Score descending, then earliest submission, then applicant id, then application id."""
    return (-scores.match_score, _created_key(a), int(a.applicant_id), int(a.id))


def _load_pool(db: Session, job_id: int) -> tuple[list[Application], list[Application]]:
    rows = (
        db.query(Application)
        .options(joinedload(Application.applicant))
        .filter(Application.job_id == int(job_id), Application.domain == Domain.JOB.value)
        .order_by(Application.id.asc())
        .all()
    )
    pool = [a for a in rows if (a.status or "").lower() not in RANK_EXCLUDED_STATUSES]
    excluded = [a for a in rows if (a.status or "").lower() in RANK_EXCLUDED_STATUSES]
    if not pool:
        raise EmptyPoolError(details={"job_id": int(job_id), "excluded": len(excluded)})
    return pool, excluded


def _clear_excluded(db: Session, excluded: list[Application]) -> None:
    stale = [a for a in excluded if a.rank is not None or a.match_score is not None]
    if not stale:
        return
    try:
        for a in stale:
            status_engine.clear_ranking(a)
        db.commit()
    except Exception:
        db.rollback()
        raise


def rank_job(db: Session, job_id: int) -> RankedPool:
    """
    Re-rank a job's pool from scratch and persist score + rank on every member.
    An empty pool is a successful no-op with zeroed statistics.
    """
    job = status_engine.get_job(db, job_id)
    try:
        pool, excluded = _load_pool(db, job.id)
    except EmptyPoolError as e:
        logger.info("Ranking job %s: empty pool (%s)", job.id, e.details)
        excluded = (
            db.query(Application)
            .filter(Application.job_id == job.id, Application.domain == Domain.JOB.value)
            .all()
        )
        _clear_excluded(db, excluded)
        return RankedPool(
            job_id=job.id,
            pool_size=0,
            items=[],
            statistics={name: compute_statistics([]) for name in DIMENSIONS},
        )

    scored = [(a, score_application(job, a.applicant)) for a in pool]
    scored.sort(key=lambda pair: sort_key(pair[0], pair[1]))

    try:
        for rank, (a, scores) in enumerate(scored, start=1):
            status_engine.record_ranking(
                a,
                match_score=scores.match_score,
                rank=rank,
                education_score=scores.education,
                experience_score=scores.experience,
                skills_score=scores.skills,
                eligibility_score=scores.eligibility,
                matched_skills_count=scores.matched_skills_count,
                matched_eligibilities_count=scores.matched_eligibilities_count,
            )
        for a in excluded:
            status_engine.clear_ranking(a)
        db.commit()
    except Exception:
        db.rollback()
        raise

    values = {
        name: [getattr(scores, attr) for _a, scores in scored]
        for name, attr in DIMENSIONS.items()
    }
    items: list[RankedItem] = []
    for rank, (a, scores) in enumerate(scored, start=1):
        items.append(
            RankedItem(
                rank=rank,
                application_id=a.id,
                applicant_id=a.applicant_id,
                status=a.status,
                scores=scores,
                percentiles={
                    name: percentile(getattr(scores, attr), values[name])
                    for name, attr in DIMENSIONS.items()
                },
            )
        )

    logger.info("Ranked job %s: %d applications (%d excluded)", job.id, len(items), len(excluded))
    return RankedPool(
        job_id=job.id,
        pool_size=len(items),
        items=items,
        statistics={name: compute_statistics(vals) for name, vals in values.items()},
    )
