from datetime import datetime
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.applicant import Applicant
from ..services.audit_log import utcnow
from ..utils.error_handlers import NotFoundError, get_error_message
from ..utils.json_fields import clean_string_list, dump_string_list
from ..utils.roles import applicant_only
from ..utils.validation import validate_string_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applicants", tags=["Applicants"])


class ApplicantProfile(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    highest_degree: str | None = Field(default=None, max_length=255)
    skills: list[str] | None = None
    eligibilities: list[str] | None = None
    years_experience: float | None = Field(default=None, ge=0, le=80)


def _applicant_to_public(a: Applicant) -> dict:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "name": a.name,
        "email": a.email,
        "highest_degree": a.highest_degree,
        "skills": clean_string_list(a.skills),
        "eligibilities": clean_string_list(a.eligibilities),
        "years_experience": a.years_experience,
        "created_at": a.created_at.isoformat() if isinstance(a.created_at, datetime) else a.created_at,
    }


@router.put("/me")
def upsert_my_profile(
    payload: ApplicantProfile,
    db: Session = Depends(get_db),
    user=Depends(applicant_only),
):
    user_id = int(user.get("sub"))
    applicant = db.query(Applicant).filter(Applicant.user_id == user_id).first()
    created = applicant is None
    if created:
        applicant = Applicant(user_id=user_id)
        db.add(applicant)

    applicant.name = validate_string_field(payload.name, "Name", min_length=1, max_length=255, required=True)
    applicant.email = validate_string_field(payload.email, "Email", min_length=3, max_length=255, required=False)
    applicant.highest_degree = validate_string_field(
        payload.highest_degree, "Highest degree", min_length=1, max_length=255, required=False
    )
    applicant.skills = dump_string_list(payload.skills)
    applicant.eligibilities = dump_string_list(payload.eligibilities)
    applicant.years_experience = payload.years_experience
    applicant.updated_at = utcnow()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(applicant)
    if created:
        logger.info("Applicant profile %s created for user %s", applicant.id, user_id)
    return {"success": True, "created": created, "applicant": _applicant_to_public(applicant)}


@router.get("/me")
def get_my_profile(
    db: Session = Depends(get_db),
    user=Depends(applicant_only),
):
    applicant = db.query(Applicant).filter(Applicant.user_id == int(user.get("sub"))).first()
    if not applicant:
        raise NotFoundError(get_error_message("profile_required"))
    return {"success": True, "applicant": _applicant_to_public(applicant)}
