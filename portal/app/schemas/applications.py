from pydantic import BaseModel, Field, field_validator


SORT_FIELDS = ("rank", "match_score", "created_at")


class ListOptions(BaseModel):
    """Filter/sort for application listings. Always passed explicitly by the caller."""

    status: str | None = None
    sort_by: str = "rank"
    descending: bool = False
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @field_validator("status")
    @classmethod
    def _normalize_status(cls, v: str | None) -> str | None:
        v = (v or "").strip().lower()
        return v or None

    @field_validator("sort_by")
    @classmethod
    def _check_sort(cls, v: str) -> str:
        v = (v or "rank").strip().lower()
        if v not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")
        return v


class StatusChange(BaseModel):
    status: str = Field(min_length=1, max_length=32)
    expected_status: str | None = Field(default=None, max_length=32)
    denial_reason: str | None = Field(default=None, max_length=2000)
    next_steps: str | None = Field(default=None, max_length=2000)
    hr_notes: str | None = Field(default=None, max_length=5000)
    interview_date: str | None = None  # ISO 8601
    timezone: str | None = Field(default=None, max_length=64)  # IANA name for naive interview_date
    reason: str | None = Field(default=None, max_length=2000)

    def metadata(self) -> dict:
        return {
            k: v
            for k, v in {
                "denial_reason": self.denial_reason,
                "next_steps": self.next_steps,
                "hr_notes": self.hr_notes,
                "interview_date": self.interview_date,
                "timezone": self.timezone,
                "reason": self.reason,
            }.items()
            if v is not None
        }


class ApplicationCreate(BaseModel):
    job_id: int | None = Field(default=None, ge=1)
    program_id: int | None = Field(default=None, ge=1)


class CloseAndDenyRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class CloseAndRerouteRequest(BaseModel):
    custom_reason: str | None = Field(default=None, max_length=2000)


class ReleaseHireRequest(BaseModel):
    release_reason: str | None = Field(default=None, max_length=2000)
