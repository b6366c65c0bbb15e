import re
from dataclasses import asdict, dataclass
from typing import Any

from rapidfuzz import fuzz

from ..config import (
    DEGREE_FIELD_MATCH_THRESHOLD,
    ELIGIBILITY_MATCH_THRESHOLD,
    SCORE_WEIGHTS,
    SKILL_MATCH_THRESHOLD,
)
from ..utils.json_fields import clean_string_list


_OPTION_SPLIT_RE = re.compile(r"\s*(?:,|/|;|\bor\b)\s*", re.IGNORECASE)

_SKILL_ALIASES = {
    "reactjs": "react",
    "react.js": "react",
    "nodejs": "node",
    "node.js": "node",
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "postgres": "postgresql",
    "k8s": "kubernetes",
    "msexcel": "excel",
    "microsoftexcel": "excel",
    "msword": "word",
    "microsoftword": "word",
    "mspowerpoint": "powerpoint",
    "microsoftpowerpoint": "powerpoint",
    "msoffice": "microsoft office",
    "ml": "machine learning",
    "ai": "artificial intelligence",
    "hr": "human resources",
    "bookkeeping": "accounting",
    "customerservice": "customer service",
    "clientservice": "customer service",
}

# Lowest to highest. Patterns are matched against normalized degree text.
_DEGREE_LEVELS: list[tuple[str, re.Pattern]] = [
    ("elementary", re.compile(r"\b(elementary|primary school|grade school)\b")),
    ("secondary", re.compile(r"\b(high school|secondary|senior high|junior high|shs)\b")),
    ("vocational", re.compile(r"\b(vocational|technical vocational|tesda|nc ?i{1,3}|certificate)\b")),
    ("associate", re.compile(r"\b(associate|associates)\b")),
    ("bachelor", re.compile(r"\b(bachelor|bachelors|bs|ba|bsc|ab|college graduate)\b")),
    ("master", re.compile(r"\b(master|masters|ms|ma|msc|mba|mpa)\b")),
    ("doctorate", re.compile(r"\b(doctorate|doctoral|doctor of|phd|edd|dba)\b")),
]

_LEVEL_WORDS = re.compile(
    r"\b(elementary|primary|grade|school|high|secondary|senior|junior|shs|vocational|technical|tesda|"
    r"diploma|certificate|associate|associates|bachelor|bachelors|bs|ba|bsc|ab|college|graduate|"
    r"master|masters|ms|ma|msc|mba|mpa|doctorate|doctoral|doctor|phd|edd|dba|degree|of|in)\b"
)


@dataclass(frozen=True)
class SubScores:
    education: float
    experience: float
    skills: float
    eligibility: float
    match_score: float
    matched_skills_count: int = 0
    matched_eligibilities_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    value = float(value or 0.0)
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def _normalize_text(s: str) -> str:
    s = (s or "").strip().lower()
    s = re.sub(r"[^a-z0-9+#. ]+", " ", s)
    s = s.replace(".", "")
    s = re.sub(r"\s{2,}", " ", s).strip()
    return s


def _normalize_skill(s: str) -> str:
    s = (s or "").strip().lower()
    s = re.sub(r"[^a-z0-9+#. ]+", " ", s).strip()
    s = re.sub(r"\s{2,}", " ", s)
    return s


def _canonical_skill(s: str) -> str:
    n = _normalize_skill(s)
    key = n.replace(" ", "")
    return _SKILL_ALIASES.get(key, _SKILL_ALIASES.get(n, n))


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for it in items:
        if not it or it in seen:
            continue
        seen.add(it)
        out.append(it)
    return out


def split_options(text: str | None) -> list[str]:
    """'BS Nursing or BS Midwifery' -> ['BS Nursing', 'BS Midwifery']"""
    return [p.strip() for p in _OPTION_SPLIT_RE.split(text or "") if p and p.strip()]


def text_similarity(a: str, b: str) -> float:
    """0-100 ratio of two already-normalized strings."""
    if not a or not b:
        return 0.0
    if a == b:
        return 100.0
    return float(fuzz.ratio(a, b))


# -------------------- Education --------------------

def degree_level(text: str | None) -> int | None:
    n = _normalize_text(text or "")
    if not n:
        return None
    found = None
    for idx, (_name, pattern) in enumerate(_DEGREE_LEVELS):
        if pattern.search(n):
            found = idx
    return found


def degree_field(text: str | None) -> str | None:
    n = _normalize_text(text or "")
    if not n:
        return None
    if " in " in n:
        field = n.rsplit(" in ", 1)[1]
    elif " of " in n:
        field = n.rsplit(" of ", 1)[1]
    else:
        field = _LEVEL_WORDS.sub(" ", n)
    field = re.sub(r"\b[a-z]\b", " ", field)
    field = re.sub(r"\s{2,}", " ", field).strip()
    return field or None


def _degree_option_score(requirement: str, applicant_degree: str) -> float:
    req_level = degree_level(requirement)
    app_level = degree_level(applicant_degree)
    if req_level is None or (app_level is not None and app_level >= req_level):
        level_factor = 1.0
    elif app_level is not None and req_level - app_level == 1:
        level_factor = 0.6
    else:
        level_factor = 0.3

    req_field = degree_field(requirement)
    if not req_field:
        field_score = 100.0
    else:
        app_field = degree_field(applicant_degree) or _normalize_text(applicant_degree)
        field_score = text_similarity(req_field, app_field)
        if field_score >= DEGREE_FIELD_MATCH_THRESHOLD:
            field_score = 100.0
    return field_score * level_factor


def education_score(*, requirement: str | None, applicant_degree: str | None) -> float:
    options = split_options(requirement)
    if not options:
        return 50.0
    if not (applicant_degree or "").strip():
        return 0.0
    best = max(_degree_option_score(opt, applicant_degree) for opt in options)
    return round(_clamp(best), 2)


# -------------------- Experience --------------------

def experience_score(*, required_years: float | None, applicant_years: float | None) -> float:
    """
    0 years scores 0. Below the requirement scores 40..80 by ratio; meeting it
    scores 80, rising to 100 at three times the requirement.
    """
    years = max(0.0, float(applicant_years or 0.0))
    required = float(required_years or 0.0)
    if required <= 0.0:
        required = 1.0
    if years <= 0.0:
        return 0.0
    if years < required:
        val = 40.0 + 40.0 * (years / required)
    else:
        val = 80.0 + 20.0 * min(1.0, (years - required) / (2.0 * required))
    return round(_clamp(val), 2)


# -------------------- Skills --------------------

def skill_similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    if a == b:
        return 100.0
    # token_set_ratio lets "excel reporting" meet "advanced excel reporting".
    return float(max(fuzz.ratio(a, b), fuzz.token_set_ratio(a, b)))


def _credit(similarity: float, threshold: float) -> float:
    if similarity < threshold:
        return 0.0
    if threshold >= 100.0:
        return 100.0
    return 100.0 * (similarity - threshold) / (100.0 - threshold)


def skills_score(*, required: list[str] | None, applicant: list[str] | None) -> tuple[float, int]:
    """
    Returns (score 0-100, matched_count).
    Each required skill is paired with the best still-unused applicant skill.
    """
    req = _unique([_canonical_skill(s) for s in (required or [])])
    if not req:
        return 50.0, 0
    have = _unique([_canonical_skill(s) for s in (applicant or [])])
    if not have:
        return 0.0, 0

    used: set[int] = set()
    credits: list[float] = []
    matched = 0
    for skill in req:
        best_idx, best_sim = None, 0.0
        for idx, cand in enumerate(have):
            if idx in used:
                continue
            sim = skill_similarity(skill, cand)
            if sim > best_sim:
                best_idx, best_sim = idx, sim
        credit = _credit(best_sim, SKILL_MATCH_THRESHOLD)
        if best_idx is not None and credit > 0.0:
            used.add(best_idx)
            matched += 1
        credits.append(credit)
    return round(_clamp(sum(credits) / len(req)), 2), matched


# -------------------- Eligibility --------------------

def _eligibility_matches(option: str, credentials: list[str]) -> bool:
    want = _normalize_text(option)
    if not want:
        return False
    for have in credentials:
        if have == want or text_similarity(want, have) >= ELIGIBILITY_MATCH_THRESHOLD:
            return True
    return False


def eligibility_score(*, required: list[str] | None, applicant: list[str] | None) -> tuple[float, int]:
    lines = [line for line in (required or []) if (line or "").strip()]
    if not lines:
        return 50.0, 0
    creds = _unique([_normalize_text(c) for c in (applicant or [])])
    satisfied = 0
    for line in lines:
        if any(_eligibility_matches(opt, creds) for opt in split_options(line)):
            satisfied += 1
    return round(_clamp(100.0 * satisfied / len(lines)), 2), satisfied


# -------------------- Composite --------------------

def compute_match_score(
    *,
    education: float,
    experience: float,
    skills: float,
    eligibility: float,
) -> float:
    val = (
        SCORE_WEIGHTS["education"] * _clamp(education)
        + SCORE_WEIGHTS["experience"] * _clamp(experience)
        + SCORE_WEIGHTS["skills"] * _clamp(skills)
        + SCORE_WEIGHTS["eligibility"] * _clamp(eligibility)
    )
    return round(_clamp(val), 2)


def score_application(job, applicant) -> SubScores:
    """
    Score one applicant profile against one job's requirements. Pure: reads the
    two records and writes nothing. A missing profile scores as an empty one.
    """
    edu = education_score(
        requirement=getattr(job, "degree_requirement", None),
        applicant_degree=getattr(applicant, "highest_degree", None),
    )
    exp = experience_score(
        required_years=getattr(job, "years_of_experience", None),
        applicant_years=getattr(applicant, "years_experience", None),
    )
    skl, matched_skills = skills_score(
        required=clean_string_list(getattr(job, "required_skills", None)),
        applicant=clean_string_list(getattr(applicant, "skills", None)),
    )
    elig, matched_elig = eligibility_score(
        required=clean_string_list(getattr(job, "required_eligibilities", None)),
        applicant=clean_string_list(getattr(applicant, "eligibilities", None)),
    )
    return SubScores(
        education=edu,
        experience=exp,
        skills=skl,
        eligibility=elig,
        match_score=compute_match_score(education=edu, experience=exp, skills=skl, eligibility=elig),
        matched_skills_count=matched_skills,
        matched_eligibilities_count=matched_elig,
    )
