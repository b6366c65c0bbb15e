from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..services.workflow import ADMIN, APPLICANT, HR, Actor
from .error_handlers import get_error_message
from .jwt import decode_access_token

KNOWN_ROLES = {APPLICANT, HR, ADMIN}

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail=get_error_message("unauthorized"))

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    sub = payload.get("sub")
    role = (payload.get("role") or "").strip().lower()
    try:
        int(sub)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject")
    if role not in KNOWN_ROLES:
        raise HTTPException(status_code=403, detail=get_error_message("forbidden"))

    return {"sub": str(sub), "role": role}


def actor_from_user(user: dict) -> Actor:
    return Actor(id=int(user.get("sub")), role=user.get("role"))
