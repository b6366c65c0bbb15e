from fastapi import Depends, HTTPException

from ..services.workflow import ADMIN, APPLICANT, HR
from .dependencies import get_current_user


def _role_required(*allowed_roles: str):
    label = " or ".join(r.upper() if r == HR else r.capitalize() for r in allowed_roles)

    def check_role(user=Depends(get_current_user)):
        if user.get("role") not in allowed_roles:
            raise HTTPException(status_code=403, detail=f"{label} access only")
        return user
    return check_role


staff_only = _role_required(HR, ADMIN)
applicant_only = _role_required(APPLICANT)
admin_only = _role_required(ADMIN)
