from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt

from ..config import SECRET_KEY

ALGORITHM = "HS256"
# Tokens are issued by the identity service; this default only applies to
# tokens minted locally by tooling and tests.
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Claims of a valid token, or None when the signature/expiry check fails."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
