from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from app.core.config import settings


def create_workspace_token(workspace_id: str, expires_minutes: Optional[int] = None) -> str:
    """Sign a workspace id into the value stored in the workspace cookie."""
    minutes = expires_minutes if expires_minutes is not None else settings.WORKSPACE_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": workspace_id, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def read_workspace_token(token: str) -> Optional[str]:
    """Return the workspace id carried by a cookie token, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")
