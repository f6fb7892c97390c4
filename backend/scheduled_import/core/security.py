import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from scheduled_import.core.config import settings


def require_trigger_token(
    x_trigger_token: Optional[str] = Header(default=None, alias="X-Trigger-Token"),
) -> None:
    """Shared-secret check for trigger/admin calls. Disabled when TRIGGER_TOKEN is unset."""
    expected = settings.TRIGGER_TOKEN
    if not expected:
        return
    if not x_trigger_token or not hmac.compare_digest(x_trigger_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid trigger token",
        )
