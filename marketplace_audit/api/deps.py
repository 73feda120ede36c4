"""
Request authentication dependencies

User-initiated calls carry the dashboard bearer token. System calls
(scheduler cron, webhooks) carry either the cron bearer secret or the
x-webhook-secret header.
"""
from typing import Optional
import secrets

from fastapi import Header, HTTPException

from marketplace_audit.config import get_settings


def _matches(candidate: Optional[str], expected: Optional[str]) -> bool:
    if not candidate or not expected:
        return False
    return secrets.compare_digest(candidate, expected)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip()


def require_user(authorization: Optional[str] = Header(None)) -> str:
    """Dashboard user: Authorization: Bearer <dashboard token>"""
    token = _bearer(authorization)
    if not _matches(token, get_settings().dashboard_api_token):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return "user"


def require_system(
    authorization: Optional[str] = Header(None),
    x_webhook_secret: Optional[str] = Header(None),
) -> str:
    """Scheduler / webhook caller: cron bearer secret or webhook secret header"""
    settings = get_settings()
    if _matches(_bearer(authorization), settings.cron_secret):
        return "cron"
    if _matches(x_webhook_secret, settings.webhook_secret):
        return "webhook"
    raise HTTPException(status_code=401, detail="Unauthorized")
