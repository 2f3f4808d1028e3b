"""
Security helpers: metrics endpoint authentication
"""
import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from signpost.config import get_settings

settings = get_settings()
metrics_security = HTTPBasic(auto_error=False)
logger = logging.getLogger(__name__)


def verify_metrics_basic_auth(
    credentials: Optional[HTTPBasicCredentials] = Depends(metrics_security),
) -> None:
    """
    Guard /metrics with HTTP Basic auth.

    Open when no credentials are configured (development only; production
    refuses to boot in that state, see Settings.validate_secrets).
    """
    if not settings.metrics_username or not settings.metrics_password:
        return

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Basic"},
        )

    username_ok = secrets.compare_digest(
        credentials.username.encode("utf-8"), settings.metrics_username.encode("utf-8")
    )
    password_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"), settings.metrics_password.encode("utf-8")
    )
    if not (username_ok and password_ok):
        logger.warning("metrics auth failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
