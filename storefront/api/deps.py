"""
API dependency helpers.

Guards the database diagnostics routes. Outside production they are open;
in production they require the externally provisioned debug bypass token.
"""
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from storefront.utils.runtime import debug_bypass_active, is_production, verify_debug_bypass_token

logger = logging.getLogger(__name__)


def require_diagnostics_access(
    x_debug_bypass_token: Optional[str] = Header(default=None),
) -> None:
    if not is_production():
        return

    try:
        bypass_enabled = debug_bypass_active()
    except RuntimeError as exc:
        logger.error("diagnostics_bypass_misconfigured: error=%s", exc)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Diagnostics unavailable")

    if bypass_enabled and verify_debug_bypass_token(x_debug_bypass_token):
        logger.warning("diagnostics_bypass_used")
        return

    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
