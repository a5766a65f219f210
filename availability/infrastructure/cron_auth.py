from __future__ import annotations

import hmac
import logging
from typing import Mapping

logger = logging.getLogger(__name__)

PLATFORM_CRON_HEADER = "x-vercel-cron"


def verify_cron_request(headers: Mapping[str, str], cron_secret: str | None) -> bool:
    """
    Accept the scheduler platform header, or `Authorization: Bearer <secret>`.

    Without a configured secret only the platform header is accepted.
    """
    if headers.get(PLATFORM_CRON_HEADER) is not None:
        return True

    if not cron_secret:
        logger.warning("Cron request rejected: no secret configured and no platform header")
        return False

    auth_header = headers.get("authorization")
    if not auth_header:
        return False

    try:
        scheme, token = auth_header.split(" ", 1)
    except ValueError:
        return False

    if scheme.lower() != "bearer":
        return False

    return hmac.compare_digest(token.strip().encode("utf-8"), cron_secret.encode("utf-8"))
