import logging

import requests

from errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def send_to_teams(message, webhook_url, session=None, timeout=DEFAULT_TIMEOUT):
    """Post ``message`` to a Teams incoming webhook as plain text."""
    if not str(webhook_url or "").strip():
        raise ConfigurationError("Teams Webhook URL not provided.")

    poster = session or requests
    try:
        r = poster.post(webhook_url.strip(), json={"text": message or ""}, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamError(f"Teams call failed: {type(exc).__name__}: {exc}") from exc

    if not r.ok:
        detail = (r.text or "").strip()
        logger.error("Teams webhook answered %s", r.status_code)
        raise UpstreamError(
            f"Teams API error: {r.status_code} {detail}",
            status_code=r.status_code,
            detail=detail,
        )
    logger.info("Message relayed to Teams (%d chars)", len(message or ""))
