import logging

import db
from appdynamics import make_snapshot
from errors import ConfigurationError
from relay import send_to_teams
from reporter import generate_report

logger = logging.getLogger(__name__)


def resolve_client(client_id=None):
    """Explicit profile, else the selected one."""
    if client_id:
        return db.get_client(client_id)
    selected = db.get_selected_client_id()
    if not selected:
        raise ConfigurationError("Select or configure a client first.")
    return db.get_client(selected)


def snapshot_for(profile, settings, session=None):
    return make_snapshot(
        profile.get("controllerUrl"),
        profile.get("accountName"),
        profile.get("clientName"),
        profile.get("clientSecret"),
        session=session,
        timeout=settings.http_timeout_seconds,
    )


def generate_client_report(profile, settings, session=None, llm_client=None):
    if llm_client is None and not settings.gemini_api_key:
        raise ConfigurationError("GEMINI_API_KEY not found.")
    logger.info("Generating report for %s", profile.get("name"))
    snapshot = snapshot_for(profile, settings, session=session)
    report = generate_report(
        snapshot,
        profile.get("name", ""),
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        client=llm_client,
    )
    return {
        "clientId": profile.get("id"),
        "clientName": profile.get("name", ""),
        "report": report,
        "snapshot": snapshot,
    }


def relay_client_report(profile, message, settings, session=None):
    if not str(message or "").strip():
        raise ConfigurationError("Nothing to send: the report is empty.")
    send_to_teams(
        message,
        profile.get("teamsWebhookUrl"),
        session=session,
        timeout=settings.http_timeout_seconds,
    )
