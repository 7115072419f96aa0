import logging
import time
from datetime import datetime, timezone

import requests

from analyzer import exclude_nonprod, group_violations, is_nonprod, snapshot_counts
from errors import AuthenticationError, ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

HEADERS = {"User-Agent": "AppDAutomator/0.1", "Accept": "application/json"}

TOKEN_PATH = "/controller/api/oauth/access_token"
APPLICATIONS_PATH = "/controller/rest/applications"
VIOLATIONS_PATH = "/controller/rest/applications/{app_id}/problems/healthrule-violations"
SERVERS_PATH = "/controller/rest/markethistory/servers"
DATABASES_PATH = "/controller/rest/databases"

# wider than the 24h relevance window so long-running OPEN violations are seen
VIOLATION_LOOKBACK_MINUTES = 7 * 24 * 60

DEFAULT_TIMEOUT = 30.0


def normalize_client_id(client_name, account_name):
    client_id = client_name.strip()
    if "@" not in client_id:
        client_id = f"{client_id}@{account_name.strip()}"
    return client_id


def _body_text(response):
    try:
        return (response.text or "").strip()
    except Exception:
        return ""


def fetch_token(session, controller_url, client_id, client_secret, timeout=DEFAULT_TIMEOUT):
    """Exchange API client credentials for a bearer token."""
    url = f"{controller_url}{TOKEN_PATH}"
    data = {
        "grant_type": "client_credentials",
        "client_id": client_id,
        "client_secret": client_secret,
    }
    try:
        r = session.post(
            url,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded", **HEADERS},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise AuthenticationError(
            f"Failed to obtain OAuth2 token: {type(exc).__name__}: {exc}",
            payload={"url": url},
        ) from exc

    if not r.ok:
        detail = _body_text(r)
        logger.error(
            "Token exchange failed for %s: %s", client_id, r.status_code,
            extra={"context": {"controller": controller_url, "status_code": r.status_code}},
        )
        raise AuthenticationError(
            f"Failed to obtain OAuth2 token: {r.status_code} - {detail}",
            status_code=r.status_code,
            detail=detail,
            payload={"url": url},
        )

    try:
        token = r.json().get("access_token")
    except (ValueError, AttributeError):
        token = None
    if not token:
        raise AuthenticationError(
            "Failed to obtain OAuth2 token: response carried no access_token",
            status_code=r.status_code,
            detail=_body_text(r),
            payload={"url": url},
        )
    return token


def fetch_json(session, url, token, params=None, timeout=DEFAULT_TIMEOUT, label="AppDynamics"):
    query = {"output": "JSON"}
    query.update(params or {})
    headers = {"Authorization": f"Bearer {token}", **HEADERS}
    try:
        r = session.get(url, params=query, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamError(
            f"{label} call failed: {type(exc).__name__}: {exc}",
            payload={"url": url},
        ) from exc

    if not r.ok:
        detail = _body_text(r)
        raise UpstreamError(
            f"{label} API failed: {r.status_code} {detail}",
            status_code=r.status_code,
            detail=detail,
            payload={"url": url},
        )
    try:
        return r.json()
    except ValueError as exc:
        raise UpstreamError(
            f"{label} API returned invalid JSON",
            status_code=r.status_code,
            detail=_body_text(r),
            payload={"url": url},
        ) from exc


def fetch_applications(session, controller_url, token, timeout=DEFAULT_TIMEOUT):
    apps = fetch_json(
        session, f"{controller_url}{APPLICATIONS_PATH}", token,
        timeout=timeout, label="AppDynamics Applications",
    )
    if not isinstance(apps, list):
        raise UpstreamError("AppDynamics Applications API returned an unexpected payload")
    return apps


def fetch_violations(session, controller_url, token, app_id, timeout=DEFAULT_TIMEOUT):
    url = f"{controller_url}{VIOLATIONS_PATH.format(app_id=app_id)}"
    params = {
        "time-range-type": "BEFORE_NOW",
        "duration-in-mins": VIOLATION_LOOKBACK_MINUTES,
    }
    violations = fetch_json(session, url, token, params=params, timeout=timeout, label="Health rule violations")
    if not isinstance(violations, list):
        raise UpstreamError(f"Unexpected violations payload for application {app_id}")
    return violations


def fetch_optional_list(session, url, token, label, timeout=DEFAULT_TIMEOUT):
    """Best-effort listing: any failure degrades to an empty list."""
    try:
        items = fetch_json(session, url, token, timeout=timeout, label=label)
    except UpstreamError as exc:
        logger.warning("%s", exc)
        return []
    if not isinstance(items, list):
        logger.warning("%s API returned an unexpected payload", label)
        return []
    return items


def collect_violations(session, controller_url, token, applications, now_ms, timeout=DEFAULT_TIMEOUT):
    groups = []
    for app in applications:
        if not isinstance(app, dict) or is_nonprod(app):
            continue
        name = app.get("name", "")
        try:
            violations = fetch_violations(session, controller_url, token, app.get("id"), timeout=timeout)
        except UpstreamError as exc:
            logger.warning(
                "Failed to fetch violations for %s: %s", name, exc,
                extra={"context": {"application": name, "status_code": exc.status_code}},
            )
            continue
        group = group_violations(name, violations, now_ms)
        if group:
            groups.append(group)
    return groups


def _missing_fields(**fields):
    return [name for name, value in fields.items() if not str(value or "").strip()]


def make_snapshot(controller_url, account_name, client_name, client_secret,
                  session=None, timeout=DEFAULT_TIMEOUT, now_ms=None):
    missing = _missing_fields(
        controllerUrl=controller_url,
        accountName=account_name,
        clientName=client_name,
        clientSecret=client_secret,
    )
    if missing:
        raise ConfigurationError(
            "Client configuration incomplete: missing " + ", ".join(missing),
            payload={"missing": missing},
        )

    base_url = controller_url.strip().rstrip("/")
    client_id = normalize_client_id(client_name, account_name)
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    owns_session = session is None
    session = session or requests.Session()
    try:
        token = fetch_token(session, base_url, client_id, client_secret.strip(), timeout=timeout)
        applications = fetch_applications(session, base_url, token, timeout=timeout)
        health_violations = collect_violations(session, base_url, token, applications, now_ms, timeout=timeout)
        servers = fetch_optional_list(session, f"{base_url}{SERVERS_PATH}", token, "Servers", timeout=timeout)
        databases = fetch_optional_list(session, f"{base_url}{DATABASES_PATH}", token, "Databases", timeout=timeout)
    finally:
        if owns_session:
            session.close()

    snapshot = {
        "applications": exclude_nonprod(applications),
        "healthViolations": health_violations,
        "servers": exclude_nonprod(servers),
        "databases": exclude_nonprod(databases),
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }
    counts = snapshot_counts(snapshot)
    logger.info("Snapshot for %s: %s", base_url, counts, extra={"context": {"controller": base_url, **counts}})
    return snapshot
