from __future__ import annotations

import logging

import pytest
import requests

from _fakes import (
    CONTROLLER,
    HOUR_MS,
    NOW_MS,
    FakeResponse,
    FakeSession,
    controller_session,
    violations_path,
)
from appdynamics import make_snapshot, normalize_client_id
from errors import AuthenticationError, ConfigurationError, UpstreamError


def _snapshot(session: FakeSession, **overrides):
    kwargs = dict(
        controller_url=CONTROLLER,
        account_name="bankx",
        client_name="dashboard",
        client_secret="s3cret",
        session=session,
        now_ms=NOW_MS,
    )
    kwargs.update(overrides)
    return make_snapshot(**kwargs)


def test_normalize_client_id_appends_account() -> None:
    assert normalize_client_id(" dashboard ", " bankx ") == "dashboard@bankx"
    assert normalize_client_id("dashboard@other", "bankx") == "dashboard@other"


def test_nonprod_application_is_never_listed_nor_queried() -> None:
    apps = [{"id": 1, "name": "Core-PROD"}, {"id": 2, "name": "Core-HML"}]
    session = controller_session(
        apps,
        violations={1: FakeResponse(200, [{"id": 10, "status": "OPEN", "name": "CPU"}])},
    )

    snap = _snapshot(session)

    assert [a["name"] for a in snap["applications"]] == ["Core-PROD"]
    assert violations_path(2) not in session.paths()
    assert [g["appName"] for g in snap["healthViolations"]] == ["Core-PROD"]


def test_nonprod_marker_is_case_insensitive() -> None:
    apps = [{"id": 1, "name": "billing-hml"}, {"id": 2, "name": "Billing-Hml-2"}]
    session = controller_session(apps)

    snap = _snapshot(session)

    assert snap["applications"] == []
    assert snap["healthViolations"] == []
    assert not any("healthrule-violations" in p for p in session.paths())


def test_open_violation_without_end_time_is_included() -> None:
    session = controller_session(
        [{"id": 1, "name": "Core-PROD"}],
        violations={1: FakeResponse(200, [{"id": 10, "status": "OPEN", "name": "Memory Usage"}])},
    )

    snap = _snapshot(session)

    assert snap["healthViolations"] == [
        {"appName": "Core-PROD", "violations": [{"id": 10, "status": "OPEN", "name": "Memory Usage"}]}
    ]


def test_relevance_window_filters_resolved_violations() -> None:
    violations = [
        {"id": 1, "status": "RESOLVED", "endTimeInMillis": NOW_MS - 2 * HOUR_MS},
        {"id": 2, "status": "RESOLVED", "endTimeInMillis": NOW_MS - 30 * HOUR_MS},
        {"id": 3, "status": "CONTINUE", "endTimeInMillis": NOW_MS - 100 * HOUR_MS},
    ]
    session = controller_session(
        [{"id": 1, "name": "Core-PROD"}, {"id": 2, "name": "Cards"}],
        violations={
            1: FakeResponse(200, violations),
            2: FakeResponse(200, [{"id": 9, "status": "RESOLVED", "endTimeInMillis": NOW_MS - 48 * HOUR_MS}]),
        },
    )

    snap = _snapshot(session)

    assert len(snap["healthViolations"]) == 1
    group = snap["healthViolations"][0]
    assert group["appName"] == "Core-PROD"
    assert [v["id"] for v in group["violations"]] == [1, 3]


def test_violation_request_uses_seven_day_lookback_and_bearer_token() -> None:
    session = controller_session(
        [{"id": 7, "name": "Core-PROD"}],
        violations={7: FakeResponse(200, [])},
    )

    _snapshot(session)

    call = next(c for c in session.calls if c["path"] == violations_path(7))
    assert call["params"] == {
        "output": "JSON",
        "time-range-type": "BEFORE_NOW",
        "duration-in-mins": 10080,
    }
    assert call["headers"]["Authorization"] == "Bearer tok-123"


def test_one_application_failure_does_not_abort_aggregation() -> None:
    session = controller_session(
        [{"id": 1, "name": "Broken"}, {"id": 2, "name": "Timeout"}, {"id": 3, "name": "Core-PROD"}],
        violations={
            1: FakeResponse(500, text="boom"),
            2: requests.ConnectionError("reset"),
            3: FakeResponse(200, [{"id": 30, "status": "OPEN"}]),
        },
        servers=FakeResponse(200, [{"name": "docker-gcp"}]),
        databases=FakeResponse(200, [{"name": "oracle-prod"}]),
    )

    snap = _snapshot(session)

    assert [g["appName"] for g in snap["healthViolations"]] == ["Core-PROD"]
    assert len(snap["applications"]) == 3
    assert snap["servers"] == [{"name": "docker-gcp"}]
    assert snap["databases"] == [{"name": "oracle-prod"}]


def test_servers_and_databases_degrade_to_empty_lists() -> None:
    session = controller_session(
        [],
        servers=FakeResponse(503, text="unavailable"),
        databases=requests.Timeout("slow"),
    )

    snap = _snapshot(session)

    assert snap["servers"] == []
    assert snap["databases"] == []


def test_servers_and_databases_drop_nonprod_entries() -> None:
    session = controller_session(
        [],
        servers=FakeResponse(200, [{"name": "docker-gcp"}, {"name": "srv-hml-01"}, {"id": 5}]),
        databases=FakeResponse(200, [{"name": "ORACLE-HML"}, {"name": "oracle-prod"}]),
    )

    snap = _snapshot(session)

    assert snap["servers"] == [{"name": "docker-gcp"}, {"id": 5}]
    assert snap["databases"] == [{"name": "oracle-prod"}]


def test_token_failure_stops_before_any_listing_call() -> None:
    session = controller_session(
        [{"id": 1, "name": "Core-PROD"}],
        token=FakeResponse(401, text="invalid_client"),
    )

    with pytest.raises(AuthenticationError) as info:
        _snapshot(session)

    assert info.value.status_code == 401
    assert info.value.detail == "invalid_client"
    assert "401" in str(info.value)
    assert session.paths() == ["/controller/api/oauth/access_token"]


def test_token_response_without_access_token_is_an_auth_error() -> None:
    session = controller_session([], token=FakeResponse(200, {"token_type": "bearer"}))

    with pytest.raises(AuthenticationError):
        _snapshot(session)

    assert session.paths("GET") == []


def test_token_exchange_is_form_encoded_client_credentials() -> None:
    session = controller_session([])

    _snapshot(session, controller_url=CONTROLLER + "/", client_name=" dashboard ", client_secret=" s3cret ")

    call = session.calls[0]
    assert call["url"] == CONTROLLER + "/controller/api/oauth/access_token"
    assert call["data"] == {
        "grant_type": "client_credentials",
        "client_id": "dashboard@bankx",
        "client_secret": "s3cret",
    }
    assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


def test_applications_failure_is_an_upstream_error() -> None:
    session = controller_session([])
    session.routes[("GET", "/controller/rest/applications")] = FakeResponse(500, text="internal")

    with pytest.raises(UpstreamError) as info:
        _snapshot(session)

    assert info.value.status_code == 500
    assert "Applications" in str(info.value)


@pytest.mark.parametrize("missing", ["controller_url", "account_name", "client_name", "client_secret"])
def test_missing_credentials_fail_without_network(missing: str) -> None:
    session = FakeSession()

    with pytest.raises(ConfigurationError):
        _snapshot(session, **{missing: "  "})

    assert session.calls == []


def test_snapshot_timestamp_is_utc_iso() -> None:
    snap = _snapshot(controller_session([]))

    assert snap["timestamp"].endswith("Z")
    assert set(snap) == {"applications", "healthViolations", "servers", "databases", "timestamp"}


def test_malformed_end_time_does_not_abort_aggregation() -> None:
    session = controller_session(
        [{"id": 1, "name": "Cards"}, {"id": 2, "name": "Core-PROD"}],
        violations={
            1: FakeResponse(200, [{"id": 10, "status": "RESOLVED", "endTimeInMillis": float("inf")}]),
            2: FakeResponse(200, [{"id": 20, "status": "OPEN"}]),
        },
    )

    snap = _snapshot(session)

    assert [g["appName"] for g in snap["healthViolations"]] == ["Core-PROD"]


def test_snapshot_and_skipped_app_are_logged_with_context(caplog: pytest.LogCaptureFixture) -> None:
    session = controller_session(
        [{"id": 1, "name": "Broken"}],
        violations={1: FakeResponse(502, text="bad gateway")},
    )

    with caplog.at_level(logging.INFO, logger="appdynamics"):
        _snapshot(session)

    contexts = [r.context for r in caplog.records if hasattr(r, "context")]
    assert {"application": "Broken", "status_code": 502} in contexts
    summary = next(c for c in contexts if "controller" in c)
    assert summary["controller"] == CONTROLLER
    assert summary["applications"] == 1
    assert summary["violations"] == 0
