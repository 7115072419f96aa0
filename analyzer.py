from bs4 import BeautifulSoup

NONPROD_MARKER = "HML"
ACTIVE_STATUSES = frozenset({"OPEN", "CONTINUE", "CONTINUING"})
RELEVANCE_WINDOW_MS = 24 * 60 * 60 * 1000


def entity_name(entity):
    if not isinstance(entity, dict):
        return ""
    return str(entity.get("name") or "")


def is_nonprod(entity, marker=NONPROD_MARKER):
    return marker.upper() in entity_name(entity).upper()


def exclude_nonprod(entities, marker=NONPROD_MARKER):
    return [e for e in entities or [] if not is_nonprod(e, marker)]


def is_active(violation):
    return str(violation.get("status") or "").upper() in ACTIVE_STATUSES


def end_time_ms(violation):
    raw = violation.get("endTimeInMillis")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return None


def ended_recently(violation, now_ms):
    end = end_time_ms(violation)
    # 0 and missing both mean "never ended"
    if not end:
        return False
    return end > now_ms - RELEVANCE_WINDOW_MS


def is_relevant(violation, now_ms):
    """Still open, or closed inside the trailing 24 hours.

    An active status always wins, so a violation open for months is reported
    every day.
    """
    if not isinstance(violation, dict):
        return False
    return is_active(violation) or ended_recently(violation, now_ms)


def relevant_violations(violations, now_ms):
    return [v for v in violations or [] if is_relevant(v, now_ms)]


def group_violations(app_name, violations, now_ms):
    relevant = relevant_violations(violations, now_ms)
    if not relevant:
        return None
    return {"appName": app_name, "violations": relevant}


def plain_text(markup):
    if not markup:
        return ""
    soup = BeautifulSoup(str(markup), "html.parser")
    return " ".join(soup.get_text(" ", strip=True).split())


def condense_snapshot(snapshot):
    """Copy of ``snapshot`` with violation descriptions reduced to plain text."""
    groups = []
    for group in snapshot.get("healthViolations", []):
        violations = []
        for v in group.get("violations", []):
            item = dict(v)
            if item.get("description"):
                item["description"] = plain_text(item["description"])
            violations.append(item)
        groups.append({"appName": group.get("appName", ""), "violations": violations})
    condensed = dict(snapshot)
    condensed["healthViolations"] = groups
    return condensed


def snapshot_counts(snapshot):
    return {
        "applications": len(snapshot.get("applications", [])),
        "appsWithViolations": len(snapshot.get("healthViolations", [])),
        "violations": sum(len(g.get("violations", [])) for g in snapshot.get("healthViolations", [])),
        "servers": len(snapshot.get("servers", [])),
        "databases": len(snapshot.get("databases", [])),
    }
