import asyncio
from datetime import datetime, timezone

from starlette.requests import Request

import audit
from audit import AuditAction


def make_request(headers):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope)


def test_client_info_prefers_first_forwarded_hop():
    request = make_request({"X-Forwarded-For": "203.0.113.9, 10.0.0.1", "X-Real-IP": "10.0.0.2",
                            "User-Agent": "pytest"})
    assert audit.client_info(request) == {"ip_address": "203.0.113.9", "user_agent": "pytest"}


def test_client_info_fallbacks():
    assert audit.client_info(make_request({"X-Real-IP": "10.0.0.2"}))["ip_address"] == "10.0.0.2"
    assert audit.client_info(make_request({})) == {"ip_address": "unknown", "user_agent": "unknown"}


def test_log_action_records_request_details(audit_entries):
    request = make_request({"X-Real-IP": "10.0.0.2", "X-Request-ID": "req-1"})
    asyncio.run(audit.log_action(AuditAction.PRODUCT_CREATE, user_id="u1", user_email="a@example.com",
                                 resource_type="product", resource_id="p1", request=request))

    (entry,), _ = audit_entries.calls[0]
    assert entry["action"] == "PRODUCT_CREATE"
    assert entry["ip_address"] == "10.0.0.2"
    assert entry["request_id"] == "req-1"


def test_log_action_never_raises(fake_db):
    fake_db("insert_audit_entry", RuntimeError("database down"))
    asyncio.run(audit.log_action(AuditAction.LOGIN))


def test_system_actor_when_anonymous(audit_entries):
    asyncio.run(audit.log_action("SETTINGS_UPDATE"))
    (entry,), _ = audit_entries.calls[0]
    assert entry["user_id"] == "system"
    assert entry["user_email"] == "system"


def test_logs_to_csv_quotes_every_cell():
    logs = [{
        "created_at": datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        "user_email": "a@example.com",
        "action": "PRODUCT_UPDATE",
        "resource_type": "product",
        "resource_id": "p1",
        "resource_name": 'Mug "Classic"',
        "ip_address": "10.0.0.2",
        "details": {"changes": 1},
    }]
    lines = audit.logs_to_csv(logs).splitlines()
    assert lines[0] == "Timestamp,User Email,Action,Resource Type,Resource ID,Resource Name,IP Address,Details"
    assert lines[1].startswith('"2026-01-02T03:04:05+00:00","a@example.com","PRODUCT_UPDATE"')
    assert '"Mug ""Classic"""' in lines[1]
    assert lines[1].endswith('"{""changes"": 1}"')


def test_empty_export_is_empty_string():
    assert audit.logs_to_csv([]) == ""


def test_build_report_groups_and_sorts():
    logs = [
        {"user_id": "u1", "user_email": "a@x", "action": "LOGIN", "resource_type": "auth"},
        {"user_id": "u1", "user_email": "a@x", "action": "PRODUCT_CREATE", "resource_type": "product"},
        {"user_id": "u2", "user_email": "b@x", "action": "LOGIN", "resource_type": None},
    ]
    report = audit.build_report(logs, "2026-01-01", "2026-01-31")
    assert report["summary"] == {
        "total_actions": 3,
        "unique_users": 2,
        "date_range": {"start": "2026-01-01", "end": "2026-01-31"},
    }
    assert report["breakdown"][0] == {"action": "LOGIN", "count": 2}

    by_type = audit.build_report(logs, "s", "e", group_by="resource_type")["breakdown"]
    assert {"resource_type": "N/A", "count": 1} in by_type


def test_retention_uses_cutoff(fake_db):
    delete = fake_db("delete_audit_logs_before", 4)
    assert asyncio.run(audit.apply_retention_policy(30)) == 4
    (cutoff,), _ = delete.calls[0]
    assert (datetime.now(timezone.utc) - cutoff).days == 30
