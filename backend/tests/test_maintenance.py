import asyncio

import pytest

import auth
import create_admin
from maintenance import MaintenanceScheduler


def test_cleanup_jobs_report_counts(fake_db):
    fake_db("expire_stale_sessions", 4)
    fake_db("delete_expired_reset_tokens", 2)
    fake_db("delete_expired_mockup_sessions", 0)
    purge = fake_db("delete_audit_logs_before", 9)

    jobs = MaintenanceScheduler(audit_retention_days=30)
    assert asyncio.run(jobs.cleanup_sessions()) == 4
    assert asyncio.run(jobs.cleanup_reset_tokens()) == 2
    assert asyncio.run(jobs.cleanup_mockup_sessions()) == 0
    assert asyncio.run(jobs.apply_audit_retention()) == 9
    assert len(purge.calls) == 1


def test_cleanup_failures_are_contained(fake_db):
    fake_db("expire_stale_sessions", ConnectionError("down"))
    fake_db("delete_audit_logs_before", ConnectionError("down"))
    jobs = MaintenanceScheduler()
    assert asyncio.run(jobs.cleanup_sessions()) == 0
    assert asyncio.run(jobs.apply_audit_retention()) == 0


def test_create_admin_rejects_weak_password():
    with pytest.raises(SystemExit) as exc:
        create_admin.main(["admin@example.com", "password"])
    assert exc.value.code == 1


def test_create_admin_seeds_user(fake_db, capsys):
    fake_db("init_db")
    closed = fake_db("close_pool")
    create = fake_db("create_admin_user", lambda email, password_hash, role: {
        "id": "u1", "email": email, "role": role,
    })

    create_admin.main([" Admin@Example.com ", "S3cure!Passw0rd", "--role", "super_admin"])

    email, password_hash, role = create.calls[0][0]
    assert email == "admin@example.com"
    assert role == "super_admin"
    assert auth.verify_password("S3cure!Passw0rd", password_hash)
    assert len(closed.calls) == 1
    assert "admin@example.com (super_admin)" in capsys.readouterr().out
