import asyncio
from datetime import datetime, timedelta, timezone

import sessions


def test_summarize_sessions():
    now = datetime.now(timezone.utc)
    rows = [
        {"is_active": True, "created_at": now - timedelta(minutes=30), "last_activity": now},
        {
            "is_active": False,
            "created_at": now - timedelta(minutes=90),
            "last_activity": now - timedelta(minutes=80),
            "updated_at": now - timedelta(minutes=60),
        },
    ]
    stats = sessions.summarize_sessions(rows)
    assert stats == {
        "totalSessions": 2,
        "activeSessions": 1,
        "expiredSessions": 1,
        "averageSessionDuration": 30.0,
    }


def test_summarize_no_sessions():
    assert sessions.summarize_sessions([])["averageSessionDuration"] == 0


def test_session_limit_deactivates_oldest(fake_db):
    fake_db("count_active_sessions", 5)
    evict = fake_db("deactivate_oldest_session", "old-session")
    insert = fake_db("insert_admin_session", {"session_id": "new"})

    asyncio.run(sessions.create_managed_session("u1", "new", ip_address="1.2.3.4"))

    assert len(evict.calls) == 1
    _, kwargs = insert.calls[0]
    assert kwargs["session_id"] == "new"
    assert kwargs["expires_at"] - kwargs["idle_expires_at"] > timedelta(hours=11)


def test_remember_me_session_lasts_thirty_days(fake_db):
    fake_db("count_active_sessions", 0)
    insert = fake_db("insert_admin_session", {})

    asyncio.run(sessions.create_managed_session("u1", "s1", remember_me=True))

    expires_at = insert.calls[0][1]["expires_at"]
    assert expires_at - datetime.now(timezone.utc) > timedelta(days=29)


def test_expired_session_is_deactivated(fake_db):
    now = datetime.now(timezone.utc)
    fake_db("get_admin_session", {
        "session_id": "s1",
        "is_active": True,
        "created_at": now - timedelta(hours=2),
        "last_activity": now - timedelta(hours=1),
        "expires_at": now + timedelta(hours=10),
    })
    deactivate = fake_db("deactivate_session", True)

    result = asyncio.run(sessions.validate_and_refresh_session("s1"))

    assert not result.is_valid
    assert result.reason == "idle_timeout"
    assert deactivate.calls[0][0] == ("s1",)


def test_active_session_activity_is_bumped(fake_db):
    now = datetime.now(timezone.utc)
    fake_db("get_admin_session", {
        "session_id": "s1",
        "is_active": True,
        "created_at": now - timedelta(minutes=10),
        "last_activity": now - timedelta(minutes=5),
        "expires_at": now + timedelta(hours=10),
    })
    touch = fake_db("touch_session")

    result = asyncio.run(sessions.validate_and_refresh_session("s1"))

    assert result.is_valid
    assert len(touch.calls) == 1
