"""Notification bell: list, mark read, mark all read.

Learn: A notification belongs to exactly one user. Nobody else can list
it or mark it read; trying to reads as "not found".
"""

import pytest

from issuetracker.db.models import Notification

from conftest import auth_headers


@pytest.mark.asyncio
async def test_list_and_mark_read(client, db_session, alice, bob):
    for i in range(3):
        db_session.add(Notification(user_id=bob.id, type="ISSUE_ASSIGNED", title=f"n{i}"))
    db_session.add(Notification(user_id=alice.id, type="ISSUE_ASSIGNED", title="alice's"))
    await db_session.commit()

    r = await client.get("/api/v1/notifications", headers=auth_headers(bob))
    rows = r.json()
    assert sorted(n["title"] for n in rows) == ["n0", "n1", "n2"]
    assert all(n["read"] is False for n in rows)

    r = await client.post(f"/api/v1/notifications/{rows[0]['id']}/read", headers=auth_headers(bob))
    assert r.status_code == 200

    r = await client.get(
        "/api/v1/notifications", params={"unread_only": True}, headers=auth_headers(bob)
    )
    assert len(r.json()) == 2

    r = await client.post("/api/v1/notifications/read-all", headers=auth_headers(bob))
    assert r.json()["updated"] == 2

    r = await client.get(
        "/api/v1/notifications", params={"unread_only": True}, headers=auth_headers(bob)
    )
    assert r.json() == []


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_notification(client, db_session, alice, bob):
    notification = Notification(user_id=alice.id, type="ISSUE_ASSIGNED", title="private")
    db_session.add(notification)
    await db_session.commit()

    r = await client.post(
        f"/api/v1/notifications/{notification.id}/read", headers=auth_headers(bob)
    )
    assert r.status_code == 404

    await db_session.refresh(notification)
    assert notification.read is False


@pytest.mark.asyncio
async def test_limit_is_capped(client, bob):
    r = await client.get(
        "/api/v1/notifications", params={"limit": 500}, headers=auth_headers(bob)
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_notification_requires_auth(client):
    r = await client.get("/api/v1/notifications")
    assert r.status_code == 401
