"""Projects and membership, including the membership live events.

Learn: Membership changes go straight to the affected user (not the whole
project): added → `project_member_added`, role change →
`project_member_role_changed`, removal → `project_member_removed`.
"""

import pytest

from issuetracker.realtime.registry import LiveSink

from conftest import auth_headers, read_events


# ═══════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_and_list_projects(client, alice, bob):
    r = await client.post(
        "/api/v1/projects",
        json={"name": "  Apollo  ", "description": "Moonshot"},
        headers=auth_headers(alice),
    )
    assert r.status_code == 201
    project = r.json()
    assert project["name"] == "Apollo"
    assert project["owner_id"] == str(alice.id)

    r = await client.get("/api/v1/projects", headers=auth_headers(alice))
    assert [p["id"] for p in r.json()] == [project["id"]]

    r = await client.get("/api/v1/projects", headers=auth_headers(bob))
    assert r.json() == []


@pytest.mark.asyncio
async def test_outsider_cannot_read_project(client, alice, bob, make_project):
    project = await make_project(alice)
    r = await client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(bob))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_project_read_carries_callers_role(client, alice, bob, carol, make_project):
    project = await make_project(alice, members={bob: "MEMBER", carol: "VIEWER"})

    roles = {}
    for user in (alice, bob, carol):
        r = await client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(user))
        assert r.status_code == 200
        assert r.json()["id"] == str(project.id)
        roles[user.username] = r.json()["user_role"]

    assert roles == {"alice": "OWNER", "bob": "MEMBER", "carol": "VIEWER"}


@pytest.mark.asyncio
async def test_update_project_records_diff(client, alice, make_project):
    project = await make_project(alice)
    r = await client.patch(
        f"/api/v1/projects/{project.id}",
        json={"name": "Artemis"},
        headers=auth_headers(alice),
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Artemis"

    r = await client.get(f"/api/v1/projects/{project.id}/activities", headers=auth_headers(alice))
    activity = r.json()[0]
    assert activity["type"] == "PROJECT_UPDATED"
    assert activity["metadata"] == {"name": {"from": "Apollo", "to": "Artemis"}}


@pytest.mark.asyncio
async def test_only_owner_updates_or_deletes(client, alice, bob, make_project):
    project = await make_project(alice, members={bob: "MEMBER"})
    r = await client.patch(
        f"/api/v1/projects/{project.id}", json={"name": "Mine"}, headers=auth_headers(bob)
    )
    assert r.status_code == 404
    r = await client.delete(f"/api/v1/projects/{project.id}", headers=auth_headers(bob))
    assert r.status_code == 404

    r = await client.delete(f"/api/v1/projects/{project.id}", headers=auth_headers(alice))
    assert r.status_code == 204
    r = await client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(alice))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_statistics(client, alice, bob, make_project, make_issue):
    project = await make_project(alice, members={bob: "MEMBER"})
    await make_issue(project, author=alice, assignee=bob, title="One")
    await make_issue(project, author=alice, assignee=bob, title="Two", status="CLOSED")
    await make_issue(project, author=bob, title="Three", priority="HIGH")

    r = await client.get(f"/api/v1/projects/{project.id}/statistics", headers=auth_headers(bob))
    assert r.status_code == 200
    stats = r.json()
    assert stats["total"] == 3
    assert stats["by_status"] == {"OPEN": 2, "CLOSED": 1}
    assert stats["by_priority"] == {"MEDIUM": 2, "HIGH": 1}
    assert stats["my_issues"] == 1
    assert len(stats["recent_issues"]) == 3


# ═══════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_member_notifies_and_pushes(client, registry, alice, bob, make_project):
    project = await make_project(alice)
    sink = LiveSink()
    registry.register(bob.id, sink)

    r = await client.post(
        f"/api/v1/projects/{project.id}/members",
        json={"user_id": str(bob.id)},
        headers=auth_headers(alice),
    )
    assert r.status_code == 201
    assert r.json()["role"] == "VIEWER"

    events = read_events(sink)
    assert [e["type"] for e in events] == ["notification", "project_member_added"]
    assert events[0]["payload"]["type"] == "PROJECT_MEMBER_ADDED"
    assert events[1]["payload"] == {"project_id": str(project.id), "role": "VIEWER"}

    r = await client.get(f"/api/v1/projects/{project.id}/members", headers=auth_headers(bob))
    members = r.json()
    assert [(m["user"]["username"], m["role"]) for m in members] == [
        ("alice", "OWNER"),
        ("bob", "VIEWER"),
    ]
    assert members[0]["id"] is None


@pytest.mark.asyncio
async def test_add_member_rejects_owner_and_duplicates(client, alice, bob, make_project):
    project = await make_project(alice, members={bob: "MEMBER"})
    r = await client.post(
        f"/api/v1/projects/{project.id}/members",
        json={"user_id": str(alice.id)},
        headers=auth_headers(alice),
    )
    assert r.status_code == 400
    r = await client.post(
        f"/api/v1/projects/{project.id}/members",
        json={"user_id": str(bob.id)},
        headers=auth_headers(alice),
    )
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_role_change_pushes_only_when_changed(client, registry, alice, bob, make_project):
    project = await make_project(alice, members={bob: "VIEWER"})
    r = await client.get(f"/api/v1/projects/{project.id}/members", headers=auth_headers(alice))
    member_id = r.json()[1]["id"]
    sink = LiveSink()
    registry.register(bob.id, sink)

    r = await client.patch(
        f"/api/v1/projects/{project.id}/members/{member_id}",
        json={"role": "MEMBER"},
        headers=auth_headers(alice),
    )
    assert r.status_code == 200
    events = read_events(sink)
    assert [e["type"] for e in events] == ["notification", "project_member_role_changed"]
    assert events[1]["payload"] == {"project_id": str(project.id), "from": "VIEWER", "to": "MEMBER"}

    r = await client.patch(
        f"/api/v1/projects/{project.id}/members/{member_id}",
        json={"role": "MEMBER"},
        headers=auth_headers(alice),
    )
    assert r.status_code == 200
    assert read_events(sink) == []


@pytest.mark.asyncio
async def test_removed_member_is_told_and_loses_access(client, registry, alice, bob, make_project):
    project = await make_project(alice, members={bob: "MEMBER"})
    r = await client.get(f"/api/v1/projects/{project.id}/members", headers=auth_headers(alice))
    member_id = r.json()[1]["id"]
    sink = LiveSink()
    registry.register(bob.id, sink)

    r = await client.delete(
        f"/api/v1/projects/{project.id}/members/{member_id}", headers=auth_headers(alice)
    )
    assert r.status_code == 204
    assert read_events(sink) == [
        {"type": "project_member_removed", "payload": {"project_id": str(project.id)}}
    ]

    r = await client.get(f"/api/v1/projects/{project.id}", headers=auth_headers(bob))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_removed_member_stops_hearing_broadcasts(
    client, registry, alice, bob, make_project, make_issue
):
    """The audience is computed at emission time, never cached."""
    project = await make_project(alice, members={bob: "MEMBER"})
    issue = await make_issue(project, author=alice)
    r = await client.get(f"/api/v1/projects/{project.id}/members", headers=auth_headers(alice))
    member_id = r.json()[1]["id"]
    await client.delete(
        f"/api/v1/projects/{project.id}/members/{member_id}", headers=auth_headers(alice)
    )
    sink = LiveSink()
    registry.register(bob.id, sink)

    await client.patch(
        f"/api/v1/issues/{issue.id}", json={"title": "Quiet"}, headers=auth_headers(alice)
    )
    assert read_events(sink) == []
