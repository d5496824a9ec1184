"""Issues, comments and labels over HTTP.

Learn: Tests cover:
1. Role gates (VIEWER reads and comments, MEMBER writes, OWNER deletes)
2. PATCH semantics: absent fields untouched, explicit null clears
3. Activity trail for label and assignee changes
4. Comment edit/delete permissions
5. Label catalogue uniqueness
"""

import pytest
import pytest_asyncio
from sqlalchemy import select

from issuetracker.db.models import Activity

from conftest import auth_headers


@pytest_asyncio.fixture()
async def project(make_project, alice, bob, carol):
    return await make_project(alice, members={bob: "MEMBER", carol: "VIEWER"})


async def _label(client, user, name: str) -> str:
    r = await client.post("/api/v1/labels", json={"name": name}, headers=auth_headers(user))
    assert r.status_code == 201
    return r.json()["id"]


# ═══════════════════════════════════════════════════════════
# Issues
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_issue_with_labels(client, db_session, project, bob):
    bug = await _label(client, bob, "bug")
    r = await client.post(
        "/api/v1/issues",
        json={
            "project_id": str(project.id),
            "title": "Broken link",
            "priority": "HIGH",
            "label_ids": [bug],
        },
        headers=auth_headers(bob),
    )
    assert r.status_code == 201
    issue = r.json()
    assert issue["status"] == "OPEN"
    assert issue["author_id"] == str(bob.id)
    assert [label["name"] for label in issue["labels"]] == ["bug"]
    assert issue["comment_count"] == 0

    types = (await db_session.scalars(select(Activity.type))).all()
    assert sorted(types) == ["ISSUE_CREATED", "ISSUE_LABEL_ADDED"]


@pytest.mark.asyncio
async def test_viewer_cannot_create_issue(client, project, carol):
    r = await client.post(
        "/api/v1/issues",
        json={"project_id": str(project.id), "title": "Nope"},
        headers=auth_headers(carol),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_invalid_status_is_422(client, project, bob):
    r = await client.post(
        "/api/v1/issues",
        json={"project_id": str(project.id), "title": "Bad", "status": "DONE"},
        headers=auth_headers(bob),
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_list_issues_is_scoped_and_filtered(
    client, alice, bob, make_user, make_project, make_issue, project
):
    dave = await make_user("dave")
    other = await make_project(dave, name="Secret")
    await make_issue(other, author=dave, title="Hidden")
    await make_issue(project, author=alice, title="Crash on login", priority="URGENT")
    await make_issue(project, author=bob, title="Typo in footer", priority="LOW")

    r = await client.get("/api/v1/issues", headers=auth_headers(bob))
    assert sorted(i["title"] for i in r.json()) == ["Crash on login", "Typo in footer"]

    r = await client.get("/api/v1/issues", params={"q": "crash"}, headers=auth_headers(bob))
    assert [i["title"] for i in r.json()] == ["Crash on login"]

    r = await client.get("/api/v1/issues", params={"priority": "LOW"}, headers=auth_headers(bob))
    assert [i["title"] for i in r.json()] == ["Typo in footer"]

    r = await client.get(
        "/api/v1/issues", params={"project_id": str(other.id)}, headers=auth_headers(bob)
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_patch_leaves_absent_fields_and_clears_null(
    client, project, alice, bob, make_issue
):
    issue = await make_issue(project, author=alice, assignee=bob, description="Steps...")

    r = await client.patch(
        f"/api/v1/issues/{issue.id}", json={"priority": "HIGH"}, headers=auth_headers(bob)
    )
    data = r.json()
    assert data["priority"] == "HIGH"
    assert data["description"] == "Steps..."
    assert data["assignee_id"] == str(bob.id)

    r = await client.patch(
        f"/api/v1/issues/{issue.id}",
        json={"assignee_id": None, "description": None},
        headers=auth_headers(bob),
    )
    data = r.json()
    assert data["assignee_id"] is None
    assert data["description"] is None

    r = await client.get(f"/api/v1/issues/{issue.id}/activities", headers=auth_headers(alice))
    types = [a["type"] for a in r.json()]
    assert "ISSUE_ASSIGNEE_CHANGED" in types
    assert "ISSUE_UPDATED" in types


@pytest.mark.asyncio
async def test_relabel_records_added_and_removed(client, project, alice, make_issue):
    issue = await make_issue(project, author=alice)
    bug = await _label(client, alice, "bug")
    ui = await _label(client, alice, "ui")

    await client.patch(
        f"/api/v1/issues/{issue.id}", json={"label_ids": [bug]}, headers=auth_headers(alice)
    )
    r = await client.patch(
        f"/api/v1/issues/{issue.id}", json={"label_ids": [ui]}, headers=auth_headers(alice)
    )
    assert [label["name"] for label in r.json()["labels"]] == ["ui"]

    r = await client.get(f"/api/v1/issues/{issue.id}/activities", headers=auth_headers(alice))
    labels = [(a["type"], a["metadata"]["label_name"]) for a in r.json()]
    assert sorted(labels) == [
        ("ISSUE_LABEL_ADDED", "bug"),
        ("ISSUE_LABEL_ADDED", "ui"),
        ("ISSUE_LABEL_REMOVED", "bug"),
    ]


@pytest.mark.asyncio
async def test_only_owner_deletes_issue(client, project, alice, bob, make_issue):
    issue = await make_issue(project, author=bob)

    r = await client.delete(f"/api/v1/issues/{issue.id}", headers=auth_headers(bob))
    assert r.status_code == 403

    r = await client.delete(f"/api/v1/issues/{issue.id}", headers=auth_headers(alice))
    assert r.status_code == 204
    r = await client.get(f"/api/v1/issues/{issue.id}", headers=auth_headers(alice))
    assert r.status_code == 404

    r = await client.get(f"/api/v1/projects/{project.id}/activities", headers=auth_headers(alice))
    assert r.json()[0]["type"] == "ISSUE_DELETED"


# ═══════════════════════════════════════════════════════════
# Comments
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_viewer_can_comment(client, project, alice, carol, make_issue):
    issue = await make_issue(project, author=alice)
    r = await client.post(
        "/api/v1/comments",
        json={"issue_id": str(issue.id), "content": "  Same here  "},
        headers=auth_headers(carol),
    )
    assert r.status_code == 201
    assert r.json()["content"] == "Same here"

    r = await client.get(
        "/api/v1/comments", params={"issue_id": str(issue.id)}, headers=auth_headers(alice)
    )
    assert [c["content"] for c in r.json()] == ["Same here"]

    r = await client.get(f"/api/v1/issues/{issue.id}", headers=auth_headers(alice))
    assert r.json()["comment_count"] == 1


@pytest.mark.asyncio
async def test_comment_edit_and_delete_permissions(client, project, alice, bob, carol, make_issue):
    issue = await make_issue(project, author=alice)
    r = await client.post(
        "/api/v1/comments",
        json={"issue_id": str(issue.id), "content": "First"},
        headers=auth_headers(carol),
    )
    comment_id = r.json()["id"]

    r = await client.patch(
        f"/api/v1/comments/{comment_id}", json={"content": "Hijack"}, headers=auth_headers(bob)
    )
    assert r.status_code == 403

    r = await client.patch(
        f"/api/v1/comments/{comment_id}", json={"content": "Edited"}, headers=auth_headers(carol)
    )
    assert r.status_code == 200
    assert r.json()["content"] == "Edited"

    # Project owner may delete anyone's comment
    r = await client.delete(f"/api/v1/comments/{comment_id}", headers=auth_headers(alice))
    assert r.status_code == 204

    r = await client.get(f"/api/v1/issues/{issue.id}/activities", headers=auth_headers(alice))
    assert r.json()[0]["type"] == "COMMENT_DELETED"


@pytest.mark.asyncio
async def test_outsider_cannot_comment(client, project, alice, make_user, make_issue):
    dave = await make_user("dave")
    issue = await make_issue(project, author=alice)
    r = await client.post(
        "/api/v1/comments",
        json={"issue_id": str(issue.id), "content": "Hi"},
        headers=auth_headers(dave),
    )
    assert r.status_code == 403


# ═══════════════════════════════════════════════════════════
# Labels
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_label_catalogue(client, alice):
    bug = await _label(client, alice, "bug")

    r = await client.post("/api/v1/labels", json={"name": "bug"}, headers=auth_headers(alice))
    assert r.status_code == 409

    r = await client.patch(
        f"/api/v1/labels/{bug}", json={"color": "#ff0000"}, headers=auth_headers(alice)
    )
    assert r.json()["color"] == "#ff0000"

    r = await client.delete(f"/api/v1/labels/{bug}", headers=auth_headers(alice))
    assert r.status_code == 204
    r = await client.get("/api/v1/labels", headers=auth_headers(alice))
    assert r.json() == []
