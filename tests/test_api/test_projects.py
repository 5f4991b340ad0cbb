import pytest
from httpx import AsyncClient


async def create_project(client: AsyncClient, headers, name="Bug Tracker", **fields):
    response = await client.post("/v1/projects/", json={"name": name, **fields}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def add_member(client: AsyncClient, headers, project_id, email, role="developer"):
    response = await client.post(
        f"/v1/projects/{project_id}/members",
        json={"email": email, "role": role},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestProjects:
    """Project CRUD and filters."""

    @pytest.mark.asyncio
    async def test_create_personal_project(self, client: AsyncClient, alice, fake_backend):
        """Personal projects have no organization and start in planning."""
        response = await client.post(
            "/v1/projects/",
            json={"name": "Side Project", "organization_id": "personal"},
            headers=alice,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["toast"]["title"] == "Project created!"
        project = body["data"]
        assert project["organization_id"] is None
        assert project["status"] == "planning"
        assert project["user_role"] == "owner"
        assert project["initial"] == "S"
        assert project["can_delete"] is True
        assert project["updated_label"].startswith("Updated ")

        [member] = fake_backend.rows("project_members")
        assert member["role"] == "owner"

    @pytest.mark.asyncio
    async def test_create_project_validation(self, client: AsyncClient, alice):
        response = await client.post("/v1/projects/", json={"name": "ab"}, headers=alice)
        assert response.status_code == 422
        assert response.json()["message"] == "Project name must be at least 3 characters"

        response = await client.post(
            "/v1/projects/", json={"name": "Archive", "status": "archived"}, headers=alice
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_in_organization_requires_manager(
        self, client: AsyncClient, alice, bob
    ):
        """Plain organization members cannot create projects in it."""
        org = (
            await client.post("/v1/organizations/", json={"name": "Acme Corp"}, headers=alice)
        ).json()["data"]
        await client.post(
            f"/v1/organizations/{org['id']}/members",
            json={"email": "bob@example.com", "role": "member"},
            headers=alice,
        )

        response = await client.post(
            "/v1/projects/",
            json={"name": "Rogue", "organization_id": org["id"]},
            headers=bob,
        )
        assert response.status_code == 403
        assert response.json()["toast"] == {
            "title": "Error creating project",
            "description": "You do not have permission to create projects in this organization",
            "variant": "destructive",
        }

        project = await create_project(client, alice, "Roadmap", organization_id=org["id"])
        response = await client.get(
            "/v1/projects/", params={"organization_id": org["id"]}, headers=alice
        )
        assert [p["id"] for p in response.json()["data"]] == [project["id"]]

    @pytest.mark.asyncio
    async def test_list_filters(self, client: AsyncClient, alice, bob):
        """Search, status and role filters apply to the loaded list."""
        response = await client.get("/v1/projects/", headers=bob)
        assert response.json()["empty_state"]["title"] == "No projects yet"

        await create_project(client, alice, "Website", status="active")
        await create_project(client, alice, "Mobile App", description="iOS and Android")
        shared = await create_project(client, bob, "Shared Backlog")
        await add_member(client, bob, shared["id"], "alice@example.com", role="viewer")

        response = await client.get("/v1/projects/", headers=alice)
        assert response.json()["total"] == 3

        response = await client.get("/v1/projects/", params={"status": "active"}, headers=alice)
        assert [p["name"] for p in response.json()["data"]] == ["Website"]

        response = await client.get("/v1/projects/", params={"role": "viewer"}, headers=alice)
        assert [p["name"] for p in response.json()["data"]] == ["Shared Backlog"]

        response = await client.get("/v1/projects/", params={"search": "android"}, headers=alice)
        assert [p["name"] for p in response.json()["data"]] == ["Mobile App"]

        response = await client.get(
            "/v1/projects/", params={"search": "android", "status": "active"}, headers=alice
        )
        body = response.json()
        assert body["data"] == []
        assert body["empty_state"]["title"] == "No projects found"

    @pytest.mark.asyncio
    async def test_update_project(self, client: AsyncClient, alice):
        project = await create_project(client, alice)
        response = await client.put(
            f"/v1/projects/{project['id']}",
            json={"status": "active", "description": "Now in progress"},
            headers=alice,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "active"
        assert data["description"] == "Now in progress"

    @pytest.mark.asyncio
    async def test_update_rejects_null_columns(self, client: AsyncClient, alice):
        """Explicit nulls on NOT NULL columns never reach the backend."""
        project = await create_project(client, alice)

        response = await client.put(
            f"/v1/projects/{project['id']}", json={"name": None}, headers=alice
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Project name is required"

        response = await client.put(
            f"/v1/projects/{project['id']}", json={"status": None}, headers=alice
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Status is required"

        response = await client.get("/v1/projects/", headers=alice)
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["data"]] == ["Bug Tracker"]

    @pytest.mark.asyncio
    async def test_move_between_organizations(self, client: AsyncClient, alice):
        """Projects move to another organization or back to personal."""
        acme = (
            await client.post("/v1/organizations/", json={"name": "Acme Corp"}, headers=alice)
        ).json()["data"]
        globex = (
            await client.post("/v1/organizations/", json={"name": "Globex"}, headers=alice)
        ).json()["data"]
        project = await create_project(client, alice, "Roadmap", organization_id=acme["id"])

        response = await client.put(
            f"/v1/projects/{project['id']}",
            json={"organization_id": globex["id"]},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["data"]["organization_id"] == globex["id"]

        response = await client.get(
            "/v1/projects/", params={"organization_id": globex["id"]}, headers=alice
        )
        assert [p["id"] for p in response.json()["data"]] == [project["id"]]
        response = await client.get(
            "/v1/projects/", params={"organization_id": acme["id"]}, headers=alice
        )
        assert response.json()["data"] == []

        response = await client.put(
            f"/v1/projects/{project['id']}",
            json={"organization_id": "personal"},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["data"]["organization_id"] is None

    @pytest.mark.asyncio
    async def test_move_requires_manager_in_target(self, client: AsyncClient, alice, bob):
        """Plain members of the target organization cannot move projects into it."""
        org = (
            await client.post("/v1/organizations/", json={"name": "Acme Corp"}, headers=alice)
        ).json()["data"]
        await client.post(
            f"/v1/organizations/{org['id']}/members",
            json={"email": "bob@example.com", "role": "member"},
            headers=alice,
        )
        project = await create_project(client, bob, "Side Project")

        response = await client.put(
            f"/v1/projects/{project['id']}",
            json={"organization_id": org["id"]},
            headers=bob,
        )
        assert response.status_code == 403
        assert response.json()["toast"]["title"] == "Error updating project"

        response = await client.get(f"/v1/projects/{project['id']}", headers=bob)
        assert response.json()["data"]["organization_id"] is None

    @pytest.mark.asyncio
    async def test_archive_project(self, client: AsyncClient, alice):
        project = await create_project(client, alice)

        response = await client.post(f"/v1/projects/{project['id']}/archive", headers=alice)
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["status"] == "archived"
        assert body["data"]["can_archive"] is False
        assert body["toast"]["description"] == "Bug Tracker has been archived."

        response = await client.post(f"/v1/projects/{project['id']}/archive", headers=alice)
        assert response.status_code == 422
        assert response.json()["toast"]["title"] == "Error archiving project"

    @pytest.mark.asyncio
    async def test_delete_project_owner_only(self, client: AsyncClient, alice, bob, fake_backend):
        project = await create_project(client, alice)
        await add_member(client, alice, project["id"], "bob@example.com", role="admin")
        await client.post(
            "/v1/tickets/",
            json={"project_id": project["id"], "title": "Crash on start"},
            headers=alice,
        )

        response = await client.delete(f"/v1/projects/{project['id']}", headers=bob)
        assert response.status_code == 403
        assert response.json()["message"] == "Only the project owner can delete the project"

        response = await client.delete(f"/v1/projects/{project['id']}", headers=alice)
        assert response.status_code == 200
        assert response.json()["toast"]["title"] == "Project deleted"
        assert fake_backend.rows("tickets") == []
        assert fake_backend.rows("project_members") == []

    @pytest.mark.asyncio
    async def test_project_of_other_user_is_missing(self, client: AsyncClient, alice, bob):
        project = await create_project(client, alice)
        response = await client.get(f"/v1/projects/{project['id']}", headers=bob)
        assert response.status_code == 404
        assert response.json()["toast"]["title"] == "Error loading project"


class TestProjectMembers:
    """Project membership."""

    @pytest.mark.asyncio
    async def test_project_details(self, client: AsyncClient, alice, bob):
        project = await create_project(client, alice)
        await add_member(client, alice, project["id"], "bob@example.com")

        response = await client.get(f"/v1/projects/{project['id']}/details", headers=bob)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["project"]["member_label"] == "2 members"
        assert data["project"]["user_role"] == "developer"
        assert [a["name"] for a in data["assignees"]] == ["Alice", "Bob"]
        assert data["can_create_tickets"] is True
        assert all(m["can_remove"] is False for m in data["members"])

    @pytest.mark.asyncio
    async def test_change_role_and_remove(self, client: AsyncClient, alice, bob):
        project = await create_project(client, alice)
        member = await add_member(client, alice, project["id"], "bob@example.com")

        response = await client.put(
            f"/v1/projects/{project['id']}/members/{member['id']}",
            json={"role": "viewer"},
            headers=alice,
        )
        assert response.json()["data"]["role"] == "viewer"

        response = await client.delete(
            f"/v1/projects/{project['id']}/members/{member['id']}", headers=alice
        )
        assert response.status_code == 200
        assert response.json()["toast"]["description"] == "Bob has been removed from the project."

    @pytest.mark.asyncio
    async def test_duplicate_member(self, client: AsyncClient, alice, bob):
        project = await create_project(client, alice)
        await add_member(client, alice, project["id"], "bob@example.com")
        response = await client.post(
            f"/v1/projects/{project['id']}/members",
            json={"email": "bob@example.com"},
            headers=alice,
        )
        assert response.status_code == 409
        assert response.json()["message"] == "User is already a member of this project"

    @pytest.mark.asyncio
    async def test_leave_project(self, client: AsyncClient, alice, bob):
        project = await create_project(client, alice)
        await add_member(client, alice, project["id"], "bob@example.com")

        response = await client.post(f"/v1/projects/{project['id']}/leave", headers=alice)
        assert response.status_code == 422
        assert response.json()["message"] == "Project owners cannot leave their own project"

        response = await client.post(f"/v1/projects/{project['id']}/leave", headers=bob)
        assert response.status_code == 200
        response = await client.get("/v1/projects/", headers=bob)
        assert response.json()["data"] == []
