import uuid

import pytest
from httpx import AsyncClient


async def create_organization(client: AsyncClient, headers, name="Acme Corp", description=None):
    payload = {"name": name}
    if description is not None:
        payload["description"] = description
    response = await client.post("/v1/organizations/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def invite(client: AsyncClient, headers, org_id, email, role="member"):
    return await client.post(
        f"/v1/organizations/{org_id}/members",
        json={"email": email, "role": role},
        headers=headers,
    )


class TestOrganizations:
    """Organization CRUD."""

    @pytest.mark.asyncio
    async def test_create_organization(self, client: AsyncClient, alice, fake_backend):
        """The creator becomes the owner of the new organization."""
        response = await client.post(
            "/v1/organizations/",
            json={"name": "Acme Corp", "description": "Road runner traps"},
            headers=alice,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["toast"] == {
            "title": "Organization created!",
            "description": "Your new organization has been created successfully.",
            "variant": "default",
        }
        org = body["data"]
        assert org["user_role"] == "owner"
        assert org["member_count"] == 1
        assert org["member_label"] == "1 member"
        assert org["can_manage"] is True
        assert org["can_delete"] is True

        [member] = fake_backend.rows("organization_members")
        assert member["role"] == "owner"
        assert member["invited_by"] == member["user_id"]

    @pytest.mark.asyncio
    async def test_create_organization_validation(self, client: AsyncClient, alice):
        """Short names are rejected with a readable message."""
        response = await client.post(
            "/v1/organizations/", json={"name": "ab"}, headers=alice
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Organization name must be at least 3 characters"

        response = await client.post(
            "/v1/organizations/",
            json={"name": "Acme", "description": "x" * 501},
            headers=alice,
        )
        assert response.json()["message"] == "Description must be less than 500 characters"

    @pytest.mark.asyncio
    async def test_list_organizations_with_search(self, client: AsyncClient, alice):
        """Search filters the loaded list by name or description."""
        response = await client.get("/v1/organizations/", headers=alice)
        body = response.json()
        assert body["data"] == []
        assert body["empty_state"]["title"] == "No organizations yet"

        await create_organization(client, alice, "Acme Corp")
        await create_organization(client, alice, "Globex", "Acme's competitor")
        await create_organization(client, alice, "Initech")

        response = await client.get("/v1/organizations/", headers=alice)
        names = [org["name"] for org in response.json()["data"]]
        assert names == ["Initech", "Globex", "Acme Corp"]

        response = await client.get(
            "/v1/organizations/", params={"search": "ACME"}, headers=alice
        )
        body = response.json()
        assert body["total"] == 3
        assert body["filtered"] == 2
        assert {org["name"] for org in body["data"]} == {"Acme Corp", "Globex"}
        assert body["empty_state"] is None

        response = await client.get(
            "/v1/organizations/", params={"search": "umbrella"}, headers=alice
        )
        assert response.json()["empty_state"]["title"] == "No organizations found"

    @pytest.mark.asyncio
    async def test_get_organization_of_other_user(self, client: AsyncClient, alice, bob):
        """Organizations the caller is not part of are reported as missing."""
        org = await create_organization(client, alice)

        response = await client.get(f"/v1/organizations/{org['id']}", headers=bob)
        assert response.status_code == 404
        assert response.json()["toast"] == {
            "title": "Organization not found",
            "description": "The organization you are looking for does not exist.",
            "variant": "destructive",
        }

    @pytest.mark.asyncio
    async def test_update_organization(self, client: AsyncClient, alice):
        org = await create_organization(client, alice)
        response = await client.put(
            f"/v1/organizations/{org['id']}",
            json={"name": "Acme Corporation"},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Acme Corporation"
        assert response.json()["data"]["description"] == ""

    @pytest.mark.asyncio
    async def test_update_rejects_null_name(self, client: AsyncClient, alice):
        org = await create_organization(client, alice)
        response = await client.put(
            f"/v1/organizations/{org['id']}", json={"name": None}, headers=alice
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Organization name is required"

        response = await client.get("/v1/organizations/", headers=alice)
        assert response.status_code == 200
        assert [o["name"] for o in response.json()["data"]] == ["Acme Corp"]

    @pytest.mark.asyncio
    async def test_member_cannot_update(self, client: AsyncClient, alice, bob):
        """Plain members cannot edit the organization."""
        org = await create_organization(client, alice)
        await invite(client, alice, org["id"], "bob@example.com")

        response = await client.put(
            f"/v1/organizations/{org['id']}", json={"name": "Hijacked"}, headers=bob
        )
        assert response.status_code == 403
        assert response.json()["toast"]["title"] == "Error updating organization"

    @pytest.mark.asyncio
    async def test_delete_organization(self, client: AsyncClient, alice, bob, fake_backend):
        """Only the owner deletes; projects and members go with it."""
        org = await create_organization(client, alice)
        await invite(client, alice, org["id"], "bob@example.com", role="admin")
        await client.post(
            "/v1/projects/",
            json={"name": "Tracker", "organization_id": org["id"]},
            headers=alice,
        )

        response = await client.delete(f"/v1/organizations/{org['id']}", headers=bob)
        assert response.status_code == 403

        response = await client.delete(f"/v1/organizations/{org['id']}", headers=alice)
        assert response.status_code == 200
        assert response.json()["toast"]["title"] == "Organization deleted"
        assert response.json()["toast"]["description"] == "Acme Corp has been deleted."
        assert fake_backend.rows("organizations") == []
        assert fake_backend.rows("organization_members") == []
        assert fake_backend.rows("projects") == []


class TestOrganizationMembers:
    """Inviting, promoting and removing members."""

    @pytest.mark.asyncio
    async def test_invite_member(self, client: AsyncClient, alice, bob):
        org = await create_organization(client, alice)

        response = await invite(client, alice, org["id"], "bob@example.com")
        assert response.status_code == 201
        body = response.json()
        assert body["toast"]["title"] == "Member invited!"
        assert body["toast"]["description"] == "bob@example.com has been invited to the organization."
        assert body["data"]["name"] == "Bob"
        assert body["data"]["role"] == "member"

        response = await client.get(f"/v1/organizations/{org['id']}/members", headers=alice)
        members = response.json()["data"]
        assert [m["name"] for m in members] == ["Alice", "Bob"]
        assert members[0]["can_remove"] is False
        assert members[1]["can_remove"] is True
        assert members[1]["next_role"] == "admin"

        response = await client.get(f"/v1/organizations/{org['id']}", headers=alice)
        assert response.json()["data"]["member_label"] == "2 members"

    @pytest.mark.asyncio
    async def test_invite_unknown_user(self, client: AsyncClient, alice):
        org = await create_organization(client, alice)
        response = await invite(client, alice, org["id"], "nobody@example.com")
        assert response.status_code == 422
        assert response.json()["toast"] == {
            "title": "Error inviting member",
            "description": "User with this email does not exist",
            "variant": "destructive",
        }

    @pytest.mark.asyncio
    async def test_invite_existing_member(self, client: AsyncClient, alice, bob):
        org = await create_organization(client, alice)
        await invite(client, alice, org["id"], "bob@example.com")
        response = await invite(client, alice, org["id"], "bob@example.com")
        assert response.status_code == 409
        assert response.json()["message"] == "User is already a member of this organization"

    @pytest.mark.asyncio
    async def test_invite_as_owner_rejected(self, client: AsyncClient, alice, bob):
        org = await create_organization(client, alice)
        response = await invite(client, alice, org["id"], "bob@example.com", role="owner")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_member_cannot_invite(self, client: AsyncClient, alice, bob, sign_in):
        org = await create_organization(client, alice)
        await invite(client, alice, org["id"], "bob@example.com")
        await sign_in("carol@example.com", "Carol")

        response = await invite(client, bob, org["id"], "carol@example.com")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_toggle_role_and_remove(self, client: AsyncClient, alice, bob):
        org = await create_organization(client, alice)
        member = (await invite(client, alice, org["id"], "bob@example.com")).json()["data"]

        response = await client.put(
            f"/v1/organizations/{org['id']}/members/{member['id']}",
            json={"role": "admin"},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["data"]["role"] == "admin"
        assert response.json()["data"]["next_role"] == "member"
        assert response.json()["toast"]["title"] == "Role updated"

        response = await client.delete(
            f"/v1/organizations/{org['id']}/members/{member['id']}", headers=alice
        )
        assert response.status_code == 200
        assert response.json()["toast"]["description"] == "Bob has been removed from the organization."

        response = await client.get(f"/v1/organizations/{org['id']}", headers=bob)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_owner_row_is_protected(self, client: AsyncClient, alice, bob):
        org = await create_organization(client, alice)
        await invite(client, alice, org["id"], "bob@example.com", role="admin")
        members = (
            await client.get(f"/v1/organizations/{org['id']}/members", headers=alice)
        ).json()["data"]
        owner = next(m for m in members if m["role"] == "owner")

        response = await client.put(
            f"/v1/organizations/{org['id']}/members/{owner['id']}",
            json={"role": "member"},
            headers=bob,
        )
        assert response.status_code == 403
        assert response.json()["message"] == "The owner's role cannot be changed"

        response = await client.delete(
            f"/v1/organizations/{org['id']}/members/{owner['id']}", headers=bob
        )
        assert response.status_code == 403
        assert response.json()["toast"]["title"] == "Error removing member"

    @pytest.mark.asyncio
    async def test_unknown_member(self, client: AsyncClient, alice):
        org = await create_organization(client, alice)
        response = await client.delete(
            f"/v1/organizations/{org['id']}/members/{uuid.uuid4()}", headers=alice
        )
        assert response.status_code == 404


class TestUserPermissions:
    """Explicit permission rows."""

    @pytest.mark.asyncio
    async def test_own_permissions(self, client: AsyncClient, alice, fake_backend):
        org = await create_organization(client, alice)
        owner = fake_backend.rows("organization_members")[0]
        fake_backend.add_row(
            "user_permissions",
            user_id=owner["user_id"],
            organization_id=org["id"],
            permission="manage_billing",
            granted_by=owner["user_id"],
        )

        response = await client.get(f"/v1/organizations/{org['id']}/permissions", headers=alice)
        assert response.status_code == 200
        assert [p["permission"] for p in response.json()["data"]] == ["manage_billing"]

    @pytest.mark.asyncio
    async def test_member_cannot_inspect_others(self, client: AsyncClient, alice, bob, fake_backend):
        org = await create_organization(client, alice)
        await invite(client, alice, org["id"], "bob@example.com")
        owner_id = fake_backend.rows("organization_members")[0]["user_id"]

        response = await client.get(
            f"/v1/organizations/{org['id']}/permissions",
            params={"user_id": owner_id},
            headers=bob,
        )
        assert response.status_code == 403

        response = await client.get(f"/v1/organizations/{org['id']}/permissions", headers=bob)
        assert response.status_code == 200
        assert response.json()["data"] == []
