"""
API tests for authentication, users and roles.
"""
from app.features.permissions.models import Permission
from app.features.roles.models import Role
from tests.conftest import TEST_PASSWORD, auth


class TestLogin:

    async def test_login_returns_usable_token(self, client, make_user):
        user = await make_user("alice", [Permission.VIEW_ALL_CLIENTS])

        response = await client.post("/users/login", json={"login": "alice", "password": TEST_PASSWORD})
        token = response.json()["access_token"]
        me = await client.get("/users/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert me.json()["id"] == user.id
        assert me.json()["permissions"] == ["VIEW_ALL_CLIENTS"]

    async def test_wrong_password_is_401(self, client, make_user):
        await make_user("alice")

        response = await client.post("/users/login", json={"login": "alice", "password": "nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid login or password"}

    async def test_missing_token_is_401(self, client):
        response = await client.get("/users/me")

        assert response.status_code == 401

    async def test_garbage_token_is_401(self, client):
        response = await client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401


class TestUsers:

    async def test_admin_creates_user_with_permissions(self, client, admin):
        response = await client.post(
            "/users",
            json={
                "login": "bob",
                "name": "Bob",
                "password": "pw",
                "permissions": ["SUGGEST_EDITS", "SUGGEST_EDITS", "CREATE_CLIENT"],
            },
            headers=auth(admin),
        )

        assert response.status_code == 201
        assert response.json()["permissions"] == ["SUGGEST_EDITS", "CREATE_CLIENT"]

    async def test_only_admin_grants_permissions(self, client, make_user):
        creator = await make_user("hr", [Permission.CREATE_USER])

        granting = await client.post(
            "/users",
            json={"login": "bob", "name": "Bob", "password": "pw", "permissions": ["ADMIN"]},
            headers=auth(creator),
        )
        plain = await client.post(
            "/users", json={"login": "bob", "name": "Bob", "password": "pw"}, headers=auth(creator)
        )

        assert granting.status_code == 403
        assert plain.status_code == 201

    async def test_new_user_gets_default_role_permissions(self, client, admin, session):
        session.add(Role(name="Manager", is_default=True, permissions=["CREATE_CLIENT", "SUGGEST_EDITS"]))
        await session.commit()

        response = await client.post(
            "/users", json={"login": "bob", "name": "Bob", "password": "pw"}, headers=auth(admin)
        )

        assert response.json()["permissions"] == ["CREATE_CLIENT", "SUGGEST_EDITS"]

    async def test_duplicate_login_conflicts(self, client, admin):
        payload = {"login": "bob", "name": "Bob", "password": "pw"}

        await client.post("/users", json=payload, headers=auth(admin))
        response = await client.post("/users", json=payload, headers=auth(admin))

        assert response.status_code == 409

    async def test_self_update_cannot_change_permissions(self, client, make_user):
        user = await make_user("alice", [Permission.SUGGEST_EDITS])

        renamed = await client.put(f"/users/{user.id}", json={"name": "Alicia"}, headers=auth(user))
        escalated = await client.put(f"/users/{user.id}", json={"permissions": ["ADMIN"]}, headers=auth(user))

        assert renamed.status_code == 200
        assert renamed.json()["name"] == "Alicia"
        assert escalated.status_code == 403

    async def test_users_cannot_read_each_other(self, client, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")

        response = await client.get(f"/users/{bob.id}", headers=auth(alice))

        assert response.status_code == 403

    async def test_admin_cannot_delete_self(self, client, admin, make_user):
        other = await make_user("bob")

        own = await client.delete(f"/users/{admin.id}", headers=auth(admin))
        theirs = await client.delete(f"/users/{other.id}", headers=auth(admin))

        assert own.status_code == 400
        assert theirs.json() == {"success": True}

    async def test_listing_counts_contractors(self, client, admin, make_user, make_contractor):
        manager = await make_user("manager")
        await make_contractor("One", manager=manager, creator=admin)
        await make_contractor("Two", manager=manager)

        response = await client.get("/users", headers=auth(admin))

        counts = {u["login"]: (u["managed_contractors"], u["created_contractors"]) for u in response.json()}
        assert counts == {"admin": (0, 1), "manager": (2, 0)}


class TestRoles:

    async def test_single_default_role(self, client, admin):
        first = await client.post(
            "/roles", json={"name": "A", "permissions": ["CREATE_CLIENT"], "is_default": True}, headers=auth(admin)
        )
        second = await client.post(
            "/roles", json={"name": "B", "permissions": ["SUGGEST_EDITS"], "is_default": True}, headers=auth(admin)
        )
        roles = await client.get("/roles", headers=auth(admin))

        assert first.status_code == 201
        assert second.status_code == 201
        assert {r["name"]: r["is_default"] for r in roles.json()} == {"A": False, "B": True}

    async def test_update_to_default_clears_others(self, client, admin):
        first = await client.post(
            "/roles", json={"name": "A", "permissions": [], "is_default": True}, headers=auth(admin)
        )
        second = await client.post("/roles", json={"name": "B", "permissions": []}, headers=auth(admin))

        await client.put(f"/roles/{second.json()['id']}", json={"is_default": True}, headers=auth(admin))
        roles = await client.get("/roles", headers=auth(admin))

        assert first.status_code == 201
        assert {r["name"]: r["is_default"] for r in roles.json()} == {"A": False, "B": True}

    async def test_duplicate_name_conflicts(self, client, admin):
        await client.post("/roles", json={"name": "A", "permissions": []}, headers=auth(admin))
        response = await client.post("/roles", json={"name": "A", "permissions": []}, headers=auth(admin))

        assert response.status_code == 409

    async def test_writes_are_admin_only(self, client, make_user):
        user = await make_user("alice", [Permission.EDIT_ALL_CLIENTS])

        response = await client.post("/roles", json={"name": "A", "permissions": []}, headers=auth(user))

        assert response.status_code == 403


class TestPermissionsApi:

    async def test_check_against_contractor(self, client, make_user, make_contractor):
        owner = await make_user("owner", [Permission.EDIT_OWN_CLIENT])
        stranger = await make_user("stranger", [Permission.EDIT_OWN_CLIENT])
        contractor = await make_contractor("Acme", manager=owner)
        body = {"contractor_id": contractor.id, "action": "edit"}

        as_owner = await client.post("/permissions/check", json=body, headers=auth(owner))
        as_stranger = await client.post("/permissions/check", json=body, headers=auth(stranger))

        assert as_owner.json() == {"allowed": True, "is_owner": True}
        assert as_stranger.json() == {"allowed": False, "is_owner": False}

    async def test_lists_tags_and_presets(self, client, make_user):
        user = await make_user("alice")

        tags = await client.get("/permissions", headers=auth(user))
        presets = await client.get("/permissions/presets", headers=auth(user))

        assert len(tags.json()) == len(Permission)
        assert {p["key"] for p in presets.json()} >= {"ADMIN", "MANAGER"}


class TestRoot:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.json() == {"status": "healthy"}
