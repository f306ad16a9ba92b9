"""
HTTP-level tests: status mapping, guards on routes, visibility scoping.
"""

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from fieldforce.main import create_app
from fieldforce.models.role import Permission
from fieldforce.services.hierarchy_service import HierarchyResolver

PASSWORD = "password123"


class TestAuthentication:

    def test_no_header(self, org, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHENTICATED"
        assert resp.headers["www-authenticate"] == "Bearer"

    def test_non_bearer_scheme(self, org, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHENTICATED"

    def test_garbage_token(self, org, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_INVALID"

    def test_refresh_token_is_not_a_bearer_credential(self, org, client):
        body = client.post(
            "/api/auth/login", json={"email": "rm@test.local", "password": PASSWORD},
        ).json()
        resp = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {body['refresh_token']}"},
        )
        assert resp.status_code == 401

    def test_me(self, org, client, login):
        resp = client.get("/api/auth/me", headers=login("rm@test.local"))
        assert resp.status_code == 200
        assert resp.json()["id"] == org.rm.id
        assert resp.json()["role"] == "RM"

    def test_claims_show_snapshot(self, org, client, login):
        resp = client.get("/api/auth/claims", headers=login("accounts@test.local"))
        assert resp.json()["permissions"] == ["attendance.read", "reports.read", "users.read"]
        assert resp.json()["role_level"] == 30

    def test_login_failures_are_indistinguishable(self, org, client):
        disabled = client.post(
            "/api/auth/login", json={"email": "ghost@test.local", "password": PASSWORD},
        )
        wrong = client.post(
            "/api/auth/login", json={"email": "rm@test.local", "password": "nope-nope"},
        )
        missing = client.post(
            "/api/auth/login", json={"email": "who@test.local", "password": PASSWORD},
        )
        assert disabled.status_code == wrong.status_code == missing.status_code == 401
        assert disabled.json() == wrong.json() == missing.json()

    def test_refresh_endpoint(self, org, client):
        body = client.post(
            "/api/auth/login", json={"email": "rm@test.local", "password": PASSWORD},
        ).json()
        resp = client.post("/api/auth/refresh", json={"refresh_token": body["refresh_token"]})
        assert resp.status_code == 200
        assert resp.json()["token_type"] == "bearer"

        again = client.post("/api/auth/refresh", json={"refresh_token": body["access_token"]})
        assert again.status_code == 401
        assert again.json()["code"] == "TOKEN_INVALID"

    def test_request_id_is_echoed(self, org, client):
        resp = client.get("/api/health", headers={"X-Request-Id": "req-123"})
        assert resp.headers["x-request-id"] == "req-123"
        assert client.get("/api/health").headers["x-request-id"]


class TestRoleRoutes:

    def test_forbidden_names_the_missing_permission(self, org, client, login):
        resp = client.get("/api/roles/", headers=login("rm@test.local"))
        assert resp.status_code == 403
        assert resp.json()["code"] == "FORBIDDEN"
        assert "users.read" in resp.json()["detail"]

    def test_list_roles(self, org, client, login):
        resp = client.get("/api/roles/", headers=login("accounts@test.local"))
        assert resp.status_code == 200
        assert resp.json()["items"][0]["name"] == "SUPER_ADMIN"

    def test_create_role(self, org, client, login):
        headers = login("admin@test.local")
        perms = client.get("/api/roles/permissions", headers=headers).json()
        leads_read = next(p["id"] for p in perms if p["name"] == "leads.read")

        created = client.post(
            "/api/roles/",
            json={"name": "AUDITOR", "level": 25, "permission_ids": [leads_read]},
            headers=headers,
        )
        assert created.status_code == 201
        assert created.json()["permissions"] == ["leads.read"]

    def test_delete_role_in_use(self, org, client, login):
        headers = login("admin@test.local")
        resp = client.delete(f"/api/roles/{org.roles['RM']}", headers=headers)
        assert resp.status_code == 409
        assert resp.json()["code"] == "ROLE_IN_USE"

        role = client.get(f"/api/roles/{org.roles['RM']}", headers=headers)
        assert role.status_code == 200
        assert "leads.write" in role.json()["permissions"]

    def test_replace_permissions(self, org, db, client, login):
        headers = login("admin@test.local")
        reports = db.query(Permission).filter(Permission.name == "reports.read").one()

        resp = client.put(
            f"/api/roles/{org.roles['ACCOUNTS']}/permissions",
            json={"permission_ids": [reports.id]},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["permissions"] == ["reports.read"]

    def test_unknown_role(self, org, client, login):
        resp = client.get("/api/roles/missing", headers=login("admin@test.local"))
        assert resp.status_code == 404


class TestUserRoutes:

    def test_list_is_scoped_to_downline(self, org, client, login):
        resp = client.get("/api/users/", headers=login("sm@test.local"))
        assert resp.status_code == 200
        ids = {u["id"] for u in resp.json()["items"]}
        assert ids == {org.sm.id, org.rm.id, org.field.id, org.ghost.id}

    def test_super_admin_lists_everyone(self, org, client, login):
        resp = client.get("/api/users/", headers=login("admin@test.local"))
        assert resp.json()["total"] == 6

    def test_list_filters(self, org, client, login):
        resp = client.get(
            "/api/users/", params={"is_active": "false"}, headers=login("sm@test.local"),
        )
        assert [u["id"] for u in resp.json()["items"]] == [org.ghost.id]

    def test_owner_reads_own_profile(self, org, client, login):
        resp = client.get(f"/api/users/{org.field.id}", headers=login("field@test.local"))
        assert resp.status_code == 200

    def test_low_level_cannot_read_others(self, org, client, login):
        resp = client.get(f"/api/users/{org.rm.id}", headers=login("field@test.local"))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "You can only access your own resources"

    def test_senior_level_reads_others(self, org, client, login):
        resp = client.get(f"/api/users/{org.field.id}", headers=login("accounts@test.local"))
        assert resp.status_code == 200

    def test_downline_route(self, org, client, login):
        resp = client.get(f"/api/users/{org.rm.id}/downline", headers=login("rm@test.local"))
        assert resp.status_code == 200
        assert set(resp.json()["user_ids"]) == {org.rm.id, org.field.id, org.ghost.id}

    def test_manager_change_moves_visibility(self, org, client, login):
        admin = login("admin@test.local")
        resp = client.put(
            f"/api/users/{org.accounts.id}/manager",
            json={"reports_to_id": org.sm.id},
            headers=admin,
        )
        assert resp.status_code == 200

        listed = client.get("/api/users/", headers=login("sm@test.local")).json()
        assert org.accounts.id in {u["id"] for u in listed["items"]}

    def test_deactivate_requires_admin_role(self, org, client, login):
        resp = client.post(
            f"/api/users/{org.field.id}/deactivate", headers=login("rm@test.local"),
        )
        assert resp.status_code == 403

        resp = client.post(
            f"/api/users/{org.field.id}/deactivate", headers=login("sm@test.local"),
        )
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        relogin = client.post(
            "/api/auth/login", json={"email": "field@test.local", "password": PASSWORD},
        )
        assert relogin.status_code == 401

    def test_create_user(self, org, client, login):
        resp = client.post(
            "/api/users/",
            json={
                "email": "new@test.local",
                "password": "new-user-password",
                "full_name": "New Field User",
                "role_id": org.roles["FIELD_USER"],
                "reports_to_id": org.rm.id,
            },
            headers=login("sm@test.local"),
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "FIELD_USER"

        mine = client.get(f"/api/users/{org.rm.id}/downline", headers=login("rm@test.local"))
        assert resp.json()["id"] in mine.json()["user_ids"]


class TestInternalErrors:

    def test_storage_failure_is_a_generic_500(self, org, app, monkeypatch):
        def broken(self, user_id):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(HierarchyResolver, "downline", broken)

        with TestClient(app, raise_server_exceptions=False) as client:
            token = client.post(
                "/api/auth/login", json={"email": "sm@test.local", "password": PASSWORD},
            ).json()["access_token"]
            resp = client.get("/api/users/", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error", "code": "INTERNAL_ERROR"}


class TestConfiguredOwnerOverride:

    def test_override_level_follows_app_settings(self, org, settings, database, tokens):
        strict = settings.model_copy(update={"OWNER_OVERRIDE_MIN_LEVEL": 50})
        app = create_app(strict, database=database, tokens=tokens)

        with TestClient(app) as client:
            def headers(email):
                token = client.post(
                    "/api/auth/login", json={"email": email, "password": PASSWORD},
                ).json()["access_token"]
                return {"Authorization": f"Bearer {token}"}

            accounts = client.get(f"/api/users/{org.rm.id}", headers=headers("accounts@test.local"))
            sm = client.get(f"/api/users/{org.rm.id}", headers=headers("sm@test.local"))

        assert accounts.status_code == 403
        assert sm.status_code == 200


class TestRegisterRoute:

    def test_register_and_use_the_token(self, org, client):
        resp = client.post(
            "/api/auth/register",
            json={
                "email": "newbie@test.local",
                "password": "a-long-password",
                "full_name": "New Field User",
                "reports_to_id": org.rm.id,
            },
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "FIELD_USER"

        me = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {resp.json()['access_token']}"},
        )
        assert me.json()["email"] == "newbie@test.local"

    def test_role_cannot_be_chosen(self, org, client):
        resp = client.post(
            "/api/auth/register",
            json={
                "email": "sneaky@test.local",
                "password": "a-long-password",
                "full_name": "Sneaky",
                "role_id": org.roles["SUPER_ADMIN"],
            },
        )
        assert resp.json()["user"]["role"] == "FIELD_USER"

    def test_duplicate_email(self, org, client):
        resp = client.post(
            "/api/auth/register",
            json={"email": "rm@test.local", "password": "a-long-password", "full_name": "Copy"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "CONFLICT"


class TestDeleteUserRoute:

    def test_requires_users_delete(self, org, client, login):
        resp = client.delete(f"/api/users/{org.field.id}", headers=login("rm@test.local"))
        assert resp.status_code == 403
        assert "users.delete" in resp.json()["detail"]

    def test_delete_moves_reports_up(self, org, client, login):
        headers = login("sm@test.local")
        resp = client.delete(f"/api/users/{org.rm.id}", headers=headers)
        assert resp.status_code == 204

        assert client.get(f"/api/users/{org.rm.id}", headers=headers).status_code == 404
        field = client.get(f"/api/users/{org.field.id}", headers=headers).json()
        assert field["reports_to_id"] == org.sm.id

    def test_cannot_delete_self(self, org, client, login):
        resp = client.delete(f"/api/users/{org.sm.id}", headers=login("sm@test.local"))
        assert resp.status_code == 400


class TestEntityRoutes:

    def test_manage_requires_entities_manage(self, org, client, login):
        resp = client.post(
            "/api/entities/", json={"name": "North Region", "code": "NORTH"},
            headers=login("sm@test.local"),
        )
        assert resp.status_code == 403
        assert "entities.manage" in resp.json()["detail"]

    def test_any_authenticated_user_can_read(self, org, client, login):
        headers = login("field@test.local")
        listed = client.get("/api/entities/", headers=headers)
        assert listed.status_code == 200
        assert [e["code"] for e in listed.json()["items"]] == ["DEFAULT"]

        one = client.get(f"/api/entities/{org.entity.id}", headers=headers).json()
        assert one["user_count"] == 6
        assert one["role_count"] == 0

        assert client.get("/api/entities/").status_code == 401

    def test_lifecycle(self, org, client, login):
        headers = login("admin@test.local")
        created = client.post(
            "/api/entities/", json={"name": "North Region", "code": "NORTH"}, headers=headers,
        )
        assert created.status_code == 201
        entity_id = created.json()["id"]

        patched = client.patch(
            f"/api/entities/{entity_id}", json={"name": "Northern Region"}, headers=headers,
        )
        assert patched.json()["name"] == "Northern Region"

        assert client.delete(f"/api/entities/{entity_id}", headers=headers).status_code == 204
        active = client.get("/api/entities/", headers=headers).json()
        assert entity_id not in {e["id"] for e in active["items"]}

        assert client.delete(f"/api/entities/{entity_id}/hard", headers=headers).status_code == 204
        assert client.get(f"/api/entities/{entity_id}", headers=headers).status_code == 404

    def test_hard_delete_of_referenced_entity(self, org, client, login):
        resp = client.delete(f"/api/entities/{org.entity.id}/hard", headers=login("admin@test.local"))
        assert resp.status_code == 409
