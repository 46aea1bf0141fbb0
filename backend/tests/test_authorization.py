"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Cashier role denied elevated and admin-only operations (403)
- Owner role is elevated at the counter but not an administrator
- Admin role can perform privileged operations
"""

import pytest

from boutique.permissions import check_capability, has_capability, owner_scope


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/checkout"),
            ("GET", "/api/cash-register"),
            ("POST", "/api/cash-register"),
            ("GET", "/api/bills"),
            ("POST", "/api/bills"),
            ("PATCH", "/api/bills/1"),
            ("DELETE", "/api/bills/1"),
            ("GET", "/api/clients"),
            ("POST", "/api/clients"),
            ("PATCH", "/api/clients/1"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/owners"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/users"),
            ("GET", "/api/orders"),
            ("GET", "/api/settings"),
            ("GET", "/api/financial-close"),
            ("POST", "/api/financial-close"),
            ("GET", "/api/exchanges"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, seed, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_invalid_token(self, client, seed):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"


# =============================================================================
# CASHIER DENIED PRIVILEGED OPERATIONS — 403
# =============================================================================


class TestCashierDenied:
    """Cashier role cannot perform privileged operations."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/bills"),
            ("GET", "/api/clients"),
            ("POST", "/api/clients"),
            ("POST", "/api/products"),
            ("POST", "/api/owners"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/users"),
            ("PUT", "/api/settings"),
            ("GET", "/api/financial-close"),
        ],
    )
    def test_forbidden(self, client, cashier_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.json["error"] == "Forbidden"
        assert "required_capability" in resp.json

    def test_can_view_catalog_and_register(self, client, cashier_headers):
        assert client.get("/api/products", headers=cashier_headers).status_code == 200
        assert client.get("/api/cash-register", headers=cashier_headers).status_code == 200
        assert client.get("/api/settings", headers=cashier_headers).status_code == 200


# =============================================================================
# OWNER — ELEVATED BUT NOT ADMIN
# =============================================================================


class TestOwnerAccess:

    def test_can_manage_clients(self, client, owner_headers):
        resp = client.post("/api/clients", json={"name": "Ana"}, headers=owner_headers)
        assert resp.status_code == 201

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/bills"),
            ("POST", "/api/products"),
            ("GET", "/api/users"),
            ("POST", "/api/financial-close"),
        ],
    )
    def test_admin_only_denied(self, client, owner_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=owner_headers)
        assert resp.status_code == 403


# =============================================================================
# ADMIN ACCESS
# =============================================================================


class TestAdminAccess:

    def test_can_list_users(self, client, admin_headers):
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        assert {u["role"] for u in resp.json["users"]} == {"ADMIN", "OWNER", "CASHIER"}

    def test_can_list_bills(self, client, admin_headers):
        assert client.get("/api/bills", headers=admin_headers).status_code == 200

    def test_can_list_closures(self, client, admin_headers):
        resp = client.get("/api/financial-close", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["closures"] == []

    def test_create_user_rejects_weak_password(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"email": "new@test.local", "password": "short", "name": "New", "role": "CASHIER"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_create_user_duplicate_email(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"email": "cashier@test.local", "password": "Password123!", "name": "Dup", "role": "CASHIER"},
            headers=admin_headers,
        )
        assert resp.status_code == 409


# =============================================================================
# CAPABILITY TABLE
# =============================================================================


class TestCapabilityChecks:

    def test_elevated_capabilities(self, seed):
        assert has_capability(seed["admin"], "APPLY_DISCOUNT")
        assert has_capability(seed["owner"], "SELL_PAY_LATER")
        assert not has_capability(seed["cashier"], "APPLY_DISCOUNT")
        assert not has_capability(seed["owner"], "MANAGE_BILLS")

    def test_resource_owner_allows_linked_owner(self, seed):
        owner = seed["owner"]
        assert check_capability(owner, {"ADMIN"}, resource_owner_id=owner.owner_id)
        assert not check_capability(owner, {"ADMIN"}, resource_owner_id=owner.owner_id + 1)
        assert not check_capability(seed["cashier"], {"ADMIN"}, resource_owner_id=owner.owner_id)

    def test_inactive_user_has_no_capabilities(self, seed, db_session):
        admin = seed["admin"]
        admin.is_active = False
        db_session.commit()
        assert not has_capability(admin, "CHECKOUT")

    def test_owner_scope(self, seed):
        assert owner_scope(seed["owner"]) == seed["owner"].owner_id
        assert owner_scope(seed["admin"]) is None


# =============================================================================
# AUTH AND PUBLIC ENDPOINTS
# =============================================================================


class TestAuthEndpoints:

    def test_health(self, client, seed):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"

    def test_login_bad_password(self, client, seed):
        resp = client.post("/api/auth/login", json={"email": "admin@test.local", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_login_missing_fields(self, client, seed):
        resp = client.post("/api/auth/login", json={"email": "admin@test.local"})
        assert resp.status_code == 400

    def test_me(self, client, owner_headers, seed):
        resp = client.get("/api/auth/me", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["role"] == "OWNER"
        assert resp.json["owner_id"] == seed["owner"].owner_id

    def test_logout_revokes_token(self, client, cashier_headers):
        assert client.post("/api/auth/logout", headers=cashier_headers).status_code == 200
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401
