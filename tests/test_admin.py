import pytest

from modules.admin.permissions import can_assign_role
from modules.cart.models import Cart
from modules.user.models import User
from modules.user.service import user_service


@pytest.mark.parametrize("path", ["/api/admin/users", "/api/admin/dashboard", "/api/admin/orders", "/api/admin/products"])
def test_admin_routes_reject_customers(client, make_user, auth_headers, path):
    user = make_user()
    assert client.get(path, headers=auth_headers(user)).status_code == 403
    assert client.get(path).status_code == 401


def test_admin_lists_users(client, make_user, auth_headers):
    admin = make_user(role="ADMIN")
    make_user()

    body = client.get("/api/admin/users", headers=auth_headers(admin)).json()

    assert body["pagination"]["totalCount"] == 2
    assert {r["value"] for r in body["roles"]} == {"USER", "ADMIN", "SUPER_ADMIN"}


def test_admin_can_promote_customer(client, make_user, auth_headers):
    admin, customer = make_user(role="ADMIN"), make_user()

    resp = client.patch(f"/api/admin/users/{customer.id}", json={"role": "ADMIN"}, headers=auth_headers(admin))

    assert resp.status_code == 200
    assert resp.json()["role"] == "ADMIN"


def test_admin_cannot_grant_super_admin(client, make_user, auth_headers):
    admin, customer = make_user(role="ADMIN"), make_user()

    resp = client.patch(f"/api/admin/users/{customer.id}", json={"role": "SUPER_ADMIN"}, headers=auth_headers(admin))
    assert resp.status_code == 403


def test_invalid_role_rejected(client, make_user, auth_headers):
    boss, customer = make_user(role="SUPER_ADMIN"), make_user()

    resp = client.patch(f"/api/admin/users/{customer.id}", json={"role": "OWNER"}, headers=auth_headers(boss))
    assert resp.status_code == 400


def test_role_assignment_rules():
    assert can_assign_role("SUPER_ADMIN", "ADMIN", "SUPER_ADMIN")
    assert can_assign_role("ADMIN", "USER", "ADMIN")
    assert can_assign_role("ADMIN", "ADMIN", "USER")
    assert not can_assign_role("ADMIN", "SUPER_ADMIN", "USER")
    assert not can_assign_role("USER", "USER", "ADMIN")


def test_only_super_admin_deletes_users(db, client, make_user, make_product, auth_headers):
    admin, boss, customer = make_user(role="ADMIN"), make_user(role="SUPER_ADMIN"), make_user()
    customer_id = customer.id
    user_service.ensure_cart_and_wishlist(db, customer)
    db.commit()
    client.post("/api/cart", json={"productId": make_product().id}, headers=auth_headers(customer))

    assert client.delete(f"/api/admin/users/{customer_id}", headers=auth_headers(admin)).status_code == 403

    resp = client.delete(f"/api/admin/users/{customer_id}", headers=auth_headers(boss))
    assert resp.status_code == 200
    assert resp.json() == {"message": "User deleted successfully"}

    db.expire_all()
    assert db.query(User).filter(User.id == customer_id).count() == 0
    assert db.query(Cart).filter(Cart.user_id == customer_id).count() == 0


def test_super_admin_cannot_delete_self(client, make_user, auth_headers):
    boss = make_user(role="SUPER_ADMIN")
    assert client.delete(f"/api/admin/users/{boss.id}", headers=auth_headers(boss)).status_code == 400


def test_dashboard_counts(client, make_user, make_product, auth_headers):
    admin = make_user(role="ADMIN")
    make_product(stock=2)
    make_product(stock=50)

    stats = client.get("/api/admin/dashboard", headers=auth_headers(admin)).json()

    assert stats["totalProducts"] == 2
    assert stats["lowStockProducts"] == 1
    assert stats["totalRevenue"] == 0.0
    assert len(stats["topProducts"]) == 2
