from erp_admin.models.permission import ModuleId
from erp_admin.models.user import UserRole
from erp_admin.services import (
    inventory_service,
    notification_service,
    organization_service,
    permission_service,
    purchase_service,
    user_service,
)


def test_login_and_logout(client, make_user):
    user = make_user()

    response = client.post("/login", data={"email": user.email, "password": "secret123"})
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard")

    response = client.get("/logout")
    assert response.status_code == 302


def test_login_refuses_inactive_user(client, make_user):
    user = make_user(is_active=False)

    response = client.post("/login", data={"email": user.email, "password": "secret123"}, follow_redirects=True)

    assert b"not active" in response.data


def test_dashboard_renders_dropdown(client, login, make_user):
    user = login(make_user())
    notification_service.send_notification(user.id, "Welcome aboard", "Hello")

    response = client.get("/dashboard")

    assert response.status_code == 200
    assert b"Welcome aboard" in response.data
    assert b"notification-badge" in response.data


def test_notifications_page_create_and_mark_all(client, login, make_user):
    user = login(make_user())

    response = client.post("/notifications", data={"title": "Reminder", "message": "Count bin A-03", "type": "info"})
    assert response.status_code == 302
    assert notification_service.get_unread_count_by_user(user.id) == 1

    client.post("/notifications/read_all")
    assert notification_service.get_unread_count_by_user(user.id) == 0


def test_notifications_page_rejects_empty_form(client, login, make_user):
    user = login(make_user())

    response = client.post("/notifications", data={"title": "", "message": "", "type": "info"})

    assert response.status_code == 200
    assert b"Title is required." in response.data
    assert notification_service.get_count_by_user(user.id) == 0


def test_basic_user_cannot_manage_users(client, login, make_user):
    login(make_user())

    response = client.get("/admin/users")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard")


def test_admin_edits_basic_user_permissions(client, login, make_user):
    login(make_user(role=UserRole.ADMIN))
    basic = make_user()

    response = client.get(f"/admin/user/{basic.id}/permissions")
    assert response.status_code == 200
    assert b"Edit Permissions" in response.data

    response = client.post(f"/admin/user/{basic.id}/permissions", data={"modules": [ModuleId.INVENTORY, ModuleId.SALES]})
    assert response.status_code == 302
    assert permission_service.has_module_access(basic.id, basic.role, ModuleId.INVENTORY)
    assert permission_service.has_module_access(basic.id, basic.role, ModuleId.SALES)
    assert not permission_service.has_module_access(basic.id, basic.role, ModuleId.USER_MANAGEMENT)


def test_manager_permissions_page_shows_full_access(client, login, make_user):
    login(make_user(role=UserRole.ADMIN))
    manager = make_user(role=UserRole.MANAGER)

    response = client.get(f"/admin/user/{manager.id}/permissions")

    assert b"Manager users have access" in response.data


def test_admin_deactivates_and_changes_role(client, login, make_user):
    admin = login(make_user(role=UserRole.ADMIN))
    basic = make_user()

    client.post(f"/admin/user/deactivate/{basic.id}")
    assert user_service.get_by_id(basic.id).is_active is False

    client.post(f"/admin/user/set_role/{basic.id}/{UserRole.MANAGER}")
    assert user_service.get_by_id(basic.id).role == UserRole.MANAGER

    client.post(f"/admin/user/deactivate/{admin.id}")
    assert user_service.get_by_id(admin.id).is_active is True


def test_inventory_gated_by_module_permission(client, login, make_user):
    basic = login(make_user())
    item = inventory_service.create_item("BLT-M8", "M8 Bolt", current_quantity=10)

    assert client.get("/inventory").status_code == 302
    assert client.get("/api/inventory").status_code == 403

    row = permission_service.get_by_user_and_module(basic.id, ModuleId.INVENTORY)
    permission_service.update(row.id, True)

    assert client.get("/inventory").status_code == 200
    response = client.post(f"/api/inventory/{item.id}/adjust", json={"delta": -4})
    assert response.status_code == 200
    assert response.get_json()["item"]["current_quantity"] == 6


def test_purchase_api_flow(client, login, make_user):
    login(make_user(role=UserRole.MANAGER))

    response = client.post("/api/purchase_orders", json={
        "supplier_name": "Acme", "items": [{"product_name": "Bolt", "quantity": 5, "unit_price": 0.5}],
    })
    assert response.status_code == 201
    order_id = response.get_json()["order"]["id"]

    response = client.put(f"/api/purchase_orders/{order_id}/status", json={"status": "received"})
    assert response.status_code == 409

    assert client.delete(f"/api/purchase_orders/{order_id}").status_code == 200
    assert client.get(f"/api/purchase_orders/{order_id}").status_code == 404


def test_inventory_nav_link_follows_module_grant(client, login, make_user):
    basic = login(make_user())

    assert b'href="/inventory"' not in client.get("/dashboard").data

    row = permission_service.get_by_user_and_module(basic.id, ModuleId.INVENTORY)
    permission_service.update(row.id, True)

    assert b'href="/inventory"' in client.get("/dashboard").data


def test_dropdown_list_is_a_nested_list(client, login, make_user):
    user = login(make_user())
    notification_service.send_notification(user.id, "Nested", "n")

    response = client.get("/dashboard")

    assert b'<li><ul id="notification-list"' in response.data
    assert b'<div id="notification-list"' not in response.data


def test_admin_edits_basic_user(client, login, make_user):
    login(make_user(role=UserRole.ADMIN))
    manager = make_user(role=UserRole.MANAGER, name="Mona Manager")
    basic = make_user()

    response = client.get(f"/admin/user/{basic.id}/edit")
    assert response.status_code == 200
    assert b"Mona Manager" in response.data

    response = client.post(f"/admin/user/{basic.id}/edit", data={
        "name": "Renamed User", "email": "renamed@example.com",
        "password": "", "confirm_password": "", "manager_id": manager.id,
    })
    assert response.status_code == 302
    updated = user_service.get_by_id(basic.id)
    assert updated.name == "Renamed User"
    assert updated.email == "renamed@example.com"
    assert updated.manager_id == manager.id
    assert user_service.authenticate("renamed@example.com", "secret123") is updated

    response = client.post(f"/admin/user/{basic.id}/edit", data={
        "name": "Renamed User", "email": manager.email, "manager_id": 0,
    })
    assert response.status_code == 200
    assert b"Email address already exists" in response.data
    assert user_service.get_by_id(basic.id).email == "renamed@example.com"
    assert user_service.get_by_id(basic.id).manager_id == manager.id


def test_manager_cannot_edit_admin(client, login, make_user):
    login(make_user(role=UserRole.MANAGER))
    admin = make_user(role=UserRole.ADMIN)

    response = client.get(f"/admin/user/{admin.id}/edit")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/admin/users")


def test_users_page_links_permissions_only_for_basic_users(client, login, make_user):
    admin = login(make_user(role=UserRole.ADMIN))
    basic = make_user()

    response = client.get("/admin/users")

    assert f"/admin/user/{basic.id}/permissions".encode() in response.data
    assert f"/admin/user/{admin.id}/permissions".encode() not in response.data
    assert b"All modules" in response.data


def test_users_page_is_scoped_to_the_organization(client, login, make_user):
    organization, admin = organization_service.create_organization_with_admin(
        "Acme Works", "acme", "Ada Admin", "ada@acme.test", "secret123",
    )
    member = user_service.create_user("Acme Member", "member@acme.test", "secret123", organization_id=organization.id)
    outsider = make_user()
    login(admin)

    response = client.get("/admin/users")

    assert b"member@acme.test" in response.data
    assert outsider.email.encode() not in response.data
    assert client.get(f"/admin/user/{member.id}/edit").status_code == 200
    assert client.get(f"/admin/user/{outsider.id}/edit").status_code == 404


def test_dashboard_lists_recent_purchase_orders(client, login, make_user):
    manager = login(make_user(role=UserRole.MANAGER))
    order = purchase_service.create_order(
        "Acme", [{"product_name": "Bolt", "quantity": 4, "unit_price": 0.5}], created_by=manager.id,
    )

    response = client.get("/dashboard")

    assert b"Recent Purchase Orders" in response.data
    assert order.order_number.encode() in response.data
    assert b"2.00" in response.data


def test_dashboard_hides_purchase_orders_without_grant(client, login, make_user):
    basic = login(make_user())
    purchase_service.create_order("Acme", [{"product_name": "Bolt", "quantity": 1}], created_by=basic.id)

    assert b"Recent Purchase Orders" not in client.get("/dashboard").data
