from datetime import datetime

import pytest

from erp_admin.models.inventory import InventoryStatus
from erp_admin.models.notification import NotificationType
from erp_admin.models.purchase_order import PurchaseOrderStatus
from erp_admin.models.user import UserRole
from erp_admin.services import inventory_service, notification_service, purchase_service
from erp_admin.services.inventory_service import InsufficientStock
from erp_admin.services.purchase_service import InvalidStatusTransition, PurchaseOrderLocked


@pytest.fixture
def bolts(app):
    return inventory_service.create_item("blt-m8", "M8 Bolt", current_quantity=40, minimum_quantity=10)


def test_sku_is_normalised(bolts):
    assert bolts.sku == "BLT-M8"
    assert bolts.status == InventoryStatus.IN_STOCK


def test_dropping_to_low_stock_alerts_admins_and_managers(make_user, bolts):
    admin = make_user(role=UserRole.ADMIN)
    manager = make_user(role=UserRole.MANAGER)
    clerk = make_user()

    inventory_service.adjust_quantity(bolts.id, -35, performed_by=clerk.id)

    assert bolts.status == InventoryStatus.LOW_STOCK
    for user in (admin, manager):
        (alert,) = notification_service.get_by_user(user.id)
        assert alert.type == NotificationType.WARNING
        assert alert.entity_type == "inventory"
        assert alert.linked_entity_id == bolts.id
    assert notification_service.get_by_user(clerk.id) == []


def test_staying_low_does_not_alert_twice(make_user, bolts):
    admin = make_user(role=UserRole.ADMIN)
    inventory_service.adjust_quantity(bolts.id, -35)
    inventory_service.adjust_quantity(bolts.id, -1)

    assert notification_service.get_count_by_user(admin.id) == 1

    inventory_service.adjust_quantity(bolts.id, -4)
    newest = notification_service.get_by_user(admin.id)[0]
    assert newest.type == NotificationType.ERROR
    assert bolts.status == InventoryStatus.OUT_OF_STOCK


def test_cannot_remove_more_than_on_hand(bolts):
    with pytest.raises(InsufficientStock):
        inventory_service.adjust_quantity(bolts.id, -41)
    assert bolts.current_quantity == 40


def test_low_stock_listing(bolts):
    inventory_service.create_item("NUT-M8", "M8 Nut", current_quantity=2, minimum_quantity=10)

    assert [i.sku for i in inventory_service.get_low_stock_items()] == ["NUT-M8"]


def test_order_number_sequence(make_user):
    user = make_user()
    now = datetime.utcnow()
    first = purchase_service.create_order("Acme", [{"product_name": "Bolt", "quantity": 5}], created_by=user.id)

    assert first.order_number == f"PO-{now:%y}-{now:%m}-0001"
    assert purchase_service.generate_order_number(now).endswith("-0002")


def test_create_order_rejects_bad_lines(make_user):
    user = make_user()

    with pytest.raises(ValueError):
        purchase_service.create_order("Acme", [], created_by=user.id)
    with pytest.raises(ValueError):
        purchase_service.create_order("Acme", [{"product_name": "Bolt", "quantity": 0}], created_by=user.id)


def test_receiving_books_stock_and_notifies_creator(make_user, bolts):
    clerk = make_user()
    manager = make_user(role=UserRole.MANAGER)
    order = purchase_service.create_order(
        "Acme", [{"product_name": bolts.name, "quantity": 25, "unit_price": 0.2, "inventory_item_id": bolts.id}],
        created_by=clerk.id,
    )

    for status in (PurchaseOrderStatus.PENDING_APPROVAL, PurchaseOrderStatus.APPROVED,
                   PurchaseOrderStatus.ORDERED, PurchaseOrderStatus.RECEIVED):
        purchase_service.update_status(order.id, status, changed_by=manager.id)

    assert bolts.current_quantity == 65
    assert order.approved_by == manager.id
    assert order.actual_delivery_date is not None
    newest = notification_service.get_by_user(clerk.id)[0]
    assert newest.type == NotificationType.SUCCESS
    assert newest.linked_entity_id == order.id
    assert notification_service.get_count_by_user(clerk.id) == 4


def test_invalid_transition_and_locked_delete(make_user):
    user = make_user()
    order = purchase_service.create_order("Acme", [{"product_name": "Bolt", "quantity": 1}], created_by=user.id)

    with pytest.raises(InvalidStatusTransition):
        purchase_service.update_status(order.id, PurchaseOrderStatus.RECEIVED, changed_by=user.id)

    purchase_service.update_status(order.id, PurchaseOrderStatus.PENDING_APPROVAL, changed_by=user.id)
    with pytest.raises(PurchaseOrderLocked):
        purchase_service.delete_order(order.id)
    # Own changes do not notify yourself
    assert notification_service.get_count_by_user(user.id) == 0
