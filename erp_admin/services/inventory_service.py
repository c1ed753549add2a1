import logging

from erp_admin.extensions import db
from erp_admin.models.inventory import InventoryItem, InventoryStatus
from erp_admin.models.notification import NotificationType
from erp_admin.models.user import UserRole
from erp_admin.services import notification_service, user_service

logger = logging.getLogger(__name__)


class InventoryItemNotFound(LookupError):
    pass


class InsufficientStock(ValueError):
    pass


def get_all_items(include_inactive=False):
    query = InventoryItem.query
    if not include_inactive:
        query = query.filter(InventoryItem.is_active.is_(True))
    return query.order_by(InventoryItem.name).all()


def get_item(item_id):
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise InventoryItemNotFound(f"Inventory item {item_id} not found")
    return item


def get_low_stock_items():
    """Active items at or below their minimum quantity, emptiest first."""
    return (
        InventoryItem.query
        .filter(InventoryItem.is_active.is_(True))
        .filter(InventoryItem.current_quantity <= InventoryItem.minimum_quantity)
        .order_by((InventoryItem.minimum_quantity - InventoryItem.current_quantity).desc())
        .all()
    )


def create_item(sku, name, created_by=None, **fields):
    item = InventoryItem(sku=sku.strip().upper(), name=name.strip(), created_by=created_by, **fields)
    db.session.add(item)
    db.session.commit()
    return item


def adjust_quantity(item_id, delta, performed_by=None):
    """Add ``delta`` (may be negative) to the on-hand quantity.

    When the adjustment takes the item into low or out of stock, admins and
    managers are notified.
    """
    item = get_item(item_id)
    new_quantity = item.current_quantity + delta
    if new_quantity < 0:
        raise InsufficientStock(
            f"Cannot remove {-delta} {item.unit_of_measure} of {item.sku}; only {item.current_quantity} on hand"
        )
    previous_status = item.status
    item.current_quantity = new_quantity
    db.session.commit()
    logger.info("Adjusted %s by %s to %s (user %s)", item.sku, delta, new_quantity, performed_by)

    if item.status != previous_status and item.status != InventoryStatus.IN_STOCK:
        _send_stock_alert(item)
    return item


def _send_stock_alert(item):
    if item.status == InventoryStatus.OUT_OF_STOCK:
        title = "Out of stock"
        message = f'Item "{item.name}" ({item.sku}) is now out of stock'
        type = NotificationType.ERROR
    else:
        title = "Low stock"
        message = f'Item "{item.name}" ({item.sku}) is now below minimum stock level'
        type = NotificationType.WARNING

    recipients = [u.id for u in user_service.get_active_users(roles=UserRole.FULL_ACCESS)]
    try:
        notification_service.send_to_users(
            recipients, title, message, type,
            link=f"/api/inventory/{item.id}", entity_type="inventory", linked_entity_id=item.id,
        )
    except notification_service.NotificationStoreError:
        # Stock change is already committed at this point
        logger.warning("Stock alert for %s was not delivered", item.sku)
