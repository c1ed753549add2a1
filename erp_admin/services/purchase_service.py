import logging
from datetime import datetime

from erp_admin.extensions import db
from erp_admin.models.notification import NotificationType
from erp_admin.models.purchase_order import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus
from erp_admin.services import notification_service

logger = logging.getLogger(__name__)

# Allowed next states for each status
TRANSITIONS = {
    PurchaseOrderStatus.DRAFT: (PurchaseOrderStatus.PENDING_APPROVAL, PurchaseOrderStatus.CANCELLED),
    PurchaseOrderStatus.PENDING_APPROVAL: (
        PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.CANCELLED,
    ),
    PurchaseOrderStatus.APPROVED: (PurchaseOrderStatus.ORDERED, PurchaseOrderStatus.CANCELLED),
    PurchaseOrderStatus.ORDERED: (
        PurchaseOrderStatus.PARTIALLY_RECEIVED, PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED,
    ),
    PurchaseOrderStatus.PARTIALLY_RECEIVED: (PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED),
    PurchaseOrderStatus.RECEIVED: (),
    PurchaseOrderStatus.CANCELLED: (),
}


class PurchaseOrderNotFound(LookupError):
    pass


class InvalidStatusTransition(ValueError):
    pass


class PurchaseOrderLocked(Exception):
    pass


def get_all():
    return PurchaseOrder.query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def get_by_id(order_id):
    order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise PurchaseOrderNotFound(f"Purchase order {order_id} not found")
    return order


def get_by_status(status):
    return PurchaseOrder.query.filter_by(status=status).order_by(PurchaseOrder.created_at.desc()).all()


def get_recent(limit=5):
    return PurchaseOrder.query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).limit(limit).all()


def generate_order_number(now=None):
    """Next number in the PO-YY-MM-NNNN sequence for the current month."""
    now = now or datetime.utcnow()
    prefix = f"PO-{now:%y}-{now:%m}-"
    count = PurchaseOrder.query.filter(PurchaseOrder.order_number.like(f"{prefix}%")).count()
    return f"{prefix}{count + 1:04d}"


def create_order(supplier_name, items, created_by, expected_delivery_date=None, notes=None,
                 status=PurchaseOrderStatus.DRAFT):
    """Create an order with its line items.

    ``items`` is an iterable of dicts with product_name, quantity, unit_price
    and an optional inventory_item_id.
    """
    if status not in PurchaseOrderStatus.ALL:
        raise InvalidStatusTransition(f"Unknown status '{status}'")
    lines = []
    for data in items:
        quantity = data.get("quantity")
        if not isinstance(quantity, int) or quantity <= 0:
            raise ValueError("Quantity must be a positive integer.")
        lines.append(PurchaseOrderItem(
            product_name=data["product_name"],
            quantity=quantity,
            unit_price=float(data.get("unit_price", 0.0)),
            inventory_item_id=data.get("inventory_item_id"),
        ))
    if not lines:
        raise ValueError("A purchase order needs at least one line item.")

    order = PurchaseOrder(
        order_number=generate_order_number(),
        supplier_name=supplier_name,
        status=status,
        expected_delivery_date=expected_delivery_date,
        notes=notes,
        created_by=created_by,
        items=lines,
    )
    db.session.add(order)
    db.session.commit()
    logger.info("Created purchase order %s with %s lines", order.order_number, len(lines))
    return order


def update_status(order_id, new_status, changed_by):
    """Move an order to ``new_status`` along the allowed transitions.

    Receiving an order books the outstanding line quantities into the linked
    inventory items in the same transaction.
    """
    order = get_by_id(order_id)
    if new_status not in TRANSITIONS.get(order.status, ()):
        raise InvalidStatusTransition(f"Cannot move {order.order_number} from {order.status} to {new_status}")

    previous_status = order.status
    order.status = new_status
    if new_status == PurchaseOrderStatus.APPROVED:
        order.approved_by = changed_by
    elif new_status == PurchaseOrderStatus.RECEIVED:
        for line in order.items:
            outstanding = line.quantity - line.received_quantity
            if outstanding > 0 and line.inventory_item is not None:
                line.inventory_item.current_quantity += outstanding
            line.received_quantity = line.quantity
        order.actual_delivery_date = datetime.utcnow().date()
    db.session.commit()
    logger.info("Purchase order %s: %s -> %s by user %s", order.order_number, previous_status, new_status, changed_by)

    if order.created_by != changed_by:
        _notify_creator(order, previous_status)
    return order


def _notify_creator(order, previous_status):
    type = NotificationType.SUCCESS if order.status == PurchaseOrderStatus.RECEIVED else NotificationType.INFO
    if order.status == PurchaseOrderStatus.CANCELLED:
        type = NotificationType.WARNING
    try:
        notification_service.send_notification(
            order.created_by,
            f"Purchase order {order.order_number} {order.status}",
            f"Status changed from {previous_status} to {order.status}.",
            type,
            link=f"/api/purchase_orders/{order.id}",
            entity_type="purchase_order",
            linked_entity_id=order.id,
        )
    except notification_service.NotificationStoreError:
        logger.warning("Status notification for %s was not delivered", order.order_number)


def delete_order(order_id):
    order = get_by_id(order_id)
    if order.status not in PurchaseOrderStatus.DELETABLE:
        raise PurchaseOrderLocked(f"Only draft or cancelled orders can be deleted ({order.order_number} is {order.status})")
    db.session.delete(order)
    db.session.commit()
