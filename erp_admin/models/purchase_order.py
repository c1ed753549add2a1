from erp_admin.extensions import db
from datetime import datetime


class PurchaseOrderStatus:
    DRAFT = "draft"
    PENDING_APPROVAL = "pending-approval"
    APPROVED = "approved"
    ORDERED = "ordered"
    PARTIALLY_RECEIVED = "partially-received"
    RECEIVED = "received"
    CANCELLED = "cancelled"

    ALL = (DRAFT, PENDING_APPROVAL, APPROVED, ORDERED, PARTIALLY_RECEIVED, RECEIVED, CANCELLED)
    # Orders in these states may still be deleted
    DELETABLE = (DRAFT, CANCELLED)


class PurchaseOrder(db.Model):
    __tablename__ = "purchase_orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(30), unique=True, nullable=False)  # PO-YY-MM-NNNN
    supplier_name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(30), nullable=False, default=PurchaseOrderStatus.DRAFT)
    order_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    expected_delivery_date = db.Column(db.Date, nullable=True)
    actual_delivery_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship("PurchaseOrderItem", backref="purchase_order", lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PurchaseOrder {self.order_number} Status: {self.status}>"

    @property
    def total_amount(self):
        return round(sum(item.total_price for item in self.items), 2)

    def to_dict(self, include_items=False):
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_name": self.supplier_name,
            "status": self.status,
            "order_date": self.order_date.isoformat() if self.order_date else None,
            "expected_delivery_date": self.expected_delivery_date.isoformat() if self.expected_delivery_date else None,
            "actual_delivery_date": self.actual_delivery_date.isoformat() if self.actual_delivery_date else None,
            "total_amount": self.total_amount,
            "notes": self.notes,
            "created_by": self.created_by,
            "approved_by": self.approved_by,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True)
    product_name = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price = db.Column(db.Float, nullable=False, default=0.0)

    inventory_item = db.relationship("InventoryItem", lazy=True)

    @property
    def total_price(self):
        return self.quantity * self.unit_price

    def to_dict(self):
        return {
            "id": self.id,
            "inventory_item_id": self.inventory_item_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "received_quantity": self.received_quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
        }
