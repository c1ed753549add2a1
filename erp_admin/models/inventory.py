from erp_admin.extensions import db
from datetime import datetime


class InventoryStatus:
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class InventoryItem(db.Model):
    __tablename__ = "inventory_items"

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    item_type = db.Column(db.String(30), nullable=False, default="other")  # raw_material, component, finished_product, ...
    current_quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)
    minimum_quantity = db.Column(db.Integer, nullable=False, default=0)  # Low stock at or below this
    reorder_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price = db.Column(db.Float, nullable=False, default=0.0)
    location = db.Column(db.String(100), nullable=True)
    unit_of_measure = db.Column(db.String(20), nullable=False, default="pcs")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"InventoryItem(SKU: {self.sku}, Qty: {self.current_quantity}, Min: {self.minimum_quantity}, Location: {self.location})"

    @property
    def available_quantity(self):
        return max(0, self.current_quantity - self.reserved_quantity)

    @property
    def total_value(self):
        return round(self.current_quantity * self.unit_price, 2)

    @property
    def status(self):
        if self.current_quantity <= 0:
            return InventoryStatus.OUT_OF_STOCK
        if self.current_quantity <= self.minimum_quantity:
            return InventoryStatus.LOW_STOCK
        return InventoryStatus.IN_STOCK

    def to_dict(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "item_type": self.item_type,
            "current_quantity": self.current_quantity,
            "reserved_quantity": self.reserved_quantity,
            "available_quantity": self.available_quantity,
            "minimum_quantity": self.minimum_quantity,
            "reorder_quantity": self.reorder_quantity,
            "unit_price": self.unit_price,
            "total_value": self.total_value,
            "location": self.location,
            "unit_of_measure": self.unit_of_measure,
            "status": self.status,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
