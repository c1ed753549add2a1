from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from erp_admin.extensions import db
from erp_admin.models.permission import ModuleId
from erp_admin.routes.utils import module_required
from erp_admin.services import inventory_service
from erp_admin.services.inventory_service import InsufficientStock, InventoryItemNotFound

inventory_bp = Blueprint("inventory_api", __name__, url_prefix="/api")

ITEM_FIELDS = ("description", "item_type", "current_quantity", "minimum_quantity", "reorder_quantity",
               "unit_price", "location", "unit_of_measure")


@inventory_bp.route("/inventory", methods=["GET"])
@module_required(ModuleId.INVENTORY, api=True)
def get_inventory():
    """All active items; ?low_stock=1 returns only items at or below minimum."""
    if request.args.get("low_stock"):
        items = inventory_service.get_low_stock_items()
    else:
        items = inventory_service.get_all_items()
    return jsonify([i.to_dict() for i in items])


@inventory_bp.route("/inventory/<int:item_id>", methods=["GET"])
@module_required(ModuleId.INVENTORY, api=True)
def get_inventory_item(item_id):
    try:
        return jsonify(inventory_service.get_item(item_id).to_dict())
    except InventoryItemNotFound as e:
        return jsonify({"error": str(e)}), 404


@inventory_bp.route("/inventory", methods=["POST"])
@module_required(ModuleId.INVENTORY, api=True)
def add_inventory_item():
    data = request.get_json(silent=True)
    if not data or not data.get("sku") or not data.get("name"):
        return jsonify({"error": "Missing required fields: sku, name"}), 400
    fields = {key: data[key] for key in ITEM_FIELDS if key in data}
    try:
        item = inventory_service.create_item(data["sku"], data["name"], created_by=current_user.id, **fields)
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": f"SKU {data['sku']} already exists."}), 409
    return jsonify({"message": "Inventory item created", "item": item.to_dict()}), 201


@inventory_bp.route("/inventory/<int:item_id>/adjust", methods=["POST"])
@module_required(ModuleId.INVENTORY, api=True)
def adjust_inventory(item_id):
    data = request.get_json(silent=True) or {}
    delta = data.get("delta")
    if not isinstance(delta, int) or delta == 0:
        return jsonify({"error": "delta must be a non-zero integer."}), 400
    try:
        item = inventory_service.adjust_quantity(item_id, delta, performed_by=current_user.id)
    except InventoryItemNotFound as e:
        return jsonify({"error": str(e)}), 404
    except InsufficientStock as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"message": "Stock adjusted", "item": item.to_dict()})
