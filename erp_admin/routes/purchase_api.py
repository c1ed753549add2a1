from flask import Blueprint, jsonify, request
from flask_login import current_user
from datetime import datetime

from erp_admin.models.permission import ModuleId
from erp_admin.routes.utils import module_required
from erp_admin.services import purchase_service
from erp_admin.services.purchase_service import InvalidStatusTransition, PurchaseOrderLocked, PurchaseOrderNotFound

purchase_bp = Blueprint("purchase_api", __name__, url_prefix="/api")

# --- Purchase Order CRUD ---


@purchase_bp.route("/purchase_orders", methods=["GET"])
@module_required(ModuleId.PURCHASE, api=True)
def get_purchase_orders():
    """Get a list of purchase orders, optionally filtered by ?status=."""
    status = request.args.get("status")
    orders = purchase_service.get_by_status(status) if status else purchase_service.get_all()
    return jsonify([o.to_dict() for o in orders])


@purchase_bp.route("/purchase_orders", methods=["POST"])
@module_required(ModuleId.PURCHASE, api=True)
def create_purchase_order():
    """Create a new purchase order."""
    data = request.get_json(silent=True)
    required_fields = ["supplier_name", "items"]
    if not data or not all(field in data for field in required_fields):
        return jsonify({"error": f"Missing required fields: {', '.join(required_fields)}"}), 400

    expected_delivery = None
    if data.get("expected_delivery_date"):
        # Validate expected delivery date format (YYYY-MM-DD)
        try:
            expected_delivery = datetime.strptime(data["expected_delivery_date"], "%Y-%m-%d").date()
        except ValueError:
            return jsonify({"error": "Invalid expected_delivery_date format. Use YYYY-MM-DD."}), 400

    try:
        order = purchase_service.create_order(
            data["supplier_name"],
            data["items"],
            created_by=current_user.id,
            expected_delivery_date=expected_delivery,
            notes=data.get("notes"),
        )
    except (KeyError, ValueError) as e:
        return jsonify({"error": f"Invalid purchase order: {e}"}), 400
    return jsonify({"message": "Purchase order created successfully", "order": order.to_dict(include_items=True)}), 201


@purchase_bp.route("/purchase_orders/<int:order_id>", methods=["GET"])
@module_required(ModuleId.PURCHASE, api=True)
def get_purchase_order(order_id):
    """Get details for a specific purchase order."""
    try:
        order = purchase_service.get_by_id(order_id)
    except PurchaseOrderNotFound as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(order.to_dict(include_items=True))


@purchase_bp.route("/purchase_orders/<int:order_id>/status", methods=["PUT"])
@module_required(ModuleId.PURCHASE, api=True)
def update_purchase_order_status(order_id):
    data = request.get_json(silent=True) or {}
    if "status" not in data:
        return jsonify({"error": "Missing required field: status"}), 400
    try:
        order = purchase_service.update_status(order_id, data["status"], changed_by=current_user.id)
    except PurchaseOrderNotFound as e:
        return jsonify({"error": str(e)}), 404
    except InvalidStatusTransition as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"message": "Purchase order updated successfully", "order": order.to_dict(include_items=True)})


@purchase_bp.route("/purchase_orders/<int:order_id>", methods=["DELETE"])
@module_required(ModuleId.PURCHASE, api=True)
def delete_purchase_order(order_id):
    """Delete a draft or cancelled purchase order."""
    try:
        purchase_service.delete_order(order_id)
    except PurchaseOrderNotFound as e:
        return jsonify({"error": str(e)}), 404
    except PurchaseOrderLocked as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"message": "Purchase order deleted successfully"})
