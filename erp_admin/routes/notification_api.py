from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from erp_admin.models.notification import NotificationType
from erp_admin.models.user import UserRole
from erp_admin.routes.utils import notification_controller, role_required
from erp_admin.services.notification_service import NotificationValidationError

notification_bp = Blueprint("notification_api", __name__, url_prefix="/api")

ALL_ROLES = list(UserRole.ALL)


@notification_bp.route("/notifications", methods=["GET"])
@role_required(ALL_ROLES, api=True)
def get_notifications():
    """Notifications of the logged-in user, newest first; ?limit= caps the list."""
    limit = request.args.get("limit", type=int)
    if limit is not None and limit < 1:
        return jsonify({"error": "limit must be a positive integer"}), 400
    controller = notification_controller(limit=limit)
    state = controller.state()
    if controller.error is not None:
        return jsonify(state), 503
    return jsonify(state)


@notification_bp.route("/notifications/unread_count", methods=["GET"])
@role_required(ALL_ROLES, api=True)
def get_unread_count():
    controller = notification_controller(limit=1)
    if controller.error is not None:
        return jsonify({"error": str(controller.error)}), 503
    return jsonify({"unread_count": controller.unread_count})


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["PUT"])
@role_required(ALL_ROLES, api=True)
def mark_notification_read(notification_id):
    """Mark a specific notification as read."""
    controller = notification_controller()
    if controller.find(notification_id) is None:
        # Not in the caller's feed: either gone or someone else's
        return jsonify({"error": f"Notification {notification_id} not found"}), 404
    if not controller.mark_as_read(notification_id):
        return jsonify({"error": "Could not mark notification as read"}), 500
    return jsonify({"message": "Notification marked as read", "notification_id": notification_id,
                    "unread_count": controller.unread_count})


@notification_bp.route("/notifications/read_all", methods=["PUT"])
@role_required(ALL_ROLES, api=True)
def mark_all_read():
    controller = notification_controller()
    if not controller.mark_all_as_read():
        return jsonify({"error": "Could not mark notifications as read"}), 500
    return jsonify({"message": "All notifications marked as read", "unread_count": 0})


@notification_bp.route("/notifications/<int:notification_id>", methods=["DELETE"])
@role_required(ALL_ROLES, api=True)
def delete_notification(notification_id):
    controller = notification_controller()
    if controller.find(notification_id) is None:
        return jsonify({"error": f"Notification {notification_id} not found"}), 404
    if not controller.delete_notification(notification_id):
        return jsonify({"error": "Could not delete notification"}), 500
    return jsonify({"message": "Notification deleted", "unread_count": controller.unread_count})


@notification_bp.route("/notifications", methods=["POST"])
@role_required(ALL_ROLES, api=True)
def create_notification():
    """Send a notification to yourself, or to every active user (admins and managers only)."""
    data = request.get_json(silent=True) or {}
    title = data.get("title", "")
    message = data.get("message", "")
    type = data.get("type", NotificationType.INFO)
    system_wide = bool(data.get("is_system_wide"))

    if system_wide and not current_user.has_full_access:
        return jsonify({"error": "Only admins and managers can send system-wide notifications."}), 403

    controller = notification_controller()
    try:
        if system_wide:
            count = controller.send_system_notification(title, message, type)
            if count is None:
                return jsonify({"error": "Could not send notification"}), 500
            current_app.logger.info(f"User {current_user.id} sent system notification to {count} users")
            return jsonify({"message": "System notification sent", "delivered": count}), 201
        notification_id = controller.send_notification(title, message, type)
    except NotificationValidationError as e:
        return jsonify({"error": "Validation failed", "fields": e.errors}), 400
    if notification_id is None:
        return jsonify({"error": "Could not send notification"}), 500
    return jsonify({"message": "Notification sent", "notification_id": notification_id}), 201
