from functools import wraps

from flask import current_app, flash, jsonify, redirect, request, url_for
from flask_login import current_user, logout_user

from erp_admin.controllers.notification_controller import NotificationController
from erp_admin.services import permission_service


def _reject_inactive(api):
    if not current_user.is_authenticated:
        if api:
            return jsonify({"error": "Authentication required"}), 401
        flash("Please log in to access this page.", "info")
        return redirect(url_for("frontend.login", next=request.url))
    if not current_user.is_active:
        logout_user()
        if api:
            return jsonify({"error": "Account is not active"}), 403
        flash("Your account is not active. Please contact an administrator.", "warning")
        return redirect(url_for("frontend.login"))
    return None


# Role-based access control decorator
def role_required(role_name_or_list, api=False):
    allowed_roles = [role_name_or_list] if isinstance(role_name_or_list, str) else list(role_name_or_list)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            rejection = _reject_inactive(api)
            if rejection is not None:
                return rejection
            # Admin has access to everything this decorator is applied to
            if current_user.is_admin or current_user.role in allowed_roles:
                return f(*args, **kwargs)
            if api:
                return jsonify({"error": "You do not have permission to perform this action."}), 403
            flash("You do not have permission to access this page.", "danger")
            return redirect(url_for("frontend.view_dashboard"))
        return decorated_function
    return decorator


def module_required(module_id, api=False):
    """Gate a view on the current user's effective permission for ``module_id``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            rejection = _reject_inactive(api)
            if rejection is not None:
                return rejection
            if permission_service.has_module_access(current_user.id, current_user.role, module_id):
                return f(*args, **kwargs)
            if api:
                return jsonify({"error": f"No access to module '{module_id}'."}), 403
            flash("You do not have access to this module.", "danger")
            return redirect(url_for("frontend.view_dashboard"))
        return decorated_function
    return decorator


def notification_controller(limit=None):
    """Request-scoped controller for the logged-in user, already fetched."""
    controller = NotificationController(current_app._get_current_object(), current_user.id, limit=limit)
    controller.refetch()
    return controller
