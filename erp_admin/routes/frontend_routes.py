from flask import Blueprint, render_template, url_for, flash, redirect, request, abort, current_app
from flask_login import login_user, current_user, logout_user, login_required

from erp_admin.controllers.permission_editor import PermissionEditor, ReadOnlyPermissions
from erp_admin.forms import AdjustStockForm, EditUserForm, LoginForm, NotificationForm, PermissionsForm, UserForm
from erp_admin.models.permission import ModuleId
from erp_admin.models.purchase_order import PurchaseOrderStatus
from erp_admin.models.user import UserRole
from erp_admin.routes.utils import module_required, notification_controller, role_required
from erp_admin.services import inventory_service, permission_service, purchase_service, user_service
from erp_admin.services.inventory_service import InsufficientStock, InventoryItemNotFound
from erp_admin.services.notification_service import NotificationValidationError
from erp_admin.services.permission_service import PermissionStoreError
from erp_admin.services.user_service import DuplicateEmail, RoleChangeForbidden, UserNotFound

frontend_bp = Blueprint("frontend", __name__)

ALL_ROLES = list(UserRole.ALL)


@frontend_bp.app_context_processor
def inject_notification_dropdown():
    """Header dropdown: newest notifications and the unread badge."""
    if not current_user.is_authenticated:
        return {}
    controller = notification_controller(limit=current_app.config["NOTIFICATION_DROPDOWN_LIMIT"])
    return {
        "dropdown_notifications": controller.notifications,
        "dropdown_unread_count": controller.unread_count,
        "dropdown_error": controller.error,
        "notification_refresh_ms": current_app.config["NOTIFICATION_REFRESH_SECONDS"] * 1000,
        "has_module": lambda module_id: permission_service.has_module_access(current_user.id, current_user.role, module_id),
        "ModuleId": ModuleId,
    }


@frontend_bp.route("/")
@frontend_bp.route("/index")
def index():
    if current_user.is_authenticated and current_user.is_active:
        return redirect(url_for("frontend.view_dashboard"))
    return redirect(url_for("frontend.login"))


@frontend_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated and current_user.is_active:
        return redirect(url_for("frontend.index"))
    form = LoginForm()
    if form.validate_on_submit():
        user = user_service.authenticate(form.email.data, form.password.data)
        if user is None:
            existing = user_service.get_by_email(form.email.data)
            if existing is not None and not existing.is_active:
                flash("Your account is not active. Please contact an administrator.", "warning")
            else:
                flash("Login Unsuccessful. Please check email and password", "danger")
            return render_template("login.html", title="Login", form=form)
        login_user(user, remember=form.remember_me.data)
        next_page = request.args.get("next")
        flash("Login Successful!", "success")
        return redirect(next_page) if next_page else redirect(url_for("frontend.view_dashboard"))
    return render_template("login.html", title="Login", form=form)


@frontend_bp.route("/logout")
@login_required
def logout():
    logout_user()
    flash("You have been logged out.", "info")
    return redirect(url_for("frontend.login"))


@frontend_bp.route("/dashboard")
@role_required(ALL_ROLES)
def view_dashboard():
    permissions = permission_service.get_effective_permissions(current_user.id, current_user.role)
    stats = {}
    low_stock = []
    recent_orders = []

    if permission_service.has_module_access(current_user.id, current_user.role, ModuleId.INVENTORY):
        low_stock = inventory_service.get_low_stock_items()[:6]
        stats["low_stock_items"] = len(low_stock)
    if permission_service.has_module_access(current_user.id, current_user.role, ModuleId.PURCHASE):
        stats["open_purchase_orders"] = sum(
            len(purchase_service.get_by_status(status))
            for status in (PurchaseOrderStatus.PENDING_APPROVAL, PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.ORDERED)
        )
        recent_orders = purchase_service.get_recent()
    if current_user.has_full_access:
        stats["active_users"] = len(user_service.get_active_users())

    return render_template(
        "dashboard.html",
        title="Dashboard",
        stats=stats,
        low_stock=low_stock,
        recent_orders=recent_orders,
        permissions=permissions,
    )


# --- Notification Routes ---

@frontend_bp.route("/notifications", methods=["GET", "POST"])
@role_required(ALL_ROLES)
def view_notifications():
    controller = notification_controller()
    form = NotificationForm()
    if form.validate_on_submit():
        if form.is_system_wide.data and not current_user.has_full_access:
            flash("Only admins and managers can send system-wide notifications.", "danger")
            return redirect(url_for("frontend.view_notifications"))
        try:
            if form.is_system_wide.data:
                result = controller.send_system_notification(form.title.data, form.message.data, form.type.data)
                success_message = f"System notification sent to {result} active users."
            else:
                result = controller.send_notification(form.title.data, form.message.data, form.type.data)
                success_message = "Notification sent."
        except NotificationValidationError as e:
            for field, message in e.errors.items():
                getattr(form, field).errors.append(message)
        else:
            if result is None:
                flash("The notification could not be sent. Please try again.", "danger")
            else:
                flash(success_message, "success")
                return redirect(url_for("frontend.view_notifications"))

    if controller.error is not None:
        flash("Notifications could not be loaded. Showing what is available.", "danger")
    return render_template(
        "notifications.html",
        title="Notifications",
        notifications=controller.notifications,
        unread_count=controller.unread_count,
        form=form,
    )


@frontend_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
@role_required(ALL_ROLES)
def mark_notification_read(notification_id):
    controller = notification_controller()
    if controller.find(notification_id) is None:
        abort(404)
    if not controller.mark_as_read(notification_id):
        flash("Could not mark the notification as read.", "danger")
    return redirect(request.referrer or url_for("frontend.view_notifications"))


@frontend_bp.route("/notifications/read_all", methods=["POST"])
@role_required(ALL_ROLES)
def mark_all_notifications_read():
    controller = notification_controller()
    if controller.mark_all_as_read():
        flash("All notifications marked as read.", "success")
    else:
        flash("Could not mark notifications as read.", "danger")
    return redirect(request.referrer or url_for("frontend.view_notifications"))


@frontend_bp.route("/notifications/<int:notification_id>/delete", methods=["POST"])
@role_required(ALL_ROLES)
def delete_notification(notification_id):
    controller = notification_controller()
    if controller.find(notification_id) is None:
        abort(404)
    if controller.delete_notification(notification_id):
        flash("Notification deleted.", "info")
    else:
        flash("Could not delete the notification.", "danger")
    return redirect(url_for("frontend.view_notifications"))


# --- User Management Routes ---

@frontend_bp.route("/admin/users")
@module_required(ModuleId.USER_MANAGEMENT)
def manage_users():
    if current_user.organization_id is not None:
        users = user_service.get_all_by_organization(current_user.organization_id)
    else:
        users = user_service.get_all()
    return render_template("admin_users.html", title="Manage Users", users=users, roles=UserRole.ALL)


def _in_scope(user):
    # Users attached to an organization only see that organization's members
    return current_user.organization_id is None or user.organization_id == current_user.organization_id


@frontend_bp.route("/admin/user/add", methods=["GET", "POST"])
@module_required(ModuleId.USER_MANAGEMENT)
def add_user():
    form = UserForm()
    if not current_user.is_admin:
        # Managers can only create basic users for their team
        form.role.choices = [c for c in form.role.choices if c[0] == UserRole.BASIC]
    if form.validate_on_submit():
        try:
            user = user_service.create_user(
                form.name.data, form.email.data, form.password.data,
                role=form.role.data,
                organization_id=current_user.organization_id,
                manager_id=current_user.id if current_user.is_manager else None,
            )
        except DuplicateEmail:
            form.email.errors.append("Email address already exists. Please use a different one.")
        except PermissionStoreError:
            current_app.logger.error("Default permissions could not be stored for new user", exc_info=True)
            flash("The user was created but default permissions could not be stored.", "warning")
            return redirect(url_for("frontend.manage_users"))
        else:
            flash(f"Account created for {user.name}.", "success")
            return redirect(url_for("frontend.manage_users"))
    return render_template("user_form.html", title="Add User", form=form, legend="New User")


@frontend_bp.route("/admin/user/<int:user_id>/edit", methods=["GET", "POST"])
@module_required(ModuleId.USER_MANAGEMENT)
def edit_user(user_id):
    user = user_service.get_by_id(user_id)
    if user is None or not _in_scope(user):
        abort(404)
    if not current_user.is_admin and not user.is_basic:
        flash("Managers can only edit basic users.", "danger")
        return redirect(url_for("frontend.manage_users"))

    form = EditUserForm(obj=user)
    if user.is_basic:
        form.manager_id.choices = [(0, "No manager")] + [
            (m.id, m.name) for m in user_service.get_by_role(UserRole.MANAGER) if _in_scope(m)
        ]
    else:
        del form.manager_id

    if form.validate_on_submit():
        changes = {"name": form.name.data, "email": form.email.data, "password": form.password.data or None}
        if user.is_basic:
            changes["manager_id"] = form.manager_id.data or None
        try:
            user_service.update_user(user.id, **changes)
        except DuplicateEmail:
            form.email.errors.append("Email address already exists. Please use a different one.")
        else:
            flash(f"{user.name} has been updated.", "success")
            return redirect(url_for("frontend.manage_users"))
    return render_template("user_form.html", title="Edit User", form=form, legend=f"Edit {user.name}")


@frontend_bp.route("/admin/user/activate/<int:user_id>", methods=["POST"])
@role_required(UserRole.ADMIN)
def activate_user(user_id):
    return _set_active(user_id, True)


@frontend_bp.route("/admin/user/deactivate/<int:user_id>", methods=["POST"])
@role_required(UserRole.ADMIN)
def deactivate_user(user_id):
    return _set_active(user_id, False)


def _set_active(user_id, active):
    user = user_service.get_by_id(user_id)
    if user is None:
        abort(404)
    if user.id == current_user.id:
        flash("Admins cannot deactivate their own account.", "danger")
        return redirect(url_for("frontend.manage_users"))
    if user.is_active != active:
        user_service.toggle_active(user.id)
    if active:
        flash(f"User {user.name} has been activated.", "success")
    else:
        flash(f"User {user.name} has been deactivated.", "warning")
    return redirect(url_for("frontend.manage_users"))


@frontend_bp.route("/admin/user/set_role/<int:user_id>/<string:new_role>", methods=["POST"])
@role_required(UserRole.ADMIN)
def set_user_role(user_id, new_role):
    if new_role not in UserRole.ALL:
        flash("Invalid role specified.", "danger")
        return redirect(url_for("frontend.manage_users"))
    try:
        user = user_service.change_role(user_id, new_role, current_user.id)
    except UserNotFound:
        abort(404)
    except RoleChangeForbidden as e:
        flash(str(e), "danger")
        return redirect(url_for("frontend.manage_users"))
    flash(f"{user.name}'s role has been set to {new_role.capitalize()}.", "success")
    return redirect(url_for("frontend.manage_users"))


@frontend_bp.route("/admin/user/<int:user_id>/permissions", methods=["GET", "POST"])
@module_required(ModuleId.USER_MANAGEMENT)
def user_permissions(user_id):
    user = user_service.get_by_id(user_id)
    if user is None:
        abort(404)
    read_only = request.method == "GET" and request.args.get("edit") != "1"
    editor = PermissionEditor(user.id, user.role, read_only=read_only).load()

    form = PermissionsForm()
    form.modules.choices = [(p.module_id, p.module_name) for p in editor.editable_modules]
    if request.method == "GET":
        form.modules.data = [p.module_id for p in editor.editable_modules if p.can_view]

    if form.validate_on_submit():
        editor.apply(form.modules.data or [])
        try:
            if editor.save():
                flash(f"Permissions for {user.name} saved.", "success")
        except ReadOnlyPermissions:
            abort(400)
        except PermissionStoreError:
            current_app.logger.error(f"Saving permissions for user {user.id} failed", exc_info=True)
            flash("Permissions could not be saved. Please try again.", "danger")
        return redirect(url_for("frontend.user_permissions", user_id=user.id))

    return render_template("user_permissions.html", title="User Permissions", user=user, editor=editor, form=form)


# --- Inventory Routes ---

@frontend_bp.route("/inventory")
@module_required(ModuleId.INVENTORY)
def view_inventory():
    items = inventory_service.get_all_items()
    return render_template("inventory.html", title="Inventory", items=items, form=AdjustStockForm())


@frontend_bp.route("/inventory/<int:item_id>/adjust", methods=["POST"])
@module_required(ModuleId.INVENTORY)
def adjust_stock(item_id):
    form = AdjustStockForm()
    if not form.validate_on_submit():
        flash("Enter a positive adjustment quantity.", "danger")
        return redirect(url_for("frontend.view_inventory"))
    delta = form.adjustment.data if form.adjustment_type.data == "increase" else -form.adjustment.data
    try:
        item = inventory_service.adjust_quantity(item_id, delta, performed_by=current_user.id)
    except InventoryItemNotFound:
        abort(404)
    except InsufficientStock as e:
        flash(str(e), "danger")
        return redirect(url_for("frontend.view_inventory"))
    flash(f"Stock for {item.name} is now {item.current_quantity} {item.unit_of_measure}.", "success")
    return redirect(url_for("frontend.view_inventory"))
