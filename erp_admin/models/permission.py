from dataclasses import dataclass
from datetime import datetime

from erp_admin.extensions import db
from erp_admin.models.user import UserRole


class ModuleId:
    DASHBOARD = "dashboard"
    USER_MANAGEMENT = "users"
    INVENTORY = "inventory"
    WORK_ORDERS = "workOrders"
    PURCHASE = "purchase"
    SALES = "sales"


# Display order matters: the permissions editor renders in this order
MODULES = [
    (ModuleId.DASHBOARD, "Dashboard"),
    (ModuleId.USER_MANAGEMENT, "User Management"),
    (ModuleId.INVENTORY, "Inventory"),
    (ModuleId.WORK_ORDERS, "Work Orders"),
    (ModuleId.PURCHASE, "Purchase Management"),
    (ModuleId.SALES, "Sales"),
]
MODULE_NAMES = dict(MODULES)

# Modules an admin can grant or revoke for a BASIC user
OPERATIONAL_MODULES = (
    ModuleId.INVENTORY,
    ModuleId.WORK_ORDERS,
    ModuleId.PURCHASE,
    ModuleId.SALES,
)

# Starting grants per role. Modules missing from a role's entry default to False.
ROLE_DEFAULT_GRANTS = {
    UserRole.ADMIN: {module_id: True for module_id, _ in MODULES},
    UserRole.MANAGER: {module_id: True for module_id, _ in MODULES},
    UserRole.BASIC: {ModuleId.DASHBOARD: True},
}


@dataclass
class ModulePermission:
    module_id: str
    module_name: str
    can_view: bool

    def to_dict(self):
        return {"module_id": self.module_id, "module_name": self.module_name, "can_view": self.can_view}


@dataclass(frozen=True)
class FullAccess:
    """Returned instead of module rows for roles with fixed, full access."""
    role: str

    @property
    def message(self):
        if self.role == UserRole.ADMIN:
            return "Admin users have full access to all system features."
        return "Manager users have access to manage their team and all modules."


def get_default_permissions(role):
    """Canonical starting grant set for ``role``.

    Unknown roles only see the dashboard. BASIC users never get user
    management, whatever the defaults table says.
    """
    grants = ROLE_DEFAULT_GRANTS.get(role)
    permissions = []
    for module_id, module_name in MODULES:
        if grants is None:
            can_view = module_id == ModuleId.DASHBOARD
        else:
            can_view = bool(grants.get(module_id, False))
        if role == UserRole.BASIC and module_id == ModuleId.USER_MANAGEMENT:
            can_view = False
        permissions.append(ModulePermission(module_id, module_name, can_view))
    return permissions


class Permission(db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    module_id = db.Column(db.String(30), nullable=False)
    can_view = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "module_id", name="uq_permissions_user_module"),
    )

    def __repr__(self):
        return f"<Permission User: {self.user_id} Module: {self.module_id} View: {self.can_view}>"
