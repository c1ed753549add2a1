from erp_admin.models.organization import Organization
from erp_admin.models.user import User, UserRole
from erp_admin.models.notification import Notification, NotificationStatus, NotificationType
from erp_admin.models.permission import Permission
from erp_admin.models.inventory import InventoryItem
from erp_admin.models.purchase_order import PurchaseOrder, PurchaseOrderItem

__all__ = [
    "Organization",
    "User",
    "UserRole",
    "Notification",
    "NotificationStatus",
    "NotificationType",
    "Permission",
    "InventoryItem",
    "PurchaseOrder",
    "PurchaseOrderItem",
]
