import logging
from dataclasses import replace

from erp_admin.models.permission import FullAccess, ModuleId, OPERATIONAL_MODULES, get_default_permissions
from erp_admin.services import permission_service

logger = logging.getLogger(__name__)


class ReadOnlyPermissions(Exception):
    pass


class PermissionEditor:
    """Working copy of one user's module grants, as shown in the permissions form.

    Toggling only touches the in-memory working set; save() replaces every
    stored row for the user with it. ADMIN and MANAGER users have nothing to
    edit and expose an explanatory message instead.
    """

    def __init__(self, user_id, role, read_only=False):
        self.user_id = user_id
        self.role = role
        self.read_only = read_only
        self.full_access = None
        self.permissions = []
        self.error = None

    def load(self):
        if self.user_id and self.user_id > 0:
            effective = permission_service.get_effective_permissions(self.user_id, self.role)
        else:
            # New user that has not been saved yet
            effective = get_default_permissions(self.role)
        if isinstance(effective, FullAccess):
            self.full_access = effective
            self.permissions = []
        else:
            self.full_access = None
            self.permissions = effective
        return self

    @property
    def message(self):
        return self.full_access.message if self.full_access else None

    @property
    def editable_modules(self):
        """The operational modules shown as checkboxes, in display order."""
        return [p for p in self.permissions if p.module_id in OPERATIONAL_MODULES]

    def can_view(self, module_id):
        if self.full_access is not None:
            return True
        return any(p.module_id == module_id and p.can_view for p in self.permissions)

    def toggle(self, module_id, can_view):
        if self.read_only:
            return False
        if self.full_access is not None or module_id == ModuleId.USER_MANAGEMENT:
            return False
        changed = False
        updated = []
        for permission in self.permissions:
            if permission.module_id == module_id and permission.can_view != bool(can_view):
                permission = replace(permission, can_view=bool(can_view))
                changed = True
            updated.append(permission)
        self.permissions = updated
        return changed

    def apply(self, granted_module_ids):
        """Set every editable module from a collection of granted ids (form submit)."""
        granted = set(granted_module_ids)
        for permission in self.editable_modules:
            self.toggle(permission.module_id, permission.module_id in granted)

    def save(self):
        if self.read_only:
            raise ReadOnlyPermissions("Permissions are open in read-only mode")
        if self.full_access is not None:
            return False
        permission_service.save_permissions(self.user_id, self.permissions)
        logger.info("Permissions for user %s saved: %s", self.user_id,
                    ", ".join(p.module_id for p in self.permissions if p.can_view) or "none")
        return True
