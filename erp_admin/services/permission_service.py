import logging

from sqlalchemy.exc import SQLAlchemyError

from erp_admin.extensions import db
from erp_admin.models.permission import (
    FullAccess,
    ModuleId,
    ModulePermission,
    Permission,
    get_default_permissions,
)
from erp_admin.models.user import UserRole

logger = logging.getLogger(__name__)


class PermissionStoreError(Exception):
    pass


class PermissionExists(Exception):
    def __init__(self, user_id, module_id):
        super().__init__(f"Permission already exists for user {user_id} and module {module_id}")


def _store_failure(action, exc):
    db.session.rollback()
    logger.error("Permission store failure during %s: %s", action, exc)
    return PermissionStoreError(f"Failed to {action}")


def get_all():
    return Permission.query.all()


def get_by_user_id(user_id):
    return Permission.query.filter_by(user_id=user_id).all()


def get_by_user_and_module(user_id, module_id):
    return Permission.query.filter_by(user_id=user_id, module_id=module_id).first()


def create(user_id, module_id, can_view):
    if get_by_user_and_module(user_id, module_id) is not None:
        raise PermissionExists(user_id, module_id)
    permission = Permission(user_id=user_id, module_id=module_id, can_view=bool(can_view))
    try:
        db.session.add(permission)
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"create permission {module_id} for user {user_id}", e) from e
    return permission


def update(permission_id, can_view):
    permission = db.session.get(Permission, permission_id)
    if permission is None:
        return None
    permission.can_view = bool(can_view)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"update permission {permission_id}", e) from e
    return permission


def delete(permission_id):
    permission = db.session.get(Permission, permission_id)
    if permission is None:
        return
    try:
        db.session.delete(permission)
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"delete permission {permission_id}", e) from e


def delete_by_user_id(user_id, commit=True):
    Permission.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    if commit:
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            raise _store_failure(f"delete permissions for user {user_id}", e) from e


def save_permissions(user_id, permissions, commit=True):
    """Replace every stored row for ``user_id`` with ``permissions``.

    Delete-then-insert inside one transaction, so two editors saving the
    same user end up with whichever saved last, in full. With
    ``commit=False`` the rows are only flushed into the caller's transaction.
    """
    try:
        delete_by_user_id(user_id, commit=False)
        for perm in permissions:
            can_view = perm.can_view
            if perm.module_id == ModuleId.USER_MANAGEMENT:
                can_view = False
            db.session.add(Permission(user_id=user_id, module_id=perm.module_id, can_view=can_view))
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except SQLAlchemyError as e:
        raise _store_failure(f"save permissions for user {user_id}", e) from e
    logger.info("Saved %s permission rows for user %s", len(permissions), user_id)


def set_default_permissions(user_id, role, commit=True):
    """Reset ``user_id`` to the canonical grant set for ``role``."""
    save_permissions(user_id, get_default_permissions(role), commit=commit)


def get_effective_permissions(user_id, role):
    """What ``user_id`` may see.

    ADMIN and MANAGER get the FullAccess sentinel. Everyone else gets the
    role defaults with stored rows laid over them; BASIC users never get
    user management.
    """
    if role in UserRole.FULL_ACCESS:
        return FullAccess(role)

    defaults = get_default_permissions(role)
    stored = {p.module_id: p.can_view for p in get_by_user_id(user_id)}
    effective = []
    for default in defaults:
        can_view = stored.get(default.module_id, default.can_view)
        if role == UserRole.BASIC and default.module_id == ModuleId.USER_MANAGEMENT:
            can_view = False
        effective.append(ModulePermission(default.module_id, default.module_name, can_view))
    return effective


def has_module_access(user_id, role, module_id):
    try:
        permissions = get_effective_permissions(user_id, role)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error checking module access for user %s, module %s: %s", user_id, module_id, e)
        return False
    if isinstance(permissions, FullAccess):
        return True
    return any(p.module_id == module_id and p.can_view for p in permissions)
