import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from erp_admin.extensions import db, bcrypt
from erp_admin.models.notification import Notification
from erp_admin.models.user import User, UserRole
from erp_admin.services import permission_service

logger = logging.getLogger(__name__)


class UserNotFound(LookupError):
    pass


class DuplicateEmail(Exception):
    pass


class RoleChangeForbidden(Exception):
    pass


_UNCHANGED = object()


def get_all():
    return User.query.order_by(User.created_at.desc()).all()


def get_all_by_organization(organization_id):
    return User.query.filter_by(organization_id=organization_id).order_by(User.name).all()


def get_by_id(user_id):
    return db.session.get(User, user_id)


def get_by_email(email):
    return User.query.filter(db.func.lower(User.email) == email.strip().lower()).first()


def get_by_role(role):
    return User.query.filter_by(role=role).all()


def get_active_users(roles=None):
    query = User.query.filter(User.is_active.is_(True))
    if roles:
        query = query.filter(User.role.in_(roles))
    return query.all()


def _require(user_id):
    user = get_by_id(user_id)
    if user is None:
        raise UserNotFound(f"User {user_id} not found")
    return user


def create_user(name, email, password, role=UserRole.BASIC, is_active=True,
                organization_id=None, manager_id=None, commit=True):
    """Create a user; BASIC users are provisioned with default permission rows.

    With ``commit=False`` the user is flushed but left in the caller's
    transaction.
    """
    if role not in UserRole.ALL:
        raise ValueError(f"Invalid role '{role}'")
    if get_by_email(email) is not None:
        raise DuplicateEmail(f"Email {email} is already registered")

    user = User(
        name=name.strip(),
        email=email.strip().lower(),
        password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        role=role,
        is_active=is_active,
        organization_id=organization_id,
        manager_id=manager_id,
    )
    try:
        db.session.add(user)
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except IntegrityError as e:
        db.session.rollback()
        raise DuplicateEmail(f"Email {email} is already registered") from e

    if role == UserRole.BASIC:
        permission_service.set_default_permissions(user.id, role, commit=commit)
    logger.info("Created %s user %s (%s)", role, user.id, user.email)
    return user


def update_user(user_id, name=None, email=None, password=None, manager_id=_UNCHANGED):
    """Update profile fields; ``None`` leaves a field alone, ``manager_id=None`` clears it."""
    user = _require(user_id)
    if name:
        user.name = name.strip()
    if email and email.strip().lower() != user.email:
        if get_by_email(email) is not None:
            db.session.rollback()
            raise DuplicateEmail(f"Email {email} is already registered")
        user.email = email.strip().lower()
    if password:
        user.password_hash = bcrypt.generate_password_hash(password).decode("utf-8")
    if manager_id is not _UNCHANGED:
        if manager_id is not None and manager_id == user.id:
            db.session.rollback()
            raise ValueError("A user cannot report to themselves")
        user.manager_id = manager_id
    db.session.commit()
    return user


def change_role(user_id, new_role, current_user_id):
    """Change a user's role and keep their permission rows consistent with it."""
    if new_role not in UserRole.ALL:
        raise ValueError(f"Invalid role '{new_role}'")
    user = _require(user_id)
    if user.id == current_user_id and user.is_admin and new_role != UserRole.ADMIN:
        raise RoleChangeForbidden("Admins cannot change their own role from Admin.")
    if user.role == new_role:
        return user

    user.role = new_role
    if new_role == UserRole.ADMIN:
        user.is_active = True
    db.session.commit()

    if new_role == UserRole.BASIC:
        permission_service.set_default_permissions(user.id, new_role)
    else:
        # Full-access roles are never represented as editable rows
        permission_service.delete_by_user_id(user.id)
    return user


def toggle_active(user_id):
    user = _require(user_id)
    user.is_active = not user.is_active
    db.session.commit()
    return user


def delete_user(user_id):
    user = _require(user_id)
    Notification.query.filter_by(user_id=user.id).delete(synchronize_session=False)
    permission_service.delete_by_user_id(user.id, commit=False)
    db.session.delete(user)
    db.session.commit()


def authenticate(email, password):
    """Return the user for valid, active credentials, else None."""
    user = get_by_email(email)
    if user is None or not bcrypt.check_password_hash(user.password_hash, password):
        return None
    if not user.is_active:
        logger.info("Login refused for inactive user %s", user.id)
        return None
    user.last_login = datetime.utcnow()
    db.session.commit()
    return user
