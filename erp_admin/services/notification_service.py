"""
Read/write operations over the notification store.

Visibility rule: a user sees exactly the rows whose ``user_id`` is theirs.
System-wide notifications are fanned out to one row per user that is
active at send time, so the same rule covers them and a user activated
later gets no retroactive copies.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from erp_admin.extensions import db
from erp_admin.models.notification import Notification, NotificationStatus, NotificationType
from erp_admin.models.user import User

logger = logging.getLogger(__name__)


class NotificationStoreError(Exception):
    """The notification store could not be read or written."""


class NotificationNotFound(LookupError):
    def __init__(self, notification_id):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id


class NotificationValidationError(ValueError):
    def __init__(self, errors):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors


def validate_notification(title, message, type):
    """Return a field -> message mapping; empty when the input is acceptable."""
    errors = {}
    if not title or not str(title).strip():
        errors["title"] = "Title is required."
    elif len(title) > 200:
        errors["title"] = "Title must be at most 200 characters."
    if not message or not str(message).strip():
        errors["message"] = "Message is required."
    if type not in NotificationType.ALL:
        errors["type"] = f"Unknown notification type '{type}'."
    return errors


def _store_failure(action, exc):
    db.session.rollback()
    logger.error("Notification store failure during %s: %s", action, exc)
    return NotificationStoreError(f"Failed to {action}")


def _visible_to(user_id):
    return Notification.query.filter(Notification.user_id == user_id)


# --- Reads ---

def get_by_id(notification_id):
    try:
        return db.session.get(Notification, notification_id)
    except SQLAlchemyError as e:
        raise _store_failure(f"load notification {notification_id}", e) from e


def get_by_user(user_id, limit=None):
    """Notifications visible to ``user_id``, newest first, optionally capped.

    ``limit`` must be a positive integer when given.
    """
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")
    try:
        query = _visible_to(user_id).order_by(Notification.created_at.desc(), Notification.id.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()
    except SQLAlchemyError as e:
        raise _store_failure(f"fetch notifications for user {user_id}", e) from e


def get_unread_by_user(user_id):
    try:
        return (
            _visible_to(user_id)
            .filter(Notification.status == NotificationStatus.UNREAD)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        raise _store_failure(f"fetch unread notifications for user {user_id}", e) from e


def get_count_by_user(user_id):
    try:
        return _visible_to(user_id).count()
    except SQLAlchemyError as e:
        raise _store_failure(f"count notifications for user {user_id}", e) from e


def get_unread_count_by_user(user_id):
    try:
        return _visible_to(user_id).filter(Notification.status == NotificationStatus.UNREAD).count()
    except SQLAlchemyError as e:
        raise _store_failure(f"count unread notifications for user {user_id}", e) from e


# --- Read-state transitions ---

def mark_as_read(notification_id):
    """Move one notification to READ.

    Returns True if this call changed it, False if it was already read.
    Raises NotificationNotFound when there is no such notification.
    """
    notification = get_by_id(notification_id)
    if notification is None:
        raise NotificationNotFound(notification_id)
    if not notification.mark_as_read():
        return False
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"mark notification {notification_id} as read", e) from e
    return True


def mark_all_as_read(user_id):
    """Move every unread notification of ``user_id`` to READ in one statement.

    Returns the number of notifications changed.
    """
    now = datetime.utcnow()
    stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.status == NotificationStatus.UNREAD)
        .values(status=NotificationStatus.READ, read_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.session.execute(stmt)
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"mark all notifications read for user {user_id}", e) from e
    # Rows already loaded in this session still hold the old status
    db.session.expire_all()
    return result.rowcount


# --- Deletion ---

def delete_notification(notification_id):
    notification = get_by_id(notification_id)
    if notification is None:
        raise NotificationNotFound(notification_id)
    try:
        db.session.delete(notification)
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"delete notification {notification_id}", e) from e


def delete_by_user(user_id):
    try:
        count = _visible_to(user_id).delete(synchronize_session=False)
        db.session.commit()
        return count
    except SQLAlchemyError as e:
        raise _store_failure(f"delete notifications for user {user_id}", e) from e


def delete_old_notifications(days=30):
    """Purge notifications created more than ``days`` ago. Only runs when called."""
    cutoff = datetime.utcnow() - timedelta(days=days)
    try:
        count = Notification.query.filter(Notification.created_at < cutoff).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"delete notifications older than {days} days", e) from e
    logger.info("Purged %s notifications older than %s days", count, days)
    return count


# --- Creation ---

def _build(user_id, title, message, type, link, entity_type, linked_entity_id):
    return Notification(
        user_id=user_id,
        title=title.strip(),
        message=message.strip(),
        type=type,
        status=NotificationStatus.UNREAD,
        link=link,
        entity_type=entity_type,
        linked_entity_id=linked_entity_id,
    )


def send_notification(user_id, title, message, type=NotificationType.INFO,
                      link=None, entity_type=None, linked_entity_id=None):
    """Create one personal UNREAD notification and return it."""
    errors = validate_notification(title, message, type)
    if errors:
        raise NotificationValidationError(errors)
    notification = _build(user_id, title, message, type, link, entity_type, linked_entity_id)
    try:
        db.session.add(notification)
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"send notification to user {user_id}", e) from e
    return notification


def send_to_users(user_ids, title, message, type=NotificationType.INFO,
                  link=None, entity_type=None, linked_entity_id=None):
    """Create one UNREAD notification per user in a single transaction."""
    errors = validate_notification(title, message, type)
    if errors:
        raise NotificationValidationError(errors)
    notifications = [
        _build(user_id, title, message, type, link, entity_type, linked_entity_id)
        for user_id in dict.fromkeys(user_ids)
    ]
    if not notifications:
        return []
    try:
        db.session.add_all(notifications)
        db.session.commit()
    except SQLAlchemyError as e:
        raise _store_failure(f"send notification to {len(notifications)} users", e) from e
    return notifications


def send_system_notification(title, message, type=NotificationType.INFO,
                             link=None, entity_type=None, linked_entity_id=None):
    """Fan a notification out to every currently active user.

    Returns the number of users it was delivered to.
    """
    errors = validate_notification(title, message, type)
    if errors:
        raise NotificationValidationError(errors)
    try:
        active_ids = [row.id for row in db.session.query(User.id).filter(User.is_active.is_(True)).all()]
    except SQLAlchemyError as e:
        raise _store_failure("load active users", e) from e
    delivered = send_to_users(active_ids, title, message, type, link, entity_type, linked_entity_id)
    logger.info("System notification '%s' delivered to %s active users", title, len(delivered))
    return len(delivered)
