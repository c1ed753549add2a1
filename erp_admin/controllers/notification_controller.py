"""
Client-side orchestration of one user's notification feed.

The controller owns what a notification widget shows (``notifications``,
``unread_count``, ``is_loading``, ``error``), refreshes it on a timer while it
is started, and applies the result of successful mutations locally instead of
refetching. Every fetch and mutation for a user runs under that user's lock,
so a poll tick can never overwrite the outcome of mark-all-as-read with an
older read.
"""
from contextlib import nullcontext
import logging
import threading

from flask import has_app_context

from erp_admin.controllers.notification_source import PollingNotificationSource, DEFAULT_REFRESH_SECONDS
from erp_admin.models.notification import NotificationStatus, NotificationType
from erp_admin.services import notification_service
from erp_admin.services.notification_service import (
    NotificationNotFound,
    NotificationStoreError,
    NotificationValidationError,
    validate_notification,
)

logger = logging.getLogger(__name__)

_user_locks = {}
_user_locks_guard = threading.Lock()


def _lock_for(user_id):
    with _user_locks_guard:
        return _user_locks.setdefault(user_id, threading.RLock())


class NotificationController:

    def __init__(self, app, user_id, source=None, limit=None, service=notification_service):
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit}")
        self.app = app
        self.user_id = user_id
        self.limit = limit
        self.service = service
        if source is None:
            interval = app.config.get("NOTIFICATION_REFRESH_SECONDS", DEFAULT_REFRESH_SECONDS)
            source = PollingNotificationSource(interval=interval)
        self.source = source

        self.notifications = []
        self.unread_count = 0
        self.is_loading = False
        self.error = None

        self._lock = _lock_for(user_id)
        self._subscription = None

    # --------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------
    def start(self):
        """Initial fetch, then periodic refresh until stop()."""
        if not self.user_id or self._subscription is not None:
            return self
        self.refetch()
        self._subscription = self.source.subscribe(self.user_id, self._on_tick)
        return self

    def stop(self):
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()

    @property
    def is_running(self):
        return self._subscription is not None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    # --------------------------------------------------
    # READS
    # --------------------------------------------------
    def _app_scope(self):
        if has_app_context():
            return nullcontext()
        return self.app.app_context()

    def _fetch(self):
        self.is_loading = True
        try:
            with self._app_scope():
                rows = self.service.get_by_user(self.user_id, self.limit)
                notifications = [row.to_dict() for row in rows]
                unread_count = self.service.get_unread_count_by_user(self.user_id)
        except NotificationStoreError as e:
            # Keep showing the last good list
            logger.error("Error fetching notifications for user %s: %s", self.user_id, e)
            self.error = e
            return False
        finally:
            self.is_loading = False
        self.notifications = notifications
        self.unread_count = unread_count
        self.error = None
        return True

    def refetch(self):
        if not self.user_id:
            return False
        with self._lock:
            return self._fetch()

    def _on_tick(self):
        if not self._lock.acquire(blocking=False):
            logger.debug("Skipping notification refresh for user %s; another update is in flight", self.user_id)
            return
        try:
            self._fetch()
        finally:
            self._lock.release()

    # --------------------------------------------------
    # MUTATIONS
    # --------------------------------------------------
    def find(self, notification_id):
        for entry in self.notifications:
            if entry["id"] == notification_id:
                return entry
        return None

    def mark_as_read(self, notification_id):
        with self._lock:
            try:
                with self._app_scope():
                    changed = self.service.mark_as_read(notification_id)
            except NotificationNotFound:
                logger.info("Notification %s no longer exists; nothing to mark", notification_id)
                return False
            except NotificationStoreError as e:
                logger.error("Error marking notification %s as read: %s", notification_id, e)
                return False

            entry = self.find(notification_id)
            if entry is not None:
                # The badge follows the local list, which may predate a read elsewhere
                was_unread = entry["status"] == NotificationStatus.UNREAD
                entry["status"] = NotificationStatus.READ
            else:
                was_unread = changed
            if was_unread:
                self.unread_count = max(0, self.unread_count - 1)
            return True

    def mark_all_as_read(self):
        with self._lock:
            try:
                with self._app_scope():
                    self.service.mark_all_as_read(self.user_id)
            except NotificationStoreError as e:
                logger.error("Error marking all notifications as read for user %s: %s", self.user_id, e)
                return False

            for entry in self.notifications:
                entry["status"] = NotificationStatus.READ
            self.unread_count = 0
            return True

    def delete_notification(self, notification_id):
        with self._lock:
            try:
                with self._app_scope():
                    self.service.delete_notification(notification_id)
            except NotificationNotFound:
                logger.info("Notification %s was already deleted", notification_id)
            except NotificationStoreError as e:
                logger.error("Error deleting notification %s: %s", notification_id, e)
                return False

            entry = self.find(notification_id)
            if entry is not None:
                self.notifications = [n for n in self.notifications if n["id"] != notification_id]
                if entry["status"] == NotificationStatus.UNREAD:
                    self.unread_count = max(0, self.unread_count - 1)
            return True

    def send_notification(self, title, message, type=NotificationType.INFO, **extra):
        """Send to the controller's own user. Returns the new id, or None on store failure.

        Invalid input raises NotificationValidationError before anything is stored.
        """
        errors = validate_notification(title, message, type)
        if errors:
            raise NotificationValidationError(errors)
        with self._lock:
            try:
                with self._app_scope():
                    notification = self.service.send_notification(self.user_id, title, message, type, **extra)
                    notification_id = notification.id
            except NotificationStoreError as e:
                logger.error("Error sending notification to user %s: %s", self.user_id, e)
                return None
            self._fetch()
            return notification_id

    def send_system_notification(self, title, message, type=NotificationType.INFO, **extra):
        """Fan out to all active users. Returns the delivery count, or None on store failure."""
        errors = validate_notification(title, message, type)
        if errors:
            raise NotificationValidationError(errors)
        with self._lock:
            try:
                with self._app_scope():
                    count = self.service.send_system_notification(title, message, type, **extra)
            except NotificationStoreError as e:
                logger.error("Error sending system notification: %s", e)
                return None
            self._fetch()
            return count

    def state(self):
        return {
            "notifications": list(self.notifications),
            "unread_count": self.unread_count,
            "is_loading": self.is_loading,
            "error": str(self.error) if self.error else None,
        }
