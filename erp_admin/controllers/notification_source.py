from apscheduler.schedulers.background import BackgroundScheduler
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SECONDS = 30

# ============================================================
# SHARED SCHEDULER
# One background scheduler per process, started on first use
# ============================================================
_scheduler = None
_scheduler_lock = threading.Lock()


def get_scheduler():
    global _scheduler
    with _scheduler_lock:
        if _scheduler is None:
            _scheduler = BackgroundScheduler(daemon=True)
        if not _scheduler.running:
            _scheduler.start()
            logger.info("Notification refresh scheduler started")
        return _scheduler


class Subscription:
    """Handle for one live subscription. cancel() releases it exactly once."""

    def __init__(self, user_id, release):
        self.user_id = user_id
        self._release = release
        self._lock = threading.Lock()
        self.active = True

    def cancel(self):
        with self._lock:
            if not self.active:
                return False
            self.active = False
        self._release()
        return True


class NotificationSource:
    """Tells a subscriber when a user's notifications should be re-read.

    Polling is one implementation; a push channel can replace it without
    the controller noticing.
    """

    def subscribe(self, user_id, callback):
        raise NotImplementedError


class PollingNotificationSource(NotificationSource):
    """Calls ``callback`` every ``interval`` seconds from an APScheduler job."""

    def __init__(self, interval=DEFAULT_REFRESH_SECONDS, scheduler=None):
        self.interval = interval
        self._scheduler = scheduler

    @property
    def scheduler(self):
        if self._scheduler is None:
            self._scheduler = get_scheduler()
        return self._scheduler

    def subscribe(self, user_id, callback):
        job_id = f"notifications-{user_id}-{uuid.uuid4().hex[:8]}"
        job = self.scheduler.add_job(
            callback,
            trigger="interval",
            seconds=self.interval,
            id=job_id,
            max_instances=1,      # A slow refresh never overlaps the next tick
            coalesce=True,        # Missed ticks collapse into one
        )
        logger.debug("Polling notifications for user %s every %ss (%s)", user_id, self.interval, job_id)

        def release():
            job.remove()
            logger.debug("Stopped polling notifications for user %s (%s)", user_id, job_id)

        return Subscription(user_id, release)
