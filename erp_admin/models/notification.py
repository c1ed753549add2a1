from erp_admin.extensions import db
from datetime import datetime


class NotificationType:
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    MESSAGE = "message"

    ALL = (INFO, SUCCESS, WARNING, ERROR, MESSAGE)
    CHOICES = [
        (INFO, "Info"),
        (SUCCESS, "Success"),
        (WARNING, "Warning"),
        (ERROR, "Error"),
        (MESSAGE, "Message"),
    ]


class NotificationStatus:
    UNREAD = "unread"
    READ = "read"


class Notification(db.Model):
    """
    A single user-facing notification.

    System-wide notifications are fanned out at send time, so every row
    belongs to exactly one user. Status only ever moves UNREAD -> READ.
    """
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default=NotificationType.INFO)  # info, success, warning, error, message
    status = db.Column(db.String(10), nullable=False, default=NotificationStatus.UNREAD, index=True)
    link = db.Column(db.String(255), nullable=True)
    entity_type = db.Column(db.String(50), nullable=True)  # e.g. inventory, purchase_order
    linked_entity_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    read_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.Index("ix_notifications_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return f"<Notification {self.id} User: {self.user_id} Type: {self.type} Status: {self.status}>"

    @property
    def is_read(self):
        return self.status == NotificationStatus.READ

    def mark_as_read(self):
        """Flip to READ; returns False if it already was."""
        if self.is_read:
            return False
        now = datetime.utcnow()
        self.status = NotificationStatus.READ
        self.read_at = now
        self.updated_at = now
        return True

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "status": self.status,
            "link": self.link,
            "entity_type": self.entity_type,
            "linked_entity_id": self.linked_entity_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "read_at": self.read_at.isoformat() if self.read_at else None,
        }
