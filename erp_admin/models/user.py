from flask_login import UserMixin
from datetime import datetime
from erp_admin.extensions import db


class UserRole:
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    BASIC = "BASIC"

    ALL = (ADMIN, MANAGER, BASIC)
    # Roles whose module access is fixed and never stored as permission rows
    FULL_ACCESS = (ADMIN, MANAGER)


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=UserRole.BASIC)  # ADMIN, MANAGER, BASIC
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    organization_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)  # BASIC users report to a manager
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    organization = db.relationship("Organization", foreign_keys=[organization_id], backref="members")
    manager = db.relationship("User", remote_side=[id], backref="reports")

    def __repr__(self):
        return f"User('{self.name}', '{self.email}', '{self.role}', Active: {self.is_active})"

    # Helper properties for role checks
    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    @property
    def is_manager(self):
        return self.role == UserRole.MANAGER

    @property
    def is_basic(self):
        return self.role == UserRole.BASIC

    @property
    def has_full_access(self):
        return self.role in UserRole.FULL_ACCESS

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "organization_id": self.organization_id,
            "manager_id": self.manager_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }
