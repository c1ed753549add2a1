import pytest
from sqlalchemy import event

from erp_admin.extensions import db
from erp_admin.models.organization import Organization
from erp_admin.models.permission import ModuleId
from erp_admin.models.user import User, UserRole
from erp_admin.services import notification_service, organization_service, permission_service, user_service
from erp_admin.services.organization_service import DuplicateOrganizationCode
from erp_admin.services.user_service import DuplicateEmail, RoleChangeForbidden


def test_create_basic_user_provisions_default_rows(make_user):
    user = make_user()

    rows = {p.module_id: p.can_view for p in permission_service.get_by_user_id(user.id)}
    assert rows[ModuleId.DASHBOARD] is True
    assert rows[ModuleId.USER_MANAGEMENT] is False
    assert user.password_hash != "secret123"


def test_duplicate_email_is_rejected(make_user):
    make_user()

    with pytest.raises(DuplicateEmail):
        user_service.create_user("Copy", "USER1@example.com", "secret123")


def test_authenticate_refuses_inactive_and_bad_password(make_user):
    active = make_user()
    inactive = make_user(is_active=False)

    assert user_service.authenticate(active.email, "secret123") is active
    assert active.last_login is not None
    assert user_service.authenticate(active.email, "wrong") is None
    assert user_service.authenticate(inactive.email, "secret123") is None


def test_change_role_keeps_permission_rows_consistent(make_user):
    admin = make_user(role=UserRole.ADMIN)
    user = make_user()

    user_service.change_role(user.id, UserRole.MANAGER, admin.id)
    assert permission_service.get_by_user_id(user.id) == []

    user_service.change_role(user.id, UserRole.BASIC, admin.id)
    assert len(permission_service.get_by_user_id(user.id)) > 0


def test_admin_cannot_demote_self(make_user):
    admin = make_user(role=UserRole.ADMIN)

    with pytest.raises(RoleChangeForbidden):
        user_service.change_role(admin.id, UserRole.BASIC, admin.id)


def test_delete_user_removes_notifications_and_permissions(make_user):
    user = make_user()
    notification_service.send_notification(user.id, "Bye", "Account closing")

    user_service.delete_user(user.id)

    assert user_service.get_by_id(user.id) is None
    assert notification_service.get_by_user(user.id) == []
    assert permission_service.get_by_user_id(user.id) == []


def test_create_organization_with_admin(app):
    organization, admin = organization_service.create_organization_with_admin(
        "Acme Works", "acme", "Ada Admin", "ada@acme.test", "secret123",
    )

    assert organization.code == "ACME"
    assert organization.admin_user_id == admin.id
    assert admin.is_admin and admin.organization_id == organization.id
    with pytest.raises(DuplicateOrganizationCode):
        organization_service.create_organization_with_admin("Other", "ACME", "B", "b@acme.test", "secret123")


def test_update_user_sets_and_clears_manager(make_user):
    manager = make_user(role=UserRole.MANAGER)
    user = make_user()

    user_service.update_user(user.id, manager_id=manager.id)
    assert user.manager_id == manager.id
    assert user in manager.reports

    user_service.update_user(user.id, name="Still Reporting")
    assert user.manager_id == manager.id

    user_service.update_user(user.id, manager_id=None)
    assert user.manager_id is None
    with pytest.raises(ValueError):
        user_service.update_user(user.id, manager_id=user.id)


def test_update_user_rejects_taken_email(make_user):
    first, second = make_user(), make_user()

    with pytest.raises(DuplicateEmail):
        user_service.update_user(second.id, name="Changed", email=first.email)

    assert user_service.get_by_id(second.id).name != "Changed"


def test_get_by_role(make_user):
    managers = [make_user(role=UserRole.MANAGER), make_user(role=UserRole.MANAGER)]
    make_user()

    assert {u.id for u in user_service.get_by_role(UserRole.MANAGER)} == {m.id for m in managers}


def test_uncommitted_user_is_discarded_with_the_transaction(app):
    user = user_service.create_user("Draft", "draft@example.com", "secret123", commit=False)
    assert user.id is not None
    assert len(permission_service.get_by_user_id(user.id)) > 0

    db.session.rollback()

    assert user_service.get_by_email("draft@example.com") is None
    assert permission_service.get_all() == []


def test_organization_and_admin_are_committed_once(app):
    commits = []

    def count_commit(session):
        commits.append(session)

    session = db.session()
    event.listen(session, "after_commit", count_commit)
    try:
        organization_service.create_organization_with_admin(
            "Acme Works", "acme", "Ada Admin", "ada@acme.test", "secret123",
        )
    finally:
        event.remove(session, "after_commit", count_commit)

    assert len(commits) == 1


def test_duplicate_admin_email_leaves_no_organization(make_user):
    taken = make_user()

    with pytest.raises(DuplicateEmail):
        organization_service.create_organization_with_admin("Acme Works", "acme", "Ada", taken.email, "secret123")

    assert Organization.query.count() == 0
    assert User.query.count() == 1
