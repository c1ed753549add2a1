from erp_admin.models.permission import ModuleId
from erp_admin.services import notification_service, permission_service, user_service


def test_seed_command_runs_once(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["seed"])
    assert "Database seeded successfully!" in result.output

    result = runner.invoke(args=["seed"])
    assert "Skipping seeding" in result.output

    admin = user_service.get_by_email("admin@example.com")
    clerk = user_service.get_by_email("basic@example.com")
    assert admin.is_admin
    assert permission_service.has_module_access(clerk.id, clerk.role, ModuleId.PURCHASE)
    assert notification_service.get_unread_count_by_user(admin.id) >= 2


def test_watch_notifications_rejects_unknown_user(app):
    result = app.test_cli_runner().invoke(args=["watch-notifications", "nobody@example.com"])

    assert result.exit_code != 0
    assert "No user with email" in result.output
