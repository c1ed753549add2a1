# Flask App Initializations
from flask import Flask, render_template, Response
from markupsafe import Markup
import os
import time
import traceback

import click

from erp_admin.extensions import db, bcrypt, login_manager, csrf, migrate


def nl2br(value):
    return Markup(str(value).replace('\n', '<br>\n'))


def create_app(test_config=None):
    app = Flask(__name__, template_folder="templates")

    # Configuration
    app.config["SECRET_KEY"] = os.environ.get("FLASK_SECRET_KEY", "dev_secret_key_123!@#")
    app.config["WTF_CSRF_ENABLED"] = True
    db_path = os.path.join(app.instance_path, "erp.db")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", f"sqlite:///{db_path}")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["PROPAGATE_EXCEPTIONS"] = True
    app.config["NOTIFICATION_REFRESH_SECONDS"] = int(os.environ.get("NOTIFICATION_REFRESH_SECONDS", 30))
    app.config["NOTIFICATION_DROPDOWN_LIMIT"] = int(os.environ.get("NOTIFICATION_DROPDOWN_LIMIT", 10))

    if test_config is not None:
        app.config.update(test_config)

    try:
        os.makedirs(app.instance_path)
    except OSError:
        pass

    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Models must be imported before create_all / migrations see the metadata
    from erp_admin import models  # noqa: F401
    from erp_admin.models.user import User

    @login_manager.user_loader
    def load_user(user_id):
        if user_id is not None and str(user_id).isdigit():
            return db.session.get(User, int(user_id))
        return None

    from erp_admin.routes.frontend_routes import frontend_bp
    from erp_admin.routes.notification_api import notification_bp
    from erp_admin.routes.inventory_api import inventory_bp
    from erp_admin.routes.purchase_api import purchase_bp

    # JSON endpoints are called by the dropdown script and API clients, not forms
    csrf.exempt(notification_bp)
    csrf.exempt(inventory_bp)
    csrf.exempt(purchase_bp)

    app.register_blueprint(frontend_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(purchase_bp)

    # Register custom Jinja filters
    app.jinja_env.filters["nl2br"] = nl2br

    @app.context_processor
    def inject_current_year():
        from datetime import datetime
        return dict(current_year=datetime.utcnow().year)

    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables without running migrations."""
        db.create_all()
        print("Database tables created.")

    @app.cli.command("seed")
    def seed_command():
        """Load demo organization, users, stock and notifications."""
        from erp_admin.seed import seed_database
        seed_database(app)

    @app.cli.command("watch-notifications")
    @click.argument("email")
    def watch_notifications_command(email):
        """Follow a user's notification feed on the refresh timer until interrupted."""
        from erp_admin.controllers.notification_controller import NotificationController
        from erp_admin.services import user_service

        user = user_service.get_by_email(email)
        if user is None:
            raise click.ClickException(f"No user with email {email}")

        controller = NotificationController(app, user.id, limit=app.config["NOTIFICATION_DROPDOWN_LIMIT"])
        last_seen = None
        with controller:
            click.echo(f"Watching notifications for {user.email} every {app.config['NOTIFICATION_REFRESH_SECONDS']}s (Ctrl+C to stop)")
            try:
                while True:
                    state = controller.state()
                    newest = state["notifications"][0]["id"] if state["notifications"] else None
                    if (state["unread_count"], newest, state["error"]) != last_seen:
                        last_seen = (state["unread_count"], newest, state["error"])
                        if state["error"]:
                            click.echo(f"Refresh failed: {state['error']}", err=True)
                        else:
                            latest = state["notifications"][0]["title"] if newest else "-"
                            click.echo(f"{state['unread_count']} unread, latest: {latest}")
                    time.sleep(1)
            except KeyboardInterrupt:
                pass

    @app.errorhandler(500)
    def internal_server_error_handler(e):
        original_error_str = str(e)
        original_traceback_str = traceback.format_exc()
        app.logger.error(f"Internal Server Error: {original_error_str}\n{original_traceback_str}")

        try:
            return render_template("500_debug.html", error=original_error_str, traceback=original_traceback_str), 500
        except Exception as template_render_error:
            template_error_traceback_str = traceback.format_exc()
            app.logger.error(f"Error rendering 500_debug.html: {template_render_error}\n{template_error_traceback_str}")
            plain_text_error = (
                f"INTERNAL SERVER ERROR - DEBUG MODE\n\n"
                f"Original Error: {original_error_str}\n\n"
                f"Original Traceback:\n{original_traceback_str}\n\n"
                f"Additionally, an error occurred while trying to render the 500_debug.html page:\n"
                f"Template Rendering Error: {str(template_render_error)}\n\n"
                f"Template Rendering Traceback:\n{template_error_traceback_str}"
            )
            return Response(plain_text_error, mimetype="text/plain", status=500)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, host="0.0.0.0")
