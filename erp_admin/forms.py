from flask_wtf import FlaskForm
from wtforms import StringField, SubmitField, TextAreaField, EmailField, IntegerField, SelectField, PasswordField, BooleanField, SelectMultipleField
from wtforms.validators import DataRequired, Email, Length, Optional, EqualTo, NumberRange
from wtforms.widgets import CheckboxInput, ListWidget

from erp_admin.models.notification import NotificationType
from erp_admin.models.user import UserRole


class LoginForm(FlaskForm):
    email = EmailField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember Me")
    submit = SubmitField("Login")


class UserForm(FlaskForm):
    name = StringField("Full Name", validators=[DataRequired(), Length(min=2, max=100)])
    email = EmailField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=6)])
    confirm_password = PasswordField("Confirm Password", validators=[DataRequired(), EqualTo("password", message="Passwords must match.")])
    role = SelectField("Role", choices=[
        (UserRole.BASIC, "Basic (module access granted per user)"),
        (UserRole.MANAGER, "Manager (all modules)"),
        (UserRole.ADMIN, "Admin (all modules and settings)"),
    ], validators=[DataRequired()], default=UserRole.BASIC)
    submit = SubmitField("Create User")


class EditUserForm(FlaskForm):
    name = StringField("Full Name", validators=[DataRequired(), Length(min=2, max=100)])
    email = EmailField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField("New Password (leave blank to keep)", validators=[Optional(), Length(min=6)])
    confirm_password = PasswordField("Confirm New Password", validators=[EqualTo("password", message="Passwords must match.")])
    # Only offered for BASIC users; 0 means no manager
    manager_id = SelectField("Reports To", coerce=int, choices=[], validators=[Optional()])
    submit = SubmitField("Update User")


class NotificationForm(FlaskForm):
    title = StringField("Title", validators=[DataRequired(message="Title is required."), Length(max=200)])
    message = TextAreaField("Message", validators=[DataRequired(message="Message is required.")])
    type = SelectField("Type", choices=NotificationType.CHOICES, default=NotificationType.INFO, validators=[DataRequired()])
    is_system_wide = BooleanField("Send to all active users")
    submit = SubmitField("Send Notification")


class MultiCheckboxField(SelectMultipleField):
    widget = ListWidget(prefix_label=False)
    option_widget = CheckboxInput()


class PermissionsForm(FlaskForm):
    # Choices are filled from the editor's operational modules
    modules = MultiCheckboxField("Module Access", choices=[], validators=[Optional()])
    submit = SubmitField("Save Permissions")


class AdjustStockForm(FlaskForm):
    adjustment_type = SelectField("Adjustment Type", choices=[("increase", "Increase Stock"), ("decrease", "Decrease Stock")], validators=[DataRequired()])
    adjustment = IntegerField("Adjustment Quantity", validators=[DataRequired(), NumberRange(min=1)])
    submit = SubmitField("Adjust Stock")
