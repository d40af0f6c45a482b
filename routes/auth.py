"""Session login, registration and role-based landing routes."""
from datetime import datetime

from flask import Blueprint, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from sqlalchemy.exc import IntegrityError
from wtforms import PasswordField, SelectField, StringField, SubmitField
from wtforms.validators import DataRequired, Email, EqualTo, Length, ValidationError

from extensions import db
from models import AuditLog, Role, User
from utils.security import is_safe_redirect_url, password_meets_policy

auth_bp = Blueprint("auth", __name__)


ROLE_CHOICES: list[tuple[str, str]] = [
    ("industry_owner", "Industry Owner"),
    ("pcb", "Pollution Control Board"),
]

ROLE_DESCRIPTIONS: dict[str, str] = {
    "admin": "Platform administrator with full privileges",
    "pcb": "Pollution control board officer monitoring all industries",
    "industry_owner": "Owner of a registered industry",
}


class RegistrationForm(FlaskForm):
    name = StringField("Full Name", validators=[DataRequired(), Length(max=150)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    role = SelectField("Role", choices=ROLE_CHOICES, validators=[DataRequired()], default="industry_owner")
    password = PasswordField("Password", validators=[DataRequired(), Length(min=12)])
    confirm_password = PasswordField(
        "Confirm Password", validators=[DataRequired(), EqualTo("password", message="Passwords must match.")]
    )
    submit = SubmitField("Create Account")

    def validate_email(self, field):
        if User.query.filter_by(email=field.data.lower().strip()).first():
            raise ValidationError("An account with this email already exists.")


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    submit = SubmitField("Sign In")


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    if current_user.is_authenticated:
        return redirect(role_based_redirect(current_user))

    form = RegistrationForm()
    if form.validate_on_submit():
        password_ok, reason = password_meets_policy(form.password.data)
        if not password_ok:
            form.password.errors.append(reason)
            return render_template("auth/register.html", form=form, page_title="Register"), 400

        try:
            role = Role.get_or_create(form.role.data, description=ROLE_DESCRIPTIONS.get(form.role.data, ""))
            user = User(
                name=form.name.data.strip(),
                email=form.email.data.lower().strip(),
                role=role,
                is_verified=bool(current_app.config.get("AUTO_VERIFY_REGISTRATIONS", True)),
                is_active=True,
            )
            user.set_password(form.password.data)
            db.session.add(user)
            db.session.flush()
            log_action("REGISTER", user)
            db.session.commit()
            flash("Registration successful. You may now log in.", "success")
            return redirect(url_for("auth.login"))
        except IntegrityError:
            db.session.rollback()
            flash("Unable to register with the provided details. Please try again.", "danger")

    return render_template("auth/register.html", form=form, page_title="Register")


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(role_based_redirect(current_user))

    form = LoginForm()
    if form.validate_on_submit():
        user = User.query.filter_by(email=form.email.data.lower().strip()).first()
        if not user or not user.check_password(form.password.data):
            log_action("LOGIN_FAILED", user)
            db.session.commit()
            flash("Invalid credentials provided.", "danger")
            return render_template("auth/login.html", form=form, page_title="Login"), 401

        if not user.is_active or not user.is_verified:
            log_action("LOGIN_UNVERIFIED", user)
            db.session.commit()
            flash("Your account is not verified. Please contact the administrator.", "warning")
            return render_template("auth/login.html", form=form, page_title="Login"), 403

        login_user(user)
        session.permanent = True
        user.last_login_at = datetime.utcnow()
        db.session.add(user)
        log_action("LOGIN", user)
        db.session.commit()

        next_page = request.args.get("next")
        if next_page and is_safe_redirect_url(next_page):
            return redirect(next_page)
        return redirect(role_based_redirect(user))

    return render_template("auth/login.html", form=form, page_title="Login")


@auth_bp.route("/logout")
@login_required
def logout():
    user = current_user._get_current_object()
    logout_user()
    session.clear()
    log_action("LOGOUT", user)
    db.session.commit()
    flash("You have been logged out.", "success")
    return redirect(url_for("auth.login"))


def role_based_redirect(user: User) -> str:
    mapping = {
        "admin": "main.monitoring_dashboard",
        "pcb": "main.monitoring_dashboard",
        "industry_owner": "main.industry_dashboard",
    }
    return url_for(mapping.get(user.role_name, "auth.login"))


def log_action(action: str, user: User | None, context: str | None = None):
    entry = AuditLog(
        user_id=user.id if user else None,
        action_type=action,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent", "unknown"),
        context_entity=context,
    )
    db.session.add(entry)
