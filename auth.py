# auth.py
from flask import Blueprint, render_template, redirect, url_for, session, request, flash, current_app, jsonify
from functools import wraps
from urllib.parse import urlparse

from core import User, get_store_id

auth_bp = Blueprint("auth", __name__)

SESSION_KEYS = ("user_id", "user_email", "user_name", "is_admin", "store_id")


def authenticate(email, password):
    """Return the store's user for these credentials, or None."""
    store_id = get_store_id()
    email = (email or "").strip().lower()
    if not email or not password:
        current_app.logger.info("Sign-in rejected: missing credentials")
        return None
    user = User.query.filter_by(email=email, store_id=store_id).first()
    if user is None or not user.password_hash:
        current_app.logger.info("Sign-in rejected: no user %s for store %s or password not set", email, store_id)
        return None
    if not user.check_password(password):
        current_app.logger.info("Sign-in rejected: invalid password for %s", email)
        return None
    current_app.logger.info("User %s authenticated for store %s", email, store_id)
    return user


def login(user):
    session.clear()
    session["user_id"] = user.id
    session["user_email"] = user.email
    session["user_name"] = user.name
    session["is_admin"] = bool(user.is_admin)
    session["store_id"] = user.store_id


def logout():
    for key in SESSION_KEYS:
        session.pop(key, None)


def is_signed_in():
    return session.get("user_id") is not None


def is_store_admin():
    """Admin flag set and the session belongs to the store this deployment serves."""
    if not session.get("is_admin"):
        return False
    return session.get("store_id") == current_app.config.get("STORE_ID")


def api_admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        get_store_id()
        if not is_store_admin():
            return jsonify(message="Unauthorized"), 401
        return view(*args, **kwargs)
    return wrapped


def _is_safe_url(target):
    if not target:
        return False
    ref = urlparse(request.host_url)
    test = urlparse(target)
    return test.scheme in ("http", "https", "") and test.netloc in ("", ref.netloc)


def guard_admin_pages():
    path = request.path
    if is_store_admin() and path == url_for("auth.signin"):
        return redirect(url_for("admin.dashboard"))
    if not is_signed_in() and (path == "/admin" or path.startswith("/admin/")):
        return redirect(url_for("auth.signin", next=request.full_path))
    return None


@auth_bp.route("/signin", methods=["GET", "POST"])
def signin():
    if request.method == "POST":
        user = authenticate(request.form.get("email", ""), request.form.get("password", ""))
        if user is None:
            flash("Invalid email or password.", "error")
            return render_template("signin.html", email=request.form.get("email", "")), 401
        login(user)
        flash("Signed in.", "success")
        next_url = request.args.get("next") or request.form.get("next")
        if not is_store_admin():
            return redirect(url_for("shop.index"))
        if _is_safe_url(next_url):
            return redirect(next_url)
        return redirect(url_for("admin.dashboard"))
    return render_template("signin.html", email="")


@auth_bp.route("/signout", methods=["POST"])
def signout():
    logout()
    flash("Signed out.", "success")
    return redirect(url_for("shop.index"))
