# -*- coding: utf-8 -*-
# routes/admin.py
"""Browser admin console. Uses a Flask-Login session rather than bearer tokens."""
import logging
import secrets
from functools import wraps

from flask import Blueprint, abort, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from howisyourday import repository
from howisyourday.errors import IntegrationError, ValidationError
from howisyourday.integrations.images import get_image_host, to_data_uri, validate_image_source
from howisyourday.pagination import parse_page_params
from howisyourday.shared_data import IMAGE_UPLOAD, POST_STATUS, POST_STATUSES

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

EDITOR_FIELDS = ("title", "slug", "excerpt", "content", "featured_image", "tags", "status", "published_at")
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}


# --- Authentication Decorator ---
def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_admin:
            return redirect(url_for("admin.login", next=request.path))
        return f(*args, **kwargs)
    return decorated_function


def csrf_token():
    """One token per console login, sent back as the `csrf` form field."""
    return session.get("admin_csrf", "")


@admin_bp.context_processor
def inject_csrf_token():
    return {"csrf_token": csrf_token}


@admin_bp.before_request
def csrf_protect():
    # The login form itself is posted before any session exists
    if request.method in SAFE_METHODS or not current_user.is_authenticated:
        return

    token = csrf_token()
    sent = request.form.get("csrf") or request.headers.get("X-CSRFToken", "")
    if not token or not secrets.compare_digest(token.encode(), sent.encode()):
        logger.warning(f"Rejected admin console {request.method} to {request.path}: bad CSRF token")
        abort(403)


def _safe_next(target):
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


# --- Routes ---

@admin_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated and current_user.is_admin:
        return redirect(url_for("admin.dashboard"))

    if request.method == "POST":
        email = request.form.get("email", "").strip()
        password = request.form.get("password", "")
        user = repository.find_user_by_email(email) if email else None

        if user is None or not user.check_password(password):
            flash("Invalid email or password.", "danger")
        elif not user.is_verified:
            flash("Account not verified.", "danger")
        elif not user.is_admin:
            flash("Admin access required.", "danger")
        else:
            login_user(user)
            session["admin_csrf"] = secrets.token_hex(16)
            logger.info(f"Admin console login for user {user.id}")
            flash("Login successful!", "success")
            return redirect(_safe_next(request.args.get("next")) or url_for("admin.dashboard"))

    return render_template("admin/login.html")


@admin_bp.route("/logout", methods=["GET", "POST"])
def logout():
    logout_user()
    session.pop("admin_csrf", None)
    flash("You have been logged out.", "info")
    return redirect(url_for("admin.login"))


@admin_bp.route("/")
@admin_required
def dashboard():
    try:
        stats = repository.post_stats()
        stats["totalSubscribers"] = repository.subscriber_count()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load dashboard stats: {e}")
        flash("Failed to load dashboard stats.", "danger")
        stats = {"totalPosts": 0, "publishedPosts": 0, "draftPosts": 0, "totalSubscribers": 0}

    return render_template("admin/dashboard.html", stats=stats)


@admin_bp.route("/posts")
@admin_required
def posts():
    page, limit = parse_page_params(request.args)
    status = request.args.get("status") or None
    search = request.args.get("search") or None

    result = repository.list_all_posts(page, limit, status=status, search=search)
    return render_template(
        "admin/posts.html",
        posts=result["data"],
        pagination=result["pagination"],
        status=status,
        search=search or "",
    )


@admin_bp.route("/posts/<int:post_id>/delete", methods=["POST"])
@admin_required
def delete_post(post_id):
    if repository.delete_post(post_id):
        flash("Post deleted.", "success")
    else:
        flash("Post not found.", "warning")
    return redirect(url_for("admin.posts"))


def _form_fields():
    """Editor form values shaped like the JSON API's post body."""
    fields = {key: request.form.get(key, "").strip() for key in EDITOR_FIELDS}
    fields["content"] = request.form.get("content", "")
    fields["tags"] = [tag.strip() for tag in fields["tags"].split(",") if tag.strip()]
    return fields


def _upload_featured_image(fields):
    """Upload a file picked in the editor and point featured_image at it."""
    upload = request.files.get("image_file")
    if not upload or not upload.filename:
        return

    mime_type = (upload.mimetype or "").lower()
    if mime_type not in IMAGE_UPLOAD["ALLOWED_TYPES"]:
        raise ValidationError(f"Unsupported image type: {mime_type or 'unknown'}")

    image = validate_image_source(to_data_uri(upload.read(), mime_type))
    try:
        fields["featured_image"] = get_image_host().upload(image)["url"]
    except IntegrationError as e:
        logger.error(f"Editor image upload failed: {e}")
        raise ValidationError("Failed to upload image")


def _editor_form(post):
    if post is None:
        return {key: "" for key in EDITOR_FIELDS} | {"status": POST_STATUS["DRAFT"]}
    return {
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt or "",
        "content": post.content,
        "featured_image": post.featured_image or "",
        "tags": ", ".join(post.tags),
        "status": post.status,
        "published_at": post.published_at.strftime("%Y-%m-%dT%H:%M") if post.published_at else "",
    }


@admin_bp.route("/editor", methods=["GET", "POST"])
@admin_bp.route("/editor/<int:post_id>", methods=["GET", "POST"])
@admin_required
def editor(post_id=None):
    post = repository.get_post(post_id) if post_id is not None else None
    if post_id is not None and post is None:
        abort(404)

    form = _editor_form(post)

    if request.method == "POST":
        fields = _form_fields()
        try:
            _upload_featured_image(fields)
            if post is None:
                post = repository.create_post(fields, author_id=current_user.id)
                flash("Post created.", "success")
            else:
                post = repository.update_post(post, fields)
                flash("Post updated.", "success")
            return redirect(url_for("admin.editor", post_id=post.id))
        except ValidationError as e:
            flash(str(e), "danger")
        except SQLAlchemyError as e:
            logger.error(f"Failed to save post from editor: {e}")
            flash("Failed to save post.", "danger")

        form = dict(fields, tags=", ".join(fields["tags"]))

    return render_template("admin/editor.html", post=post, form=form, statuses=POST_STATUSES)


@admin_bp.route("/subscribers")
@admin_required
def subscribers():
    confirmed_param = request.args.get("confirmed")
    confirmed = None if confirmed_param not in ("true", "false") else confirmed_param == "true"

    return render_template(
        "admin/subscribers.html",
        subscribers=repository.list_subscribers(confirmed=confirmed),
        confirmed=confirmed_param,
    )
