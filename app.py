import logging

from flask import Flask, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

import auth
import credentials
import task_store
from completion import compute_progress, mark_complete
from config import Config
from errors import InvalidReference, MissingField, NotFound, TrackerError, Unavailable
from logging_setup import setup_logging
from models import ROLE_ADMIN, ROLE_NORMAL, Task, User, db

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize database with app
    db.init_app(app)

    register_error_handlers(app)
    register_routes(app)
    register_commands(app)
    return app


# ==================== REQUEST HELPERS ====================

def _payload():
    """JSON body if one was sent, form fields otherwise."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


def _required(data, name, strip=True):
    value = data.get(name)
    if value is None or value == "":
        raise MissingField(f"'{name}' is required")
    if isinstance(value, str) and strip:
        value = value.strip()
        if not value:
            raise MissingField(f"'{name}' is required")
    return value


def _text(data, name, strip=True):
    """Required string field; passwords are read with strip=False."""
    value = _required(data, name, strip=strip)
    if not isinstance(value, str):
        raise MissingField(f"'{name}' must be a string")
    return value


def _list_field(data, name):
    if hasattr(data, "getlist"):
        values = data.getlist(name)
    else:
        values = data.get(name)
        if values is None:
            values = []
        elif isinstance(values, str):
            values = [values]
        elif not isinstance(values, (list, tuple)):
            raise InvalidReference(f"'{name}' must be a username or a list of usernames")

    if not all(isinstance(v, str) for v in values):
        raise InvalidReference(f"'{name}' must contain usernames")
    return [v.strip() for v in values if v.strip()]


def _task_id(data):
    raw = _required(data, "task_id")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise NotFound(f"Task {raw} not found") from None


def _usernames_to_ids(usernames):
    ids = set()
    for name in usernames:
        user = credentials.find_by_username(name)
        if user is None:
            raise InvalidReference(f"Unknown user: {name}")
        ids.add(user.id)
    return ids


def _tasks_json(tasks):
    return jsonify([t.to_dict() for t in tasks])


# ==================== ERROR HANDLERS ====================

def register_error_handlers(app):

    @app.errorhandler(TrackerError)
    def handle_tracker_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(e):
        db.session.rollback()
        logger.exception("Store error on %s %s", request.method, request.path)
        err = Unavailable()
        return jsonify(err.to_dict()), err.status_code


def register_routes(app):

    # ==================== AUTHENTICATION ROUTES ====================

    @app.route("/register", methods=["POST"])
    def register():
        """Create an account"""
        data = _payload()
        username = _text(data, "username")
        password = _text(data, "password", strip=False)
        full_name = _text(data, "full_name")
        role = data.get("role") or ROLE_NORMAL

        user = credentials.register(username, password, full_name, role=role)
        return jsonify(user.to_dict()), 201

    @app.route("/login", methods=["POST"])
    def login():
        """Start a session"""
        data = _payload()
        username = _text(data, "username")
        password = _text(data, "password", strip=False)

        try:
            snapshot = auth.login(username, password)
        except TrackerError:
            logger.info("Failed login for %s", username)
            raise

        auth.start_session(snapshot)
        return jsonify(snapshot.to_dict())

    @app.route("/logout", methods=["POST"])
    def logout():
        """End the session"""
        auth.logout()
        return jsonify({"logged_out": True})

    # ==================== DASHBOARD ====================

    @app.route("/")
    def home():
        """Tasks assigned to the current user with overall progress"""
        current = auth.require_authenticated(auth.load_session())

        tasks = task_store.find_assigned_to(current.user_id)
        users = credentials.list_users(role=ROLE_NORMAL)

        return jsonify({
            "current_user": current.to_dict(),
            "tasks": [t.to_dict() for t in tasks],
            "percent": compute_progress(tasks),
            "users": [u.to_dict() for u in users],
        })

    @app.route("/api/users")
    def assignable_users():
        """Users an admin can assign tasks to"""
        auth.require_role(auth.load_session(), ROLE_ADMIN)
        return jsonify([u.to_dict() for u in credentials.list_users(role=ROLE_NORMAL)])

    # ==================== TASK OPERATIONS ====================

    @app.route("/tasks", methods=["POST"])
    def create_task():
        """Create a task; only admins choose assignees"""
        current = auth.require_authenticated(auth.load_session())
        data = _payload()
        title = _text(data, "title")

        submitted = []
        if current.role == ROLE_ADMIN:
            submitted = _usernames_to_ids(_list_field(data, "assigned_users"))

        assignees = task_store.resolve_assignment(current.role, submitted, current.user_id)
        task = task_store.create(title, current.user_id, assignees)
        return jsonify(task.to_dict()), 201

    @app.route("/complete", methods=["POST"])
    def complete_task():
        """Mark a task complete for the current user"""
        current = auth.require_authenticated(auth.load_session())
        task = mark_complete(_task_id(_payload()), current.user_id)
        return jsonify(task.to_dict())

    @app.route("/delete", methods=["POST"])
    def delete_task():
        """Delete a task"""
        current = auth.require_authenticated(auth.load_session())
        task_id = _task_id(_payload())
        task_store.delete(task_id)
        logger.info("Task %s deleted by %s", task_id, current.username)
        return jsonify({"deleted": task_id})

    # ==================== READ-ONLY API ====================

    @app.route("/api/tasks")
    def all_tasks():
        return _tasks_json(task_store.list_all())

    @app.route("/api/tasks/user/<username>")
    def tasks_by_user(username):
        return _tasks_json(task_store.list_created_by(username))

    @app.route("/api/tasks/today")
    def tasks_today():
        return _tasks_json(task_store.list_created_today())

    @app.route("/api/tasks/unfinished")
    def tasks_unfinished():
        return _tasks_json(task_store.list_unfinished())

    @app.route("/api/tasks/creator-prefix")
    def tasks_by_creator_prefix():
        prefix = request.args.get("prefix") or current_app.config["CREATOR_NAME_PREFIX"]
        return _tasks_json(task_store.list_by_creator_name_prefix(prefix))


# ==================== INITIALIZATION ====================

def init_db():
    db.create_all()
    logger.info(
        "Database ready: %d users, %d tasks", User.query.count(), Task.query.count()
    )


def register_commands(app):

    @app.cli.command("init-db")
    def init_db_command():
        """Create database tables."""
        init_db()


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        init_db()

    logger.info("Starting task tracker on http://localhost:8000")
    app.run(port=8000, debug=True)
