"""Task store: creation, lookup, deletion and the read-only query surface."""

import logging
import unicodedata
from datetime import datetime, time, timedelta

from sqlalchemy.exc import SQLAlchemyError

import credentials
from errors import EmptyAssignment, InvalidReference, NotFound, Unavailable
from models import ROLE_ADMIN, Task, User, db, task_assignments

logger = logging.getLogger(__name__)


def resolve_assignment(creator_role, submitted_assignees, creator_id):
    """Final assignee set for a new task.

    Admins assign whoever they submitted; everyone else can only assign
    themselves, whatever list came with the request.
    """
    if creator_role == ROLE_ADMIN:
        return set(submitted_assignees or ())
    return {creator_id}


def create(title, creator_id, assigned_user_ids):
    assigned_user_ids = set(assigned_user_ids or ())
    if not assigned_user_ids:
        raise EmptyAssignment()

    creator = credentials.find_by_id(creator_id)
    if creator is None:
        raise InvalidReference(f"Unknown creator: {creator_id}")

    assignees = User.query.filter(User.id.in_(assigned_user_ids)).all()
    missing = assigned_user_ids - {u.id for u in assignees}
    if missing:
        raise InvalidReference(f"Unknown assignee(s): {sorted(missing)}")

    task = Task(title=title, creator_id=creator.id, is_done=False)
    task.assigned_users = assignees

    try:
        db.session.add(task)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Task creation failed: %r", title)
        raise Unavailable() from e

    logger.info(
        "Task %s created by %s, assigned to %s",
        task.id, creator.username, sorted(u.username for u in assignees),
    )
    return task


def find_by_id(task_id):
    return db.session.get(Task, task_id)


def find_assigned_to(user_id):
    return (
        Task.query.join(task_assignments, task_assignments.c.task_id == Task.id)
        .filter(task_assignments.c.user_id == user_id)
        .order_by(Task.created_at, Task.id)
        .all()
    )


def delete(task_id):
    task = find_by_id(task_id)
    if task is None:
        raise NotFound(f"Task {task_id} not found")

    try:
        title = task.title
        db.session.delete(task)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Delete failed for task %s", task_id)
        raise Unavailable() from e

    logger.info("Task %s (%r) deleted", task_id, title)


# ==================== QUERIES ====================

def list_all():
    return Task.query.order_by(Task.created_at, Task.id).all()


def list_created_by(username):
    user = credentials.find_by_username(username)
    if user is None:
        return []
    return Task.query.filter_by(creator_id=user.id).order_by(Task.created_at, Task.id).all()


def list_created_today(now=None):
    """Tasks created in [today 00:00, tomorrow 00:00) server-local time."""
    now = now or datetime.now()
    start = datetime.combine(now.date(), time.min)
    end = start + timedelta(days=1)
    return (
        Task.query.filter(Task.created_at >= start, Task.created_at < end)
        .order_by(Task.created_at, Task.id)
        .all()
    )


def list_unfinished():
    return Task.query.filter_by(is_done=False).order_by(Task.created_at, Task.id).all()


def _fold(text):
    return unicodedata.normalize("NFC", text).casefold()


def list_by_creator_name_prefix(prefix):
    # SQLite only folds ASCII case, so match names in Python
    folded = _fold(prefix)
    creator_ids = [u.id for u in User.query.all() if _fold(u.full_name).startswith(folded)]
    if not creator_ids:
        return []
    return (
        Task.query.filter(Task.creator_id.in_(creator_ids))
        .order_by(Task.created_at, Task.id)
        .all()
    )
