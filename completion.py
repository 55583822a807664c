"""Completion engine and dashboard progress."""

import logging
import math
from datetime import datetime

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import NotAssigned, NotFound, Unavailable
from models import Task, db, task_assignments, task_completions

logger = logging.getLogger(__name__)


def _is_assigned(task_id, user_id):
    row = db.session.execute(
        select(task_assignments.c.user_id).where(
            task_assignments.c.task_id == task_id,
            task_assignments.c.user_id == user_id,
        )
    ).first()
    return row is not None


def _has_completed(task_id, user_id):
    row = db.session.execute(
        select(task_completions.c.user_id).where(
            task_completions.c.task_id == task_id,
            task_completions.c.user_id == user_id,
        )
    ).first()
    return row is not None


def _mark_done_if_complete(task_id, now):
    """Flip is_done once no assignee is missing a completion row.

    A single guarded UPDATE, so done_at is written at most once even when
    the last two assignees finish at the same time.
    """
    completed = select(task_completions.c.user_id).where(task_completions.c.task_id == task_id)
    still_open = (
        select(task_assignments.c.user_id)
        .where(task_assignments.c.task_id == task_id)
        .where(task_assignments.c.user_id.not_in(completed))
    )
    stmt = (
        update(Task)
        .where(Task.id == task_id, Task.is_done.is_(False), ~still_open.exists())
        .values(is_done=True, done_at=now)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def _task_lock(task_id):
    """Row lock on the task; completions of one task run one at a time.

    Backends without SELECT ... FOR UPDATE (SQLite) drop the clause and
    rely on their single writer instead.
    """
    return select(Task.id).where(Task.id == task_id).with_for_update()


def mark_complete(task_id, user_id):
    """Record that ``user_id`` finished ``task_id`` and return the task.

    Repeating the call for the same user changes nothing.
    """
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFound(f"Task {task_id} not found")

    if not _is_assigned(task_id, user_id):
        raise NotAssigned()

    try:
        db.session.execute(_task_lock(task_id))
        if not _has_completed(task_id, user_id):
            try:
                db.session.execute(
                    insert(task_completions).values(
                        task_id=task_id, user_id=user_id, completed_at=datetime.now()
                    )
                )
            except IntegrityError:
                # Same user completed in a parallel request; already recorded
                db.session.rollback()
                db.session.execute(_task_lock(task_id))

        finished = _mark_done_if_complete(task_id, datetime.now())
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Completion failed for task %s user %s", task_id, user_id)
        raise Unavailable() from e

    db.session.refresh(task)
    if finished:
        logger.info("Task %s done at %s", task_id, task.done_at)
    else:
        logger.debug("Task %s completed by user %s", task_id, user_id)
    return task


def compute_progress(tasks):
    """Percent of ``tasks`` that are done, 0 for an empty list.

    Halves round up, so 1 of 8 is 13.
    """
    tasks = list(tasks)
    if not tasks:
        return 0
    done = sum(1 for t in tasks if t.is_done)
    return int(math.floor(100 * done / len(tasks) + 0.5))
