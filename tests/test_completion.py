# tests/test_completion.py

from types import SimpleNamespace

import pytest
from sqlalchemy.dialects import postgresql

import completion
import task_store
from completion import compute_progress, mark_complete
from errors import NotAssigned, NotFound


@pytest.fixture()
def shared_task(users):
    """Task created by the admin and assigned to alice and bob."""
    return task_store.create(
        "Ship release", users["admin"].id, {users["alice"].id, users["bob"].id}
    )


def _state(task):
    return (task.completed_user_ids, task.is_done, task.done_at)


def test_two_assignee_scenario(users, shared_task) -> None:
    alice, bob = users["alice"], users["bob"]

    task = mark_complete(shared_task.id, alice.id)
    assert task.is_done is False
    assert task.completed_user_ids == {alice.id}
    assert task.done_at is None

    task = mark_complete(shared_task.id, bob.id)
    assert task.is_done is True
    assert task.completed_user_ids == {alice.id, bob.id}
    assert task.done_at is not None
    before = _state(task)

    task = mark_complete(shared_task.id, bob.id)
    assert _state(task) == before


def test_mark_complete_is_idempotent(users, shared_task) -> None:
    alice = users["alice"]
    once = _state(mark_complete(shared_task.id, alice.id))
    twice = _state(mark_complete(shared_task.id, alice.id))
    assert once == twice
    assert twice[0] == {alice.id}


def test_single_assignee_done_immediately(users) -> None:
    bob = users["bob"]
    task = task_store.create("Solo", bob.id, {bob.id})
    task = mark_complete(task.id, bob.id)
    assert task.is_done is True
    assert task.done_at is not None


def test_missing_task(users) -> None:
    with pytest.raises(NotFound):
        mark_complete(9999, users["alice"].id)


def test_non_assignee_rejected(users, shared_task) -> None:
    with pytest.raises(NotAssigned):
        mark_complete(shared_task.id, users["carol"].id)

    task = task_store.find_by_id(shared_task.id)
    assert task.completed_user_ids == set()
    assert task.is_done is False


SEQUENCES = [
    ["alice", "bob", "carol"],
    ["carol", "carol", "bob", "alice", "alice"],
    ["admin", "bob", "admin", "alice", "carol", "bob"],
    ["bob", "alice", "admin", "carol", "carol"],
]


@pytest.mark.parametrize("order", SEQUENCES)
def test_invariants_hold_for_any_sequence(users, order) -> None:
    assignees = {users[n].id for n in ("alice", "bob", "carol")}
    task = task_store.create("Team task", users["admin"].id, assignees)
    done_at = None

    for name in order:
        try:
            task = mark_complete(task.id, users[name].id)
        except NotAssigned:
            assert users[name].id not in assignees
            continue

        assert task.completed_user_ids <= task.assigned_user_ids
        assert task.is_done == (task.completed_user_ids == task.assigned_user_ids)
        assert (task.done_at is not None) == task.is_done
        if done_at is not None:
            assert task.done_at == done_at
        done_at = task.done_at

    assert task.is_done is True


def _tasks(done, total):
    return [SimpleNamespace(is_done=i < done) for i in range(total)]


def test_compute_progress_empty() -> None:
    assert compute_progress([]) == 0


@pytest.mark.parametrize(
    "done,total,expected",
    [(0, 3, 0), (1, 3, 33), (2, 3, 67), (3, 3, 100), (1, 8, 13), (1, 2, 50), (5, 200, 3)],
)
def test_compute_progress_rounds_half_up(done, total, expected) -> None:
    assert compute_progress(_tasks(done, total)) == expected


def test_compute_progress_from_store(users, shared_task) -> None:
    alice = users["alice"]
    solo = task_store.create("Solo", alice.id, {alice.id})
    mark_complete(solo.id, alice.id)

    assert compute_progress(task_store.find_assigned_to(alice.id)) == 50


def test_task_lock_selects_for_update() -> None:
    sql = str(completion._task_lock(7).compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" in sql
    assert "tasks" in sql


def test_mark_complete_locks_task_before_writing(users, shared_task, monkeypatch) -> None:
    locked = []
    real_lock = completion._task_lock

    def recording_lock(task_id):
        locked.append(task_id)
        return real_lock(task_id)

    monkeypatch.setattr(completion, "_task_lock", recording_lock)
    mark_complete(shared_task.id, users["alice"].id)

    assert locked == [shared_task.id]


def test_rejected_completion_takes_no_lock(users, shared_task, monkeypatch) -> None:
    locked = []
    monkeypatch.setattr(completion, "_task_lock", lambda task_id: locked.append(task_id))

    with pytest.raises(NotAssigned):
        mark_complete(shared_task.id, users["carol"].id)
    assert locked == []
