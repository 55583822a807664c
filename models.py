from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

# Initialize SQLAlchemy (no app attached yet)
db = SQLAlchemy()

ROLE_ADMIN = "admin"
ROLE_NORMAL = "normal"
ROLES = (ROLE_ADMIN, ROLE_NORMAL)


# Users who must complete a task
task_assignments = db.Table(
    "task_assignments",
    db.Column("task_id", db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
)

# Assignees who have marked a task done; the composite key keeps each user at most once
task_completions = db.Table(
    "task_completions",
    db.Column("task_id", db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("completed_at", db.DateTime, default=datetime.now, nullable=False),
)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(10), default=ROLE_NORMAL, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    # Tasks this user created
    created_tasks = db.relationship("Task", backref="creator", lazy=True)

    def __init__(self, username, password_hash, full_name, role=ROLE_NORMAL):
        self.username = username
        self.password_hash = password_hash
        self.full_name = full_name
        self.role = role

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    is_done = db.Column(db.Boolean, default=False, nullable=False)
    done_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)

    assigned_users = db.relationship(
        "User", secondary=task_assignments, lazy="selectin", order_by="User.id"
    )
    completed_by = db.relationship(
        "User", secondary=task_completions, lazy="selectin", order_by="User.id"
    )

    @property
    def assigned_user_ids(self):
        return {u.id for u in self.assigned_users}

    @property
    def completed_user_ids(self):
        return {u.id for u in self.completed_by}

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "creator": {
                "id": self.creator.id,
                "username": self.creator.username,
                "full_name": self.creator.full_name,
            },
            "assigned_users": [u.username for u in self.assigned_users],
            "completed_by": [u.username for u in self.completed_by],
            "is_done": self.is_done,
            "done_at": self.done_at.isoformat() if self.done_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        status = "✓" if self.is_done else "○"
        return f"<Task {status} {self.title}>"
