"""Session/auth gate.

A logged-in session holds a ``SessionSnapshot`` copied from the user row at
login time. Handlers read it once with ``load_session()`` and pass it
explicitly to every protected operation.
"""

import logging
from dataclasses import asdict, dataclass

from flask import session

import credentials
from errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

SESSION_KEY = "user"


@dataclass(frozen=True)
class SessionSnapshot:
    user_id: int
    username: str
    full_name: str
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.id, username=user.username, full_name=user.full_name, role=user.role)

    @classmethod
    def from_mapping(cls, data):
        return cls(
            user_id=data["user_id"],
            username=data["username"],
            full_name=data["full_name"],
            role=data["role"],
        )

    def to_dict(self):
        return asdict(self)


def login(username, password):
    """Verify credentials and return a snapshot; raises InvalidCredentials."""
    user = credentials.verify(username, password)
    return SessionSnapshot.from_user(user)


def start_session(snapshot):
    session.clear()
    session.permanent = True
    session[SESSION_KEY] = snapshot.to_dict()
    logger.info("Session started for %s", snapshot.username)


def load_session():
    """Snapshot for the current request, or None when anonymous."""
    data = session.get(SESSION_KEY)
    if not data:
        return None
    try:
        return SessionSnapshot.from_mapping(data)
    except (KeyError, TypeError):
        # Cookie written by an older layout
        session.clear()
        return None


def logout():
    session.clear()


def require_authenticated(snapshot):
    if snapshot is None:
        raise Unauthenticated()
    return snapshot


def require_role(snapshot, role):
    require_authenticated(snapshot)
    if snapshot.role != role:
        raise Forbidden()
    return snapshot
