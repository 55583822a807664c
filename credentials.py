"""Credential store: user registration, lookup and password verification."""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from errors import DuplicateUsername, InvalidCredentials, InvalidRole, Unavailable
from models import ROLE_NORMAL, ROLES, User, db

logger = logging.getLogger(__name__)


def register(username, password, full_name, role=ROLE_NORMAL):
    """Create a user with a salted password hash.

    Raises DuplicateUsername if the username is taken, including when a
    concurrent registration commits first.
    """
    role = role or ROLE_NORMAL
    if role not in ROLES:
        raise InvalidRole(f"Unknown role: {role}")

    if find_by_username(username) is not None:
        raise DuplicateUsername()

    method = current_app.config.get('PASSWORD_HASH_METHOD', 'pbkdf2:sha256')
    hashed = generate_password_hash(password, method=method)
    user = User(username, hashed, full_name, role=role)

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise DuplicateUsername() from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Registration failed for %s", username)
        raise Unavailable() from e

    logger.info("Registered user %s role=%s id=%s", user.username, user.role, user.id)
    return user


def find_by_username(username):
    return User.query.filter_by(username=username).first()


def find_by_id(user_id):
    return db.session.get(User, user_id)


def list_users(role=None):
    query = User.query
    if role is not None:
        query = query.filter_by(role=role)
    return query.order_by(User.username).all()


def verify(username, password):
    """Return the user when the password matches, else raise InvalidCredentials.

    An unknown username and a wrong password fail the same way.
    """
    user = find_by_username(username)
    if user is None or not check_password_hash(user.password_hash, password):
        raise InvalidCredentials()
    return user
