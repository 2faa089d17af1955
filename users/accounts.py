"""
users/accounts.py -- Account operations: register, look up, change email and
password, delete.

Plain functions over a UserStore, called by api/routes/v1/{auth,users}.py.
Each raises a core.errors.ServiceError subclass on failure; route handlers
never translate errors themselves.
"""

from __future__ import annotations

import logging

from auth.passwords import hash_password, verify_password
from core.errors import BadRequestError, ConflictError, NotFoundError
from users.models import User
from users.store import UserStore

logger = logging.getLogger("sessiongate.accounts")


def register_user(store: UserStore, email: str, password: str) -> User:
    """Create an account and return it.

    The pre-check gives a clean 409 in the common case; the UNIQUE constraint
    in UserStore.create_user() catches the concurrent case.
    """
    if store.get_by_email(email) is not None:
        raise ConflictError("User with such email already exists")
    user_id = store.create_user(User(email=email, hashed_password=hash_password(password)))
    logger.info("User registered (userId: %s, email: %s)", user_id, email)
    return get_user_by_id(store, user_id)


def get_user_by_id(store: UserStore, user_id: int) -> User:
    user = store.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User with such id not found")
    return user


def get_user_by_email(store: UserStore, email: str) -> User:
    user = store.get_by_email(email)
    if user is None:
        raise NotFoundError("User with such email not found")
    return user


def change_email(store: UserStore, user_id: int, new_email: str) -> User:
    """Change the user's email.

    Access tokens already issued keep the old email in their claims until the
    next refresh or login.
    """
    user = get_user_by_id(store, user_id)
    old_email = user.email
    if old_email == new_email:
        raise BadRequestError("Enter a new email")
    if store.get_by_email(new_email) is not None:
        raise ConflictError("User with such email already exists")
    store.update_user(user_id, email=new_email)
    logger.info("User email changed (userId: %s, oldEmail: %s, newEmail: %s)", user_id, old_email, new_email)
    return get_user_by_id(store, user_id)


def change_password(store: UserStore, user_id: int, old_password: str, new_password: str) -> User:
    user = get_user_by_id(store, user_id)
    if not verify_password(old_password, user.hashed_password):
        raise BadRequestError("Wrong old password")
    if verify_password(new_password, user.hashed_password):
        raise BadRequestError("Enter a new password")
    store.update_user(user_id, hashed_password=hash_password(new_password))
    logger.info("User password changed (userId: %s)", user_id)
    return get_user_by_id(store, user_id)


def delete_user(store: UserStore, user_id: int) -> None:
    user = get_user_by_id(store, user_id)
    store.delete_user(user_id)
    logger.info("User successfully deleted (userId: %s, email: %s)", user.id, user.email)
