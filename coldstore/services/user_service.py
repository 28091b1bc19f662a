"""User lookup, login checks and account management."""

import logging
from typing import Iterable, Optional, Tuple

from coldstore.core.constants import ALL_ROLES, ROLE_ADMIN, ROLE_USER, TABLE_USERS
from coldstore.exceptions import StoreError
from coldstore.models import User
from coldstore.services.mirror import ChangeEvent, StoreMirror

logger = logging.getLogger(__name__)

MSG_INVALID_LOGIN = "Invalid username or password."


def find_user(users: Iterable[User], username: Optional[str]) -> Optional[User]:
    """Case-insensitive lookup of ``username`` in ``users``."""
    if not username:
        return None
    wanted = username.strip().lower()
    return next((u for u in users if u.username.lower() == wanted), None)


def resolve_role(username: Optional[str], users: Iterable[User]) -> str:
    """Role of ``username`` from the loaded user list.

    A user missing from the list is ``ADMIN`` only when the name is literally
    ``admin`` (the bootstrap login), otherwise ``USER``.
    """
    user = find_user(users, username)
    if user is not None:
        return user.role
    return ROLE_ADMIN if username == "admin" else ROLE_USER


def authenticate(
    users: Iterable[User],
    username: str,
    password: str,
    fallback: Optional[Tuple[str, str]] = None,
) -> Tuple[bool, str, Optional[str]]:
    """Check a login attempt.

    Returns ``(ok, message, username)`` where ``username`` is the stored
    spelling on success. When no record matches, only the ``fallback``
    ``(username, password)`` pair is accepted. Every failure carries the same
    message so it does not reveal whether the account exists.
    """
    username = (username or "").strip()
    if not username:
        return False, "Username is required.", None
    if not password:
        return False, "Password is required.", None

    user = find_user(users, username)
    if user is not None:
        if user.password == password:
            logger.info("User %s logged in", user.username)
            return True, f"Welcome, {user.username}!", user.username
    elif (
        fallback is not None
        and username.lower() == fallback[0].lower()
        and password == fallback[1]
    ):
        logger.warning("Fallback login used for %s", fallback[0])
        return True, f"Welcome, {fallback[0]}!", fallback[0]

    logger.info("Failed login attempt for %s", username)
    return False, MSG_INVALID_LOGIN, None


def check_settings_password(candidate: str, configured: Optional[str]) -> bool:
    """Settings stay locked when no passphrase is configured."""
    if not configured:
        return False
    return candidate == configured


def add_user(
    store, mirror: StoreMirror, username: str, password: str, role: str = ROLE_USER
) -> Tuple[bool, str]:
    username = (username or "").strip()
    if not username or not password:
        return False, "Username and password are required."
    if role not in ALL_ROLES:
        return False, f"Unknown role {role}."
    if find_user(mirror.users(), username) is not None:
        return False, f"User '{username}' already exists."

    row = User(username=username, password=password, role=role).to_row()
    try:
        store.insert(TABLE_USERS, row)
    except StoreError:
        return False, "Failed to add user."
    mirror.apply_local(ChangeEvent.insert(TABLE_USERS, row))
    logger.info("Added user %s with role %s", username, role)
    return True, f"User '{username}' added."


def delete_user(
    store, mirror: StoreMirror, username: str, current_username: Optional[str]
) -> Tuple[bool, str]:
    users = mirror.users()
    user = find_user(users, username)
    if user is None:
        return False, f"User '{username}' not found."
    if current_username and user.username.lower() == current_username.lower():
        return False, "You cannot delete your own account."
    if user.role == ROLE_ADMIN and sum(1 for u in users if u.role == ROLE_ADMIN) <= 1:
        return False, "Cannot delete the last admin."

    try:
        store.delete(TABLE_USERS, "username", user.username)
    except StoreError:
        return False, "Failed to delete user."
    mirror.apply_local(ChangeEvent.delete(TABLE_USERS, user.username))
    logger.info("Deleted user %s", user.username)
    return True, f"User '{user.username}' deleted."
