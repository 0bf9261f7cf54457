"""Admin handlers that run against the dashd database."""
from __future__ import annotations

import logging

from cli.commandline import CommandLine
from core.crypto import encode_password
from core.errors import ValidationError
from core.sqlstore import ADMIN_USER_ID, SqlStore
from core.theme import theme as _theme

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 4


def reset_password_command(cmd: CommandLine, store: SqlStore):
    """Set a new password for the built-in admin user (id 1)."""
    args = cmd.args()
    new_password = args[0] if args else ""
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("New password too short")

    user = store.get_user_by_id(ADMIN_USER_ID)
    if user is None:
        raise LookupError("Could not read user from database. Error: user not found")

    store.update_user_password(ADMIN_USER_ID, encode_password(new_password, user["salt"]))
    logger.info("admin password reset for user %s", user["login"])

    cmd.console.print()
    cmd.console.print(f"Admin password changed successfully {_theme.check()}")
