"""Password hashing helpers"""

from typing import Optional

import bcrypt

from exam_portal.config import config


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt using the configured cost factor."""
    cost = rounds if rounds is not None else config["bcrypt_rounds"]
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=cost)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash in constant time."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False
