"""bcrypt password hashing.

bcrypt only looks at the first 72 bytes of a password and newer releases
refuse longer input, so both sides truncate to that limit. Passwords may
be up to 128 characters, which can exceed 72 bytes once UTF-8 encoded.
"""

import bcrypt

from config.settings import settings

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # malformed hash in the users table
        return False
