"""Password hashing.

Hashes are passlib ``pbkdf2_sha512`` strings; the salt and round count live
inside the hash, so a single column is enough.
"""

from __future__ import annotations

from typing import Optional

from passlib.hash import pbkdf2_sha512


def hash_password(password: str) -> str:
    return pbkdf2_sha512.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return pbkdf2_sha512.verify(password, hashed)
    except ValueError:
        # not a pbkdf2_sha512 hash
        return False
