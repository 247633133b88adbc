"""
Password hashing for user profiles.

bcrypt for everything this service writes. werkzeug hashes
(scrypt/pbkdf2) are still verified so profiles imported with a
werkzeug-generated password_hash can log in.
"""

import bcrypt
from werkzeug.security import check_password_hash

BCRYPT_ROUNDS = 12
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(plain_password: str) -> str:
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not password_hash or plain_password is None:
        return False
    if password_hash.startswith(_BCRYPT_PREFIXES):
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    return check_password_hash(password_hash, plain_password)
