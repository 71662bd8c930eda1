"""bcrypt password hashing."""

import bcrypt


def hash_password(password: str) -> str:
    pw = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    pw = plain.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw, hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the users table
        return False


# Compared against when the email is unknown so both paths cost one bcrypt check
DUMMY_HASH = hash_password("inventrack-dummy-password")
