import bcrypt

from seminar_backend.core import config


def _to_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes.
    return password.encode('utf-8')[:72]


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(_to_bytes(password), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_to_bytes(plain_password), hashed_password.encode('utf-8'))
    except ValueError:
        return False
