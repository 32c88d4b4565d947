from typing import Optional, Tuple

from passlib.context import CryptContext

from .config import get_settings

# pbkdf2_sha256 is the default to avoid the bcrypt 72-byte limitation; bcrypt
# stays accepted so hashes written by the legacy server still verify, and
# deprecated="auto" marks them for rehashing on the next successful login.
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256", "bcrypt"],
    deprecated="auto",
    pbkdf2_sha256__rounds=get_settings().password_hash_rounds,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # unknown or malformed hash
        return False


def verify_and_update(plain: str, hashed: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Verify ``plain`` and return a replacement hash when ``hashed`` is outdated."""
    if not hashed:
        return False, None
    try:
        return pwd_context.verify_and_update(plain, hashed)
    except ValueError:
        return False, None


def dummy_verify() -> None:
    """Spend about as long as a real verify, for logins with an unknown email."""
    pwd_context.dummy_verify()
