from __future__ import annotations
import hashlib
import hmac
import logging
import secrets
import time
from typing import List, Optional

from config import ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD
from errors import ValidationError
from local_cache import LocalCache
from schemas import User

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 260_000
PASSWORD_MIN, PASSWORD_MAX = 8, 16

SESSION_PREFIX = "p2pizza_session_"
ACCOUNTS_PREFIX = "p2pizza_accounts_"


class AuthError(ValidationError):
    pass


# ---------- Password hashing ----------

def hash_password(plain: str, salt: Optional[str] = None) -> str:
    """Return `pbkdf2_sha256$iterations$salt$hexdigest`."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", plain.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(plain: str, hashed: str) -> bool:
    try:
        algo, iterations, salt, digest = hashed.split("$")
    except (AttributeError, ValueError):
        return False
    if algo != "pbkdf2_sha256":
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", plain.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(candidate.hex(), digest)


def validate_password(password: str) -> None:
    if not PASSWORD_MIN <= len(password) <= PASSWORD_MAX:
        raise AuthError(f"Password must be {PASSWORD_MIN} to {PASSWORD_MAX} characters")


# ---------- Accounts ----------

class AccountStore:
    def __init__(self, cache_path: Optional[str] = None, admin_email: str = ADMIN_EMAIL):
        self.accounts = LocalCache(cache_path, prefix=ACCOUNTS_PREFIX)
        self.session = LocalCache(cache_path, prefix=SESSION_PREFIX)
        self.admin_email = admin_email.lower()

    def _users(self) -> List[User]:
        return [User.model_validate(u) for u in self.accounts.get("users", [])]

    def _store_users(self, users: List[User]) -> None:
        self.accounts.set("users", [u.model_dump(mode="json", by_alias=True) for u in users])

    def find(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        return next((u for u in self._users() if u.email == email), None)

    def register(self, email: str, password: str) -> User:
        validate_password(password)
        email = email.strip().lower()
        if not email or "@" not in email:
            raise AuthError("A valid email is required")
        if email == self.admin_email or self.find(email):
            raise AuthError("An account with this email already exists")
        user = User(
            id=f"user-{int(time.time() * 1000)}",
            email=email,
            name=email.split("@")[0],
            role="user",
            password_hash=hash_password(password),
        )
        self._store_users(self._users() + [user])
        logger.info("Registered account %s", email)
        return user

    def _admin_hash(self) -> str:
        stored = self.accounts.get("admin_password")
        if stored is None:
            stored = hash_password(DEFAULT_ADMIN_PASSWORD)
            self.accounts.set("admin_password", stored)
        return stored

    def change_admin_password(self, new_password: str) -> None:
        validate_password(new_password)
        self.accounts.set("admin_password", hash_password(new_password))

    def login(self, email: str, password: str) -> User:
        email = email.strip().lower()
        if email == self.admin_email:
            if not verify_password(password, self._admin_hash()):
                raise AuthError("Wrong administrator password")
            user = User(id="admin-id", email=email, name="Administrator", role="admin")
        else:
            user = self.find(email)
            if user is None:
                raise AuthError("No account with this email")
            if not verify_password(password, user.password_hash or ""):
                raise AuthError("Wrong password")
        self.save_session(user)
        return user

    # ---- session user ----
    def current_user(self) -> Optional[User]:
        data = self.session.get("user")
        return User.model_validate(data) if data else None

    def save_session(self, user: Optional[User]) -> None:
        if user is None:
            self.session.delete("user")
            return
        self.session.set("user", user.model_dump(mode="json", by_alias=True, exclude={"password_hash"}))
        if user.role == "user":
            self._update_account(user)

    def _update_account(self, user: User) -> None:
        users = self._users()
        for i, existing in enumerate(users):
            if existing.id == user.id:
                users[i] = existing.model_copy(update={"favorites": list(user.favorites)})
                self._store_users(users)
                return

    def logout(self) -> None:
        self.save_session(None)
