"""Accounts, credentials and the logged-in session."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, fields
from typing import Dict, List, Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from .forms import MissingFieldError
from .models import ROLES, Account
from .session_store import SessionStore

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "currentUser"
_BCRYPT_ROUNDS = int(os.environ.get("FLIGHTFINDER_BCRYPT_ROUNDS", 12))


class AccountConflictError(ValueError):
    """Raised when a registration reuses an existing username or email."""


class AuthenticationError(RuntimeError):
    """Raised when a login attempt fails; the message is safe to show."""


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())


@dataclass(frozen=True)
class AccountSnapshot:
    """Detached copy of an account, as kept in session storage."""

    id: str
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    phone: str
    date_of_birth: str
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountSnapshot":
        return cls(**account.as_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "AccountSnapshot":
        names = {item.name for item in fields(cls)}
        return cls(**{key: str(value) for key, value in data.items() if key in names})

    def as_dict(self) -> Dict[str, str]:
        return {item.name: getattr(self, item.name) for item in fields(self)}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def find_account(session: Session, username: str) -> Optional[Account]:
    return session.scalars(select(Account).where(Account.username == username)).first()


def list_accounts(session: Session) -> List[Account]:
    return list(session.scalars(select(Account)))


def register_account(
    session: Session,
    *,
    username: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: str,
    date_of_birth: str,
    role: str = "traveler",
) -> Account:
    """Append a new account after rejecting duplicate usernames and emails."""

    provided = {
        "username": username,
        "email": email,
        "password": password,
        "first_name": first_name,
        "last_name": last_name,
        "phone": phone,
        "date_of_birth": date_of_birth,
    }
    missing = [name for name, value in provided.items() if not (value or "").strip()]
    if missing:
        raise MissingFieldError(missing)
    if role not in ROLES:
        raise ValueError(f"unsupported role '{role}'")
    if find_account(session, username) is not None:
        raise AccountConflictError("Username already exists")
    if session.scalars(select(Account).where(Account.email == email)).first() is not None:
        raise AccountConflictError("Email already exists")

    stamp = int(time.time() * 1000)
    while session.get(Account, str(stamp)) is not None:
        stamp += 1
    account = Account(
        id=str(stamp),
        username=username,
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role,
        phone=phone,
        date_of_birth=date_of_birth,
        password_hash=hash_password(password),
    )
    session.add(account)
    session.flush()
    logger.info("Registered account %s (%s)", account.username, account.role)
    return account


def authenticate(session: Session, username: str, password: str) -> Account:
    account = find_account(session, username)
    if account is None:
        raise AuthenticationError("User not found")
    if not verify_password(password, account.password_hash):
        raise AuthenticationError("Invalid password")
    return account


class AuthService:
    """Tracks who is logged in, persisting the account in a ``SessionStore``."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store
        self._current: Optional[AccountSnapshot] = None
        saved = store.get(CURRENT_USER_KEY)
        if isinstance(saved, dict):
            try:
                self._current = AccountSnapshot.from_dict(saved)
            except TypeError as exc:
                logger.warning("Discarding saved session in %s: %s", store.path, exc)

    @property
    def current_user(self) -> Optional[AccountSnapshot]:
        return self._current

    def is_authenticated(self) -> bool:
        return self._current is not None

    def has_role(self, role: str) -> bool:
        return self._current is not None and self._current.role == role

    def _remember(self, account: Account) -> AccountSnapshot:
        self._current = AccountSnapshot.from_account(account)
        self.store.set(CURRENT_USER_KEY, self._current.as_dict())
        return self._current

    def login(self, session: Session, username: str, password: str) -> AccountSnapshot:
        try:
            account = authenticate(session, username, password)
        except AuthenticationError as exc:
            logger.info("Login failed for %s: %s", username, exc)
            raise
        logger.info("Logged in %s", username)
        return self._remember(account)

    def register(self, session: Session, **details: str) -> AccountSnapshot:
        return self._remember(register_account(session, **details))

    def logout(self) -> None:
        if self._current is not None:
            logger.info("Logged out %s", self._current.username)
        self._current = None
        self.store.remove(CURRENT_USER_KEY)
