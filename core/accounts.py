from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.config import PASSWORD_MIN_LENGTH, TOKEN_TTL_SECONDS
from core.errors import DuplicateUser, InvalidCredentials, Unauthenticated, ValidationError

logger = logging.getLogger(__name__)

_PBKDF2_ROUNDS = 120_000


@dataclass(frozen=True)
class Principal:
    id: str
    email: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.name}


@dataclass(frozen=True)
class _Account:
    principal: Principal
    salt: bytes
    password_hash: bytes
    created_at: float


def hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS)


class AccountStore:
    """In-memory identity service: credentials plus expiring bearer tokens."""

    def __init__(self, token_ttl: int = TOKEN_TTL_SECONDS, clock=time.time) -> None:
        self._lock = threading.Lock()
        self._accounts: Dict[str, _Account] = {}
        self._tokens: Dict[str, Tuple[str, float]] = {}
        self._token_ttl = token_ttl
        self._clock = clock

    def _issue(self, email: str) -> str:
        token = secrets.token_urlsafe(32)
        self._tokens[token] = (email, self._clock() + self._token_ttl)
        return token

    def register(self, email: str, password: str, name: str) -> Tuple[Principal, str]:
        email = (email or "").strip().lower()
        name = (name or "").strip()
        if not email or not password or not name:
            raise ValidationError("All fields are required")
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        salt = secrets.token_bytes(16)
        with self._lock:
            if email in self._accounts:
                raise DuplicateUser("User already exists with this email")
            principal = Principal(id=uuid.uuid4().hex, email=email, name=name)
            self._accounts[email] = _Account(principal, salt, hash_password(password, salt), self._clock())
            token = self._issue(email)
        logger.info("registered %s", email)
        return principal, token

    def login(self, email: str, password: str) -> Tuple[Principal, str]:
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")
        with self._lock:
            account = self._accounts.get(email)
            if account is None or not hmac.compare_digest(
                account.password_hash, hash_password(password, account.salt)
            ):
                raise InvalidCredentials("Invalid email or password")
            token = self._issue(email)
        return account.principal, token

    def authenticate(self, token: Optional[str]) -> Principal:
        if not token:
            raise Unauthenticated("No token provided")
        with self._lock:
            entry = self._tokens.get(token)
            if entry is None:
                raise Unauthenticated("Invalid token")
            email, expires_at = entry
            if expires_at <= self._clock():
                del self._tokens[token]
                raise Unauthenticated("Token expired")
            account = self._accounts.get(email)
        if account is None:
            raise Unauthenticated("User not found")
        return account.principal

    def logout(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)
