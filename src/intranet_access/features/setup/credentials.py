"""Credential registration with the external identity provider."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import secrets
import uuid
from dataclasses import dataclass

from intranet_access.core.errors import EmailInUseError, WeakCredentialError
from intranet_access.core.identity import canonical_email, validate_email

_SALT_BYTES = 16
_KEY_LEN = 32
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


def check_password_strength(password: str | None, *, min_length: int) -> str:
    """Return ``password`` or raise ``WeakCredentialError``."""

    candidate = password or ""
    if not candidate.strip() or len(candidate) < min_length:
        raise WeakCredentialError(f"Password should be at least {min_length} characters.")
    return candidate


def _encode(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).decode("ascii").rstrip("=")


def _decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def hash_password(password: str, *, n_factor: int = _SCRYPT_N) -> str:
    """Hash ``password`` using scrypt with a random salt."""

    salt = secrets.token_bytes(_SALT_BYTES)
    key = hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt,
        n=n_factor,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
        dklen=_KEY_LEN,
    )
    return f"scrypt${n_factor}${_SCRYPT_R}${_SCRYPT_P}${_encode(salt)}${_encode(key)}"


def verify_password(password: str, hashed: str) -> bool:
    try:
        _, n_str, r_str, p_str, salt_b64, key_b64 = hashed.split("$", 5)
        salt = _decode(salt_b64)
        expected = _decode(key_b64)
        candidate = hashlib.scrypt(
            password.encode("utf-8"),
            salt=salt,
            n=int(n_str),
            r=int(r_str),
            p=int(p_str),
            dklen=len(expected),
        )
    except (ValueError, TypeError):
        return False
    return secrets.compare_digest(candidate, expected)


class CredentialProvider:
    """Interface to the identity provider that owns sign-in credentials."""

    async def register(  # pragma: no cover - interface only
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> str:
        """Create a credential and return the provider's identity id.

        Raises ``EmailInUseError``, ``WeakCredentialError`` or
        ``InvalidIdentityError`` for rejected input.
        """
        raise NotImplementedError

    async def remove(self, identity_id: str) -> None:  # pragma: no cover - interface only
        """Delete a credential created by ``register`` (compensation path)."""
        raise NotImplementedError


@dataclass(slots=True)
class _StoredCredential:
    identity_id: str
    email: str
    password_hash: str
    display_name: str | None


class InMemoryCredentialProvider(CredentialProvider):
    """Process-local provider for tests and embedded use."""

    def __init__(self, *, n_factor: int = _SCRYPT_N) -> None:
        self._by_email: dict[str, _StoredCredential] = {}
        self._lock = asyncio.Lock()
        self._n_factor = n_factor

    async def register(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> str:
        cleaned = validate_email(email)
        key = canonical_email(cleaned)
        async with self._lock:
            if key in self._by_email:
                raise EmailInUseError("Email address is already in use.")
            identity_id = uuid.uuid4().hex
            self._by_email[key] = _StoredCredential(
                identity_id=identity_id,
                email=cleaned,
                password_hash=hash_password(password, n_factor=self._n_factor),
                display_name=display_name,
            )
        return identity_id

    async def remove(self, identity_id: str) -> None:
        async with self._lock:
            for key, stored in list(self._by_email.items()):
                if stored.identity_id == identity_id:
                    del self._by_email[key]

    def verify(self, email: str, password: str) -> str | None:
        """Return the identity id when ``password`` matches."""
        stored = self._by_email.get(canonical_email(email))
        if stored is None or not verify_password(password, stored.password_hash):
            return None
        return stored.identity_id

    def __contains__(self, email: object) -> bool:
        return isinstance(email, str) and canonical_email(email) in self._by_email

    def __len__(self) -> int:
        return len(self._by_email)


__all__ = [
    "CredentialProvider",
    "InMemoryCredentialProvider",
    "check_password_strength",
    "hash_password",
    "verify_password",
]
