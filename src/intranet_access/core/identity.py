"""Identity descriptor supplied by the external identity provider."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import InvalidIdentityError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_IDENTITY_ID_LENGTH = 128
DEFAULT_DISPLAY_NAME = "New User"


def canonical_email(value: str) -> str:
    return value.strip().lower()


def validate_email(value: str | None) -> str:
    """Return the trimmed email or raise ``InvalidIdentityError``."""

    cleaned = (value or "").strip()
    if not cleaned or not EMAIL_PATTERN.match(cleaned):
        raise InvalidIdentityError("Invalid email address format.")
    return cleaned


def validate_identity_id(value: str | None) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidIdentityError("Identity id must not be empty.")
    if len(cleaned) > MAX_IDENTITY_ID_LENGTH:
        raise InvalidIdentityError("Identity id is too long.")
    return cleaned


@dataclass(frozen=True, slots=True)
class IdentityDescriptor:
    """Authenticated identity as issued by the identity provider."""

    id: str
    email: str
    display_name: str | None = None

    def validated(self) -> IdentityDescriptor:
        """Return a cleaned copy, raising ``InvalidIdentityError`` when malformed."""

        name = (self.display_name or "").strip() or DEFAULT_DISPLAY_NAME
        return IdentityDescriptor(
            id=validate_identity_id(self.id),
            email=validate_email(self.email),
            display_name=name,
        )


__all__ = [
    "DEFAULT_DISPLAY_NAME",
    "EMAIL_PATTERN",
    "IdentityDescriptor",
    "canonical_email",
    "validate_email",
    "validate_identity_id",
]
