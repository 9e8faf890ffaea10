"""Manifest identity value object."""

from __future__ import annotations

import re
from dataclasses import dataclass

IDENTITY_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class IdentityFormatError(ValueError):
    """Raised when an ``id@version`` string is malformed."""


@dataclass(frozen=True, order=True)
class Identity:
    """Unique name of a manifest entity within its kind."""

    entity_id: str
    version: str

    def __str__(self) -> str:
        return f"{self.entity_id}@{self.version}"

    @staticmethod
    def parse(value: object) -> Identity:
        """Parse the canonical ``id@version`` form."""
        if not isinstance(value, str):
            raise IdentityFormatError("Identity must be a string.")
        if value != value.strip() or any(char.isspace() for char in value):
            raise IdentityFormatError(f"Identity '{value}' contains whitespace.")
        parts = value.split("@")
        if len(parts) != 2:
            raise IdentityFormatError(f"Identity '{value}' must contain exactly one '@'.")
        entity_id, version = parts
        if not entity_id or not version:
            raise IdentityFormatError(f"Identity '{value}' requires a non-empty id and version.")
        if not IDENTITY_ID_PATTERN.fullmatch(entity_id):
            raise IdentityFormatError(f"Identity id '{entity_id}' contains invalid characters.")
        return Identity(entity_id=entity_id, version=version)
