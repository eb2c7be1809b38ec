"""Domain error taxonomy shared by every bounded context."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for domain-level failures."""


class EntityNotFoundError(DomainError):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity: str, identifier: object) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier!r} not found")


__all__ = [
    "DomainError",
    "EntityNotFoundError",
]
