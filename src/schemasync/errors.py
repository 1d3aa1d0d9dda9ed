"""Error kinds raised by the schema store and engine.

Extraction never raises on malformed fragments; it records a
DegradedExtraction note instead. Only the orchestration layer raises the
hard kinds below.
"""

from __future__ import annotations

from dataclasses import dataclass


class SchemaSyncError(Exception):
    """Base class for all schemasync errors."""


class InputTooSparse(SchemaSyncError):
    """Source text is too short or does not look like a model declaration."""


class UnsupportedDialect(SchemaSyncError):
    """An explicit dialect hint names a path that is not implemented."""

    def __init__(self, dialect: str, supported: tuple[str, ...] = ()):
        self.dialect = dialect
        self.supported = supported
        msg = f"Unsupported dialect: {dialect!r}"
        if supported:
            msg += f" (supported: {', '.join(supported)})"
        super().__init__(msg)


class NotFound(SchemaSyncError):
    """Schema document or entity is absent."""


class AlreadyExists(SchemaSyncError):
    """Entity import collided with an existing entity and overwrite is off."""

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(
            f"Entity '{entity_name}' already exists; "
            "import with overwrite=True to replace it"
        )


class UnstorableDocument(SchemaSyncError):
    """A document holds a value the storage encoding cannot represent."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot store {key!r}: {reason}")


class RevisionConflict(SchemaSyncError):
    """A document changed between read and write."""

    def __init__(self, key: str, expected: int | None, actual: int | None):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Revision conflict on {key!r}: "
            f"expected {expected}, found {actual}"
        )


@dataclass
class DegradedExtraction:
    """A field or section that was reduced to a minimal record."""

    path: str  # field name, dotted for nested fields
    reason: str

    def to_dict(self) -> dict:
        return {"path": self.path, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: dict) -> DegradedExtraction:
        return cls(path=data.get("path", ""), reason=data.get("reason", ""))
