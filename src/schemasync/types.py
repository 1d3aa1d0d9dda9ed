"""Canonical field type tags and the loose-token normalizer."""

from __future__ import annotations

from enum import Enum


class CanonicalType(str, Enum):
    """Canonical type tags shared by every dialect."""

    TEXT = "String"
    NUMBER = "Number"
    BOOLEAN = "Boolean"
    DATE = "Date"
    REFERENCE = "ObjectId"
    BINARY = "Buffer"
    LIST = "Array"
    STRUCTURE = "Object"
    OPEN = "Mixed"
    MAP = "Map"
    DECIMAL = "Decimal128"
    UUID = "UUID"


CANONICAL_TYPES = frozenset(t.value for t in CanonicalType)

# lower-cased token -> canonical tag
TYPE_ALIASES: dict[str, str] = {
    # mongoose
    "string": CanonicalType.TEXT,
    "number": CanonicalType.NUMBER,
    "boolean": CanonicalType.BOOLEAN,
    "bool": CanonicalType.BOOLEAN,
    "date": CanonicalType.DATE,
    "objectid": CanonicalType.REFERENCE,
    "buffer": CanonicalType.BINARY,
    "array": CanonicalType.LIST,
    "object": CanonicalType.STRUCTURE,
    "subdocument": CanonicalType.STRUCTURE,
    "mixed": CanonicalType.OPEN,
    "map": CanonicalType.MAP,
    "decimal128": CanonicalType.DECIMAL,
    "uuid": CanonicalType.UUID,
    # qualified mongoose names
    "mongoose.schema.types.objectid": CanonicalType.REFERENCE,
    "schema.types.objectid": CanonicalType.REFERENCE,
    "mongoose.types.objectid": CanonicalType.REFERENCE,
    "types.objectid": CanonicalType.REFERENCE,
    "mongoose.schema.types.mixed": CanonicalType.OPEN,
    "schema.types.mixed": CanonicalType.OPEN,
    "mongoose.schema.types.decimal128": CanonicalType.DECIMAL,
    "schema.types.decimal128": CanonicalType.DECIMAL,
    "mongoose.schema.types.buffer": CanonicalType.BINARY,
    "mongoose.schema.types.map": CanonicalType.MAP,
    "mongoose.schema.types.uuid": CanonicalType.UUID,
    # javascript / prisma / sql-ish
    "str": CanonicalType.TEXT,
    "text": CanonicalType.TEXT,
    "varchar": CanonicalType.TEXT,
    "char": CanonicalType.TEXT,
    "email": CanonicalType.TEXT,
    "int": CanonicalType.NUMBER,
    "integer": CanonicalType.NUMBER,
    "bigint": CanonicalType.NUMBER,
    "float": CanonicalType.NUMBER,
    "double": CanonicalType.NUMBER,
    "long": CanonicalType.NUMBER,
    "decimal": CanonicalType.DECIMAL,
    "datetime": CanonicalType.DATE,
    "timestamp": CanonicalType.DATE,
    "bytes": CanonicalType.BINARY,
    "json": CanonicalType.OPEN,
    "any": CanonicalType.OPEN,
    "dict": CanonicalType.STRUCTURE,
    "list": CanonicalType.LIST,
}


def is_bracketed(token: str) -> bool:
    token = token.strip()
    return token.startswith("[") and token.endswith("]")


def normalize_type(token: object) -> str:
    """Map a loosely specified type token to a canonical tag.

    Unknown tokens are passed through with the first letter capitalized so
    unfamiliar dialects still produce a usable record.
    """
    if token is None:
        return CanonicalType.TEXT.value
    if isinstance(token, CanonicalType):
        return token.value

    raw = str(token).strip()
    if not raw:
        return CanonicalType.TEXT.value

    clean = raw.lower()
    alias = TYPE_ALIASES.get(clean)
    if alias is not None:
        return CanonicalType(alias).value

    # [String], String[] and friends
    if is_bracketed(clean) or clean.endswith("[]"):
        return CanonicalType.LIST.value

    return raw[0].upper() + raw[1:]


def element_type(token: object) -> str | None:
    """Return the normalized element type of a list token, if any."""
    if token is None:
        return None
    raw = str(token).strip()
    if is_bracketed(raw):
        inner = raw[1:-1].strip()
    elif raw.endswith("[]"):
        inner = raw[:-2].strip()
    else:
        return None
    if not inner:
        return CanonicalType.OPEN.value
    return normalize_type(inner)
