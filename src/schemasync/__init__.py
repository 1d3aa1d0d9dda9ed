from schemasync.codegen import generate
from schemasync.config import EngineConfig, StoreConfig
from schemasync.errors import (
    AlreadyExists,
    DegradedExtraction,
    InputTooSparse,
    NotFound,
    RevisionConflict,
    SchemaSyncError,
    UnsupportedDialect,
)
from schemasync.extract import SchemaExtractionEngine, extract_fields, parse
from schemasync.graph import build_graph
from schemasync.models import (
    Architecture,
    Endpoint,
    Entity,
    Field,
    Index,
    Relationship,
    SchemaDocument,
)
from schemasync.store import CanonicalSchemaStore
from schemasync.types import CanonicalType, normalize_type

__all__ = [
    "AlreadyExists",
    "Architecture",
    "CanonicalSchemaStore",
    "CanonicalType",
    "DegradedExtraction",
    "Endpoint",
    "EngineConfig",
    "Entity",
    "Field",
    "Index",
    "InputTooSparse",
    "NotFound",
    "Relationship",
    "RevisionConflict",
    "SchemaDocument",
    "SchemaExtractionEngine",
    "SchemaSyncError",
    "StoreConfig",
    "UnsupportedDialect",
    "build_graph",
    "extract_fields",
    "generate",
    "normalize_type",
    "parse",
]
