"""Canonical entity-relationship model.

Every dialect (hand-written model source, AI-generated JSON) is reduced to
these records. They serialize to plain dicts so the document store can
msgpack them and the HTTP layer can return them verbatim.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from dataclasses import fields as dc_fields
from enum import Enum
from typing import Any

from schemasync.errors import DegradedExtraction
from schemasync.types import CanonicalType


def _known_keys(cls: type, data: dict) -> dict:
    """Drop keys the dataclass does not declare."""
    names = {f.name for f in dc_fields(cls)}
    return {k: v for k, v in data.items() if k in names}


# ---------------------------------------------------------------------------
# Entity side
# ---------------------------------------------------------------------------


class Cardinality(str, Enum):
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


@dataclass
class Field:
    """A field of an entity, with its type-appropriate constraints."""

    name: str
    type: str = CanonicalType.TEXT.value
    required: bool = False
    unique: bool = False
    index: bool = False
    sparse: bool = False
    default_value: Any = None
    enum_values: list[Any] = field(default_factory=list)
    reference: str | None = None  # target entity for foreign keys
    ref_field: str | None = None
    is_foreign_key: bool = False
    # text constraints
    trim: bool = False
    lowercase: bool = False
    uppercase: bool = False
    minlength: int | None = None
    maxlength: int | None = None
    match: str | None = None
    # numeric constraints
    min: float | None = None
    max: float | None = None
    # list shape
    array_type: str | None = None
    array_min: int | None = None
    array_max: int | None = None
    # structure shape
    nested_fields: list[Field] = field(default_factory=list)
    description: str = ""
    example: Any = None
    is_primary_key: bool = False
    auto_generate: bool = False
    is_sensitive: bool = False
    exclude_from_response: bool = False

    @property
    def is_list(self) -> bool:
        """True for list fields, including lists of references."""
        return (
            self.type == CanonicalType.LIST.value or self.array_type is not None
        )

    def set_reference(self, target: str) -> None:
        """Mark the field as a foreign key to ``target``.

        A reference always forces the identifier-reference type. A list of
        references keeps its list shape through ``array_type``.
        """
        was_list = self.is_list
        self.reference = target
        self.is_foreign_key = True
        self.type = CanonicalType.REFERENCE.value
        if was_list:
            self.array_type = CanonicalType.REFERENCE.value

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Field:
        values = _known_keys(cls, data)
        values["nested_fields"] = [
            cls.from_dict(nf) for nf in data.get("nested_fields") or []
        ]
        values["enum_values"] = list(data.get("enum_values") or [])
        return cls(**values)


@dataclass
class Index:
    """A (possibly composite) index over entity fields."""

    fields: list[str] = field(default_factory=list)
    unique: bool = False
    sparse: bool = False
    name: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Index:
        values = _known_keys(cls, data)
        values["fields"] = list(data.get("fields") or [])
        return cls(**values)


@dataclass
class Relationship:
    """An explicit relationship from the owning entity to ``target``."""

    target: str
    cardinality: str = Cardinality.ONE_TO_MANY.value
    field: str = ""  # owning field
    foreign_field: str = ""  # inverse field on the target
    cascade_delete: bool = False
    description: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Relationship:
        return cls(**_known_keys(cls, data))


@dataclass
class TimestampPolicy:
    enabled: bool = False
    created_at: str = "createdAt"
    updated_at: str = "updatedAt"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> TimestampPolicy:
        return cls(**_known_keys(cls, data or {}))


@dataclass
class SoftDeletePolicy:
    enabled: bool = False
    field: str = "deleted_at"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> SoftDeletePolicy:
        return cls(**_known_keys(cls, data or {}))


@dataclass
class Hook:
    """A documented lifecycle hook (pre-save, post-remove, ...)."""

    event: str = "pre-save"
    description: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Hook:
        return cls(**_known_keys(cls, data))


@dataclass
class Entity:
    """A canonical record type, independent of the dialect it came from."""

    name: str
    description: str = ""
    collection_name: str | None = None
    fields: list[Field] = field(default_factory=list)
    indexes: list[Index] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    timestamps: TimestampPolicy = field(default_factory=TimestampPolicy)
    soft_delete: SoftDeletePolicy = field(default_factory=SoftDeletePolicy)
    module: str = ""
    hooks: list[Hook] = field(default_factory=list)
    notes: str = ""
    # provenance
    source_type: str = "mongoose"
    source_code: str | None = None
    imported_at: float | None = None
    last_synced_at: float | None = None
    degraded: list[DegradedExtraction] = field(default_factory=list)

    def get_field(self, name: str) -> Field | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def reference_fields(self) -> list[Field]:
        return [f for f in self.fields if f.reference]

    def effective_indexes(self) -> list[Index]:
        """Explicit indexes plus defaults from field-level flags.

        A field flagged unique or index gets a single-field index unless an
        explicit index already covers exactly that field.
        """
        result = list(self.indexes)
        covered = {tuple(idx.fields) for idx in self.indexes}
        for f in self.fields:
            if not (f.unique or f.index):
                continue
            if (f.name,) in covered:
                continue
            result.append(
                Index(
                    fields=[f.name],
                    unique=f.unique,
                    sparse=f.sparse,
                    name=f.name,
                )
            )
        return result

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "collection_name": self.collection_name,
            "fields": [f.to_dict() for f in self.fields],
            "indexes": [i.to_dict() for i in self.indexes],
            "relationships": [r.to_dict() for r in self.relationships],
            "timestamps": self.timestamps.to_dict(),
            "soft_delete": self.soft_delete.to_dict(),
            "module": self.module,
            "hooks": [h.to_dict() for h in self.hooks],
            "notes": self.notes,
            "source_type": self.source_type,
            "source_code": self.source_code,
            "imported_at": self.imported_at,
            "last_synced_at": self.last_synced_at,
            "degraded": [d.to_dict() for d in self.degraded],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Entity:
        values = _known_keys(cls, data)
        values["fields"] = [
            Field.from_dict(f) for f in data.get("fields") or []
        ]
        values["indexes"] = [
            Index.from_dict(i) for i in data.get("indexes") or []
        ]
        values["relationships"] = [
            Relationship.from_dict(r) for r in data.get("relationships") or []
        ]
        values["timestamps"] = TimestampPolicy.from_dict(data.get("timestamps"))
        values["soft_delete"] = SoftDeletePolicy.from_dict(
            data.get("soft_delete")
        )
        values["hooks"] = [Hook.from_dict(h) for h in data.get("hooks") or []]
        values["degraded"] = [
            DegradedExtraction.from_dict(d) for d in data.get("degraded") or []
        ]
        return cls(**values)


# ---------------------------------------------------------------------------
# Endpoint side
# ---------------------------------------------------------------------------


@dataclass
class Parameter:
    """A path or query parameter."""

    name: str
    type: str = CanonicalType.TEXT.value
    required: bool = False
    description: str = ""
    default_value: Any = None
    enum_values: list[Any] = field(default_factory=list)


@dataclass
class RequestBody:
    content_type: str = "application/json"
    required: bool = True
    description: str = ""
    schema: Any = None
    example: Any = None


@dataclass
class ResponseSpec:
    status_code: int = 200
    description: str = ""
    content_type: str = "application/json"
    schema: Any = None
    example: Any = None


@dataclass
class RateLimit:
    enabled: bool = False
    max_requests: int | None = None
    window_ms: int | None = None


@dataclass
class Endpoint:
    """An API endpoint as described by the completion service."""

    method: str = "GET"
    path: str = "/"
    summary: str = ""
    description: str = ""
    module: str = ""
    auth_required: bool = True
    roles_allowed: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    status: str = "planned"
    version: str = "v1"
    related_entity: str = ""
    path_params: list[Parameter] = field(default_factory=list)
    query_params: list[Parameter] = field(default_factory=list)
    headers: list[Any] = field(default_factory=list)
    request_body: RequestBody | None = None
    responses: list[ResponseSpec] = field(default_factory=list)
    rate_limit: RateLimit | None = None
    deprecated_date: str | None = None
    deprecated_reason: str | None = None
    notes: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Endpoint:
        values = _known_keys(cls, data)
        values["path_params"] = [
            Parameter(**_known_keys(Parameter, p))
            for p in data.get("path_params") or []
        ]
        values["query_params"] = [
            Parameter(**_known_keys(Parameter, p))
            for p in data.get("query_params") or []
        ]
        body = data.get("request_body")
        values["request_body"] = (
            RequestBody(**_known_keys(RequestBody, body)) if body else None
        )
        values["responses"] = [
            ResponseSpec(**_known_keys(ResponseSpec, r))
            for r in data.get("responses") or []
        ]
        limit = data.get("rate_limit")
        values["rate_limit"] = (
            RateLimit(**_known_keys(RateLimit, limit)) if limit else None
        )
        return cls(**values)


# ---------------------------------------------------------------------------
# Architecture document
# ---------------------------------------------------------------------------


@dataclass
class ArchitectureModule:
    name: str
    description: str = ""
    type: str = "backend"
    status: str = "planned"
    features: list[Any] = field(default_factory=list)
    dependencies: list[Any] = field(default_factory=list)
    estimated_complexity: str = "medium"
    notes: str = ""


@dataclass
class ArchitectureDecision:
    title: str
    status: str = "accepted"
    context: str = ""
    decision: str = ""
    consequences: str = ""
    alternatives_considered: list[Any] = field(default_factory=list)


@dataclass
class RoadmapPhase:
    phase: str
    name: str = ""
    description: str = ""
    modules_included: list[Any] = field(default_factory=list)
    features: list[Any] = field(default_factory=list)
    status: str = "planned"


@dataclass
class PatternUsage:
    pattern: str
    applied_to: str = "all"
    description: str = ""


@dataclass
class Integration:
    name: str
    type: str = "other"
    provider: str = ""
    status: str = "planned"


@dataclass
class SecurityPolicy:
    authentication_method: str = ""
    authorization_model: str = ""
    encryption_at_rest: bool = False
    encryption_in_transit: bool = True
    security_headers: bool = True
    audit_logging: bool = False


@dataclass
class Architecture:
    """Normalized architecture proposal for a product."""

    project_name: str = "Project Architecture"
    description: str = ""
    project_type: str = "web_app"
    scale: str = "mvp"
    tech_stack: dict[str, dict] = field(default_factory=dict)
    modules: list[ArchitectureModule] = field(default_factory=list)
    architecture_patterns: list[PatternUsage] = field(default_factory=list)
    api_endpoints: list[Endpoint] = field(default_factory=list)
    integrations: list[Integration] = field(default_factory=list)
    architecture_decisions: list[ArchitectureDecision] = field(
        default_factory=list
    )
    technical_roadmap: list[RoadmapPhase] = field(default_factory=list)
    security: SecurityPolicy | None = None
    directory_structure: Any = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Architecture:
        values = _known_keys(cls, data)
        values["tech_stack"] = dict(data.get("tech_stack") or {})
        values["modules"] = [
            ArchitectureModule(**_known_keys(ArchitectureModule, m))
            for m in data.get("modules") or []
        ]
        values["architecture_patterns"] = [
            PatternUsage(**_known_keys(PatternUsage, p))
            for p in data.get("architecture_patterns") or []
        ]
        values["api_endpoints"] = [
            Endpoint.from_dict(e) for e in data.get("api_endpoints") or []
        ]
        values["integrations"] = [
            Integration(**_known_keys(Integration, i))
            for i in data.get("integrations") or []
        ]
        values["architecture_decisions"] = [
            ArchitectureDecision(**_known_keys(ArchitectureDecision, d))
            for d in data.get("architecture_decisions") or []
        ]
        values["technical_roadmap"] = [
            RoadmapPhase(**_known_keys(RoadmapPhase, p))
            for p in data.get("technical_roadmap") or []
        ]
        security = data.get("security")
        values["security"] = (
            SecurityPolicy(**_known_keys(SecurityPolicy, security))
            if security
            else None
        )
        return cls(**values)


# ---------------------------------------------------------------------------
# Per-product schema document
# ---------------------------------------------------------------------------


@dataclass
class SchemaDocument:
    """The one canonical schema document a product owns."""

    product_id: str
    name: str = "Database Schema"
    description: str = ""
    database_type: str = "mongodb"
    orm_type: str = "mongoose"
    entities: list[Entity] = field(default_factory=list)
    version: str = "1.0.0"
    status: str = "draft"
    tags: list[str] = field(default_factory=list)
    notes: str = ""
    created_by: str | None = None
    updated_by: str | None = None
    created_at: float | None = None
    updated_at: float | None = None
    revision: int = 0

    def find_entity(self, name: str) -> int:
        """Index of the entity named ``name`` (case-insensitive), or -1."""
        wanted = name.lower()
        for i, entity in enumerate(self.entities):
            if entity.name.lower() == wanted:
                return i
        return -1

    def remove_entity(self, name: str) -> bool:
        idx = self.find_entity(name)
        if idx < 0:
            return False
        del self.entities[idx]
        return True

    def stats(self) -> dict[str, int]:
        return {
            "total_entities": len(self.entities),
            "total_fields": sum(len(e.fields) for e in self.entities),
            "total_relationships": sum(
                len(e.relationships) for e in self.entities
            ),
            "total_indexes": sum(len(e.indexes) for e in self.entities),
        }

    def to_dict(self) -> dict:
        data = {
            f.name: getattr(self, f.name)
            for f in dc_fields(self)
            if f.name != "entities"
        }
        data["tags"] = list(self.tags)
        data["entities"] = [e.to_dict() for e in self.entities]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> SchemaDocument:
        values = _known_keys(cls, data)
        values["entities"] = [
            Entity.from_dict(e) for e in data.get("entities") or []
        ]
        values["tags"] = list(data.get("tags") or [])
        return cls(**values)
