"""Pydantic models for store operation responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DegradedNote(BaseModel):
    """A field or section reduced to a minimal record during extraction."""

    path: str = Field(description="Field name, dotted for nested fields")
    reason: str


class ImportOutcome(BaseModel):
    """Result of importing one entity."""

    entity_name: str
    created: bool = Field(description="True if appended, False if replaced")
    entity: dict[str, Any] = Field(description="The stored canonical entity")
    degraded: list[DegradedNote] = Field(default_factory=list)


class ImportFailure(BaseModel):
    """One failed item of a bulk import."""

    index: int = Field(description="Position of the item in the request")
    error: str


class BulkImportReport(BaseModel):
    """Per-item outcome of a bulk import; never truncated."""

    total: int
    created: int
    updated: int
    failed: int
    entities: list[ImportOutcome] = Field(default_factory=list)
    errors: list[ImportFailure] = Field(default_factory=list)


class EntitySummary(BaseModel):
    """Listing view of an entity."""

    name: str
    description: str = ""
    collection_name: str | None = None
    module: str = ""
    source_type: str = ""
    field_count: int
    relationship_count: int
    index_count: int
    has_timestamps: bool
    has_soft_delete: bool
    imported_at: float | None = None
    last_synced_at: float | None = None


class SchemaStats(BaseModel):
    """Totals over a product's schema document."""

    total_entities: int = 0
    total_fields: int = 0
    total_relationships: int = 0
    total_indexes: int = 0


class GraphNode(BaseModel):
    id: str
    label: str
    weight: int = Field(description="Number of fields on the entity")
    description: str = ""


class GraphEdge(BaseModel):
    source: str
    target: str
    label: str = Field(description="Owning field name")
    cardinality: str
    implicit: bool = Field(
        default=False,
        description="Inferred from a reference field, not declared",
    )


class GraphStats(BaseModel):
    total_nodes: int
    total_edges: int


class RelationshipGraph(BaseModel):
    """Entity relationship graph for visualization."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    stats: GraphStats


class GeneratedCode(BaseModel):
    """Model source regenerated from a canonical entity."""

    entity_name: str
    dialect: str = "mongoose"
    code: str
