"""Canonical schema store.

One SchemaDocument per product holds that product's canonical entities. Every
operation is a read-modify-write on that one document, saved with the
revision it was read at; a concurrent writer makes the save fail with
RevisionConflict and the whole operation is retried a bounded number of
times.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import structlog

from schemasync.codegen import generate
from schemasync.config import SUPPORTED_DIALECTS, EngineConfig, StoreConfig
from schemasync.docstore import (
    DocumentCollection,
    LmdbDocumentStore,
    MemoryCollection,
)
from schemasync.errors import (
    AlreadyExists,
    NotFound,
    RevisionConflict,
    SchemaSyncError,
)
from schemasync.extract.engine import SchemaExtractionEngine
from schemasync.graph import build_graph
from schemasync.models import (
    Architecture,
    Endpoint,
    Entity,
    Field,
    SchemaDocument,
)
from schemasync.normalize import (
    normalize_architecture,
    normalize_database_schema,
)
from schemasync.responses import (
    BulkImportReport,
    DegradedNote,
    EntitySummary,
    GeneratedCode,
    ImportFailure,
    ImportOutcome,
    RelationshipGraph,
    SchemaStats,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# SchemaDocument attributes editable through update_schema
SCHEMA_UPDATABLE = (
    "name",
    "description",
    "database_type",
    "orm_type",
    "version",
    "status",
    "tags",
    "notes",
)

# Entity attributes editable through update_entity
ENTITY_UPDATABLE = (
    "description",
    "collection_name",
    "fields",
    "indexes",
    "relationships",
    "timestamps",
    "soft_delete",
    "module",
    "hooks",
    "notes",
)


def _enforce_references(fields: Iterable[Field]) -> None:
    for fld in fields:
        if fld.reference:
            fld.set_reference(fld.reference)
        _enforce_references(fld.nested_fields)


def summarize(entity: Entity) -> EntitySummary:
    return EntitySummary(
        name=entity.name,
        description=entity.description,
        collection_name=entity.collection_name,
        module=entity.module,
        source_type=entity.source_type,
        field_count=len(entity.fields),
        relationship_count=len(entity.relationships),
        index_count=len(entity.indexes),
        has_timestamps=entity.timestamps.enabled,
        has_soft_delete=entity.soft_delete.enabled,
        imported_at=entity.imported_at,
        last_synced_at=entity.last_synced_at,
    )


class CanonicalSchemaStore:
    """Per-product store of canonical entities and architecture."""

    def __init__(
        self,
        schemas: DocumentCollection,
        architectures: DocumentCollection | None = None,
        engine: SchemaExtractionEngine | None = None,
        config: StoreConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.schemas = schemas
        self.architectures = architectures or MemoryCollection()
        self.engine = engine or SchemaExtractionEngine()
        self.config = config or StoreConfig()
        self.clock = clock
        self._backend: LmdbDocumentStore | None = None

    @classmethod
    def open(
        cls,
        config: StoreConfig | None = None,
        engine_config: EngineConfig | None = None,
    ) -> CanonicalSchemaStore:
        """Open an LMDB-backed store under ``config.data_dir``."""
        config = config or StoreConfig()
        backend = LmdbDocumentStore(config.db_path, map_size=config.map_size)
        store = cls(
            backend.collection("schemas"),
            backend.collection("architectures"),
            engine=SchemaExtractionEngine(engine_config),
            config=config,
        )
        store._backend = backend
        return store

    @classmethod
    def in_memory(
        cls,
        config: StoreConfig | None = None,
        engine_config: EngineConfig | None = None,
    ) -> CanonicalSchemaStore:
        return cls(
            MemoryCollection(),
            MemoryCollection(),
            engine=SchemaExtractionEngine(engine_config),
            config=config,
        )

    def close(self) -> None:
        if self._backend is not None:
            self._backend.close()
            self._backend = None

    def __enter__(self) -> CanonicalSchemaStore:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================================
    # Document access
    # =========================================================================

    def _load(self, product_id: str) -> SchemaDocument | None:
        data = self.schemas.load(product_id)
        if data is None:
            return None
        return SchemaDocument.from_dict(data)

    def _new_document(
        self,
        product_id: str,
        actor_id: str | None = None,
        product_name: str | None = None,
    ) -> SchemaDocument:
        now = self.clock()
        return SchemaDocument(
            product_id=product_id,
            name=f"Database Schema - {product_name or product_id}",
            created_by=actor_id,
            created_at=now,
            updated_at=now,
        )

    def _mutate(
        self,
        product_id: str,
        change: Callable[[SchemaDocument], T],
        actor_id: str | None = None,
        create: bool = False,
    ) -> T:
        """Apply ``change`` to the product document and save it.

        The document is re-read and ``change`` re-applied on each attempt, so
        ``change`` must only depend on the document it is given.
        """
        attempts = max(1, self.config.max_write_attempts)
        for attempt in range(1, attempts + 1):
            doc = self._load(product_id)
            if doc is None:
                if not create:
                    raise NotFound(
                        f"No schema found for product {product_id!r}"
                    )
                doc = self._new_document(product_id, actor_id)

            result = change(doc)
            doc.updated_at = self.clock()
            if actor_id is not None:
                doc.updated_by = actor_id

            try:
                doc.revision = self.schemas.save(
                    product_id, doc.to_dict(), doc.revision
                )
                return result
            except RevisionConflict:
                if attempt == attempts:
                    logger.warning(
                        "write conflict, giving up",
                        product_id=product_id,
                        attempts=attempts,
                    )
                    raise
                logger.warning(
                    "write conflict, retrying",
                    product_id=product_id,
                    attempt=attempt,
                )
        raise AssertionError("unreachable")

    # =========================================================================
    # Schema documents
    # =========================================================================

    def get_or_create(
        self,
        product_id: str,
        actor_id: str | None = None,
        product_name: str | None = None,
    ) -> SchemaDocument:
        """Return the product's schema, creating an empty one if needed."""
        doc = self._load(product_id)
        if doc is not None:
            return doc

        doc = self._new_document(product_id, actor_id, product_name)
        try:
            doc.revision = self.schemas.save(product_id, doc.to_dict(), 0)
        except RevisionConflict:
            # created concurrently
            existing = self._load(product_id)
            if existing is None:
                raise
            return existing
        logger.info("schema created", product_id=product_id)
        return doc

    def get_schema(self, product_id: str) -> SchemaDocument:
        doc = self._load(product_id)
        if doc is None:
            raise NotFound(f"No schema found for product {product_id!r}")
        return doc

    def update_schema(
        self,
        product_id: str,
        changes: dict[str, Any],
        actor_id: str | None = None,
    ) -> SchemaDocument:
        """Edit schema metadata; keys outside SCHEMA_UPDATABLE are ignored."""

        def apply(doc: SchemaDocument) -> SchemaDocument:
            for key in SCHEMA_UPDATABLE:
                if key in changes and changes[key] is not None:
                    value = changes[key]
                    setattr(doc, key, list(value) if key == "tags" else value)
            return doc

        return self._mutate(product_id, apply, actor_id)

    def stats(self, product_id: str) -> SchemaStats:
        doc = self._load(product_id)
        if doc is None:
            return SchemaStats()
        return SchemaStats(**doc.stats())

    # =========================================================================
    # Import
    # =========================================================================

    def validate(self, source: object) -> str:
        """Raise InputTooSparse if ``source`` cannot be a model declaration."""
        return self.engine.validate_source(source)

    def import_entity(
        self,
        product_id: str,
        entity: Entity,
        overwrite: bool = True,
        actor_id: str | None = None,
    ) -> ImportOutcome:
        """Upsert ``entity`` by case-insensitive name.

        An existing entity is replaced unless ``overwrite`` is False, in
        which case AlreadyExists is raised. Replacement keeps the original
        ``imported_at`` and advances ``last_synced_at``.
        """
        def apply(doc: SchemaDocument) -> tuple[Entity, bool]:
            now = self.clock()
            incoming = Entity.from_dict(entity.to_dict())
            _enforce_references(incoming.fields)
            idx = doc.find_entity(incoming.name)
            if idx < 0:
                incoming.imported_at = now
                incoming.last_synced_at = None
                doc.entities.append(incoming)
                return incoming, True

            if not overwrite:
                raise AlreadyExists(doc.entities[idx].name)

            existing = doc.entities[idx]
            incoming.imported_at = existing.imported_at
            incoming.last_synced_at = now
            # annotations not recoverable from source survive a re-import
            incoming.module = incoming.module or existing.module
            incoming.hooks = incoming.hooks or existing.hooks
            incoming.notes = incoming.notes or existing.notes
            incoming.description = incoming.description or existing.description
            doc.entities[idx] = incoming
            return incoming, False

        stored, created = self._mutate(product_id, apply, actor_id, create=True)
        logger.info(
            "entity imported",
            product_id=product_id,
            entity=stored.name,
            action="created" if created else "updated",
            fields=len(stored.fields),
        )
        return ImportOutcome(
            entity_name=stored.name,
            created=created,
            entity=stored.to_dict(),
            degraded=[
                DegradedNote(path=d.path, reason=d.reason)
                for d in stored.degraded
            ],
        )

    def import_from_code(
        self,
        product_id: str,
        source: str,
        dialect: str | None = None,
        overwrite: bool = True,
        actor_id: str | None = None,
    ) -> ImportOutcome:
        """Validate, parse and upsert one model declaration."""
        self.validate(source)
        entity = self.engine.parse(source, dialect)
        return self.import_entity(product_id, entity, overwrite, actor_id)

    def _import_many(
        self,
        product_id: str,
        items: list[T],
        importer: Callable[[T], ImportOutcome],
    ) -> BulkImportReport:
        report = BulkImportReport(
            total=len(items), created=0, updated=0, failed=0
        )
        for index, item in enumerate(items):
            try:
                outcome = importer(item)
            except SchemaSyncError as e:
                report.failed += 1
                report.errors.append(ImportFailure(index=index, error=str(e)))
                continue
            if outcome.created:
                report.created += 1
            else:
                report.updated += 1
            report.entities.append(outcome)

        logger.info(
            "bulk import complete",
            product_id=product_id,
            total=report.total,
            created=report.created,
            updated=report.updated,
            failed=report.failed,
        )
        return report

    def import_many_from_code(
        self,
        product_id: str,
        sources: list[str],
        dialect: str | None = None,
        overwrite: bool = True,
        actor_id: str | None = None,
    ) -> BulkImportReport:
        """Import each source independently; failures do not stop the batch."""
        return self._import_many(
            product_id,
            list(sources),
            lambda source: self.import_from_code(
                product_id, source, dialect, overwrite, actor_id
            ),
        )

    def import_from_json(
        self,
        product_id: str,
        raw: Any,
        overwrite: bool = True,
        actor_id: str | None = None,
    ) -> BulkImportReport:
        """Normalize completion-service entity JSON and import each entity."""
        entities = normalize_database_schema(raw)
        return self._import_many(
            product_id,
            entities,
            lambda entity: self.import_entity(
                product_id, entity, overwrite, actor_id
            ),
        )

    # =========================================================================
    # Entities
    # =========================================================================

    def list_entities(self, product_id: str) -> list[EntitySummary]:
        doc = self._load(product_id)
        if doc is None:
            return []
        return [summarize(e) for e in doc.entities]

    def get_entity(self, product_id: str, name: str) -> Entity:
        doc = self.get_schema(product_id)
        idx = doc.find_entity(name)
        if idx < 0:
            raise NotFound(f"Entity {name!r} not found")
        return doc.entities[idx]

    def update_entity(
        self,
        product_id: str,
        name: str,
        changes: dict[str, Any],
        actor_id: str | None = None,
    ) -> Entity:
        """Edit an entity; keys outside ENTITY_UPDATABLE are ignored."""

        def apply(doc: SchemaDocument) -> Entity:
            idx = doc.find_entity(name)
            if idx < 0:
                raise NotFound(f"Entity {name!r} not found")
            data = doc.entities[idx].to_dict()
            for key in ENTITY_UPDATABLE:
                if key in changes and changes[key] is not None:
                    data[key] = changes[key]
            updated = Entity.from_dict(data)
            _enforce_references(updated.fields)
            updated.last_synced_at = self.clock()
            doc.entities[idx] = updated
            return updated

        entity = self._mutate(product_id, apply, actor_id)
        logger.info("entity updated", product_id=product_id, entity=entity.name)
        return entity

    def delete_entity(
        self, product_id: str, name: str, actor_id: str | None = None
    ) -> Entity:
        """Remove an entity and return it."""

        def apply(doc: SchemaDocument) -> Entity:
            idx = doc.find_entity(name)
            if idx < 0:
                raise NotFound(f"Entity {name!r} not found")
            return doc.entities.pop(idx)

        removed = self._mutate(product_id, apply, actor_id)
        logger.info(
            "entity deleted", product_id=product_id, entity=removed.name
        )
        return removed

    def resync_entity(
        self, product_id: str, name: str, actor_id: str | None = None
    ) -> ImportOutcome:
        """Re-parse the entity's stored source and overwrite it."""
        entity = self.get_entity(product_id, name)
        if not entity.source_code:
            raise NotFound(
                f"Entity {entity.name!r} has no stored source to resync"
            )
        dialect = entity.source_type
        if dialect not in SUPPORTED_DIALECTS:
            dialect = None
        return self.import_from_code(
            product_id, entity.source_code, dialect, True, actor_id
        )

    # =========================================================================
    # Outputs
    # =========================================================================

    def get_relationship_map(self, product_id: str) -> RelationshipGraph:
        doc = self._load(product_id)
        return build_graph(doc.entities if doc is not None else [])

    def generate_code(self, product_id: str, name: str) -> GeneratedCode:
        entity = self.get_entity(product_id, name)
        return GeneratedCode(entity_name=entity.name, code=generate(entity))

    def export_json(self, product_id: str) -> dict:
        """Export the schema without provenance or store bookkeeping."""
        doc = self.get_schema(product_id)
        exported_keys = (
            "name",
            "description",
            "collection_name",
            "fields",
            "indexes",
            "relationships",
            "timestamps",
            "soft_delete",
            "module",
            "hooks",
            "notes",
        )
        entities = []
        for entity in doc.entities:
            data = entity.to_dict()
            entities.append({k: data[k] for k in exported_keys})
        return {
            "product_id": doc.product_id,
            "name": doc.name,
            "description": doc.description,
            "database_type": doc.database_type,
            "orm_type": doc.orm_type,
            "version": doc.version,
            "entities": entities,
            "stats": doc.stats(),
            "exported_at": self.clock(),
        }

    # =========================================================================
    # Architecture
    # =========================================================================

    def apply_architecture(
        self,
        product_id: str,
        raw: Any,
        product_name: str | None = None,
    ) -> Architecture:
        """Normalize and store an architecture proposal.

        Replaces any previous architecture, and with it the product's whole
        endpoint list.
        """
        architecture = normalize_architecture(raw, product_name)
        attempts = max(1, self.config.max_write_attempts)
        for attempt in range(1, attempts + 1):
            current = self.architectures.load(product_id)
            revision = int(current.get("revision") or 0) if current else 0
            try:
                self.architectures.save(
                    product_id, architecture.to_dict(), revision
                )
                break
            except RevisionConflict:
                if attempt == attempts:
                    raise
                logger.warning(
                    "write conflict, retrying",
                    product_id=product_id,
                    attempt=attempt,
                )
        logger.info(
            "architecture applied",
            product_id=product_id,
            endpoints=len(architecture.api_endpoints),
        )
        return architecture

    def get_architecture(self, product_id: str) -> Architecture:
        data = self.architectures.load(product_id)
        if data is None:
            raise NotFound(f"No architecture found for product {product_id!r}")
        return Architecture.from_dict(data)

    def list_endpoints(self, product_id: str) -> list[Endpoint]:
        data = self.architectures.load(product_id)
        if data is None:
            return []
        return Architecture.from_dict(data).api_endpoints
