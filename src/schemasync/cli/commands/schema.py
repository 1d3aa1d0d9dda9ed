"""Schema store commands - import, list, show, resync."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from schemasync import console
from schemasync.cli._common import open_store, print_json
from schemasync.errors import SchemaSyncError


@dataclass
class Import:
    """Import model source files into a product's schema."""

    product: str = field(metadata={"help": "Product id"})
    files: list[Path] = field(
        default_factory=list,
        metadata={"help": "Model source files"},
    )
    dialect: str | None = field(
        default=None,
        metadata={"help": "Dialect hint: mongoose or prisma (autodetect)"},
    )
    no_overwrite: bool = field(
        default=False,
        metadata={"help": "Fail instead of replacing existing entities"},
    )
    data_dir: Path | None = field(
        default=None,
        metadata={"help": "Store directory (default .schemasync)"},
    )

    def run(self) -> int:
        """Execute the import command."""
        if not self.files:
            console.error("no files given")
            return 1

        sources = [p.read_text(encoding="utf-8") for p in self.files]
        with open_store(self.data_dir) as store:
            report = store.import_many_from_code(
                self.product,
                sources,
                dialect=self.dialect,
                overwrite=not self.no_overwrite,
            )

        console.header("Import")
        console.key_value("total", report.total, indent=2)
        console.key_value("created", report.created, indent=2)
        console.key_value("updated", report.updated, indent=2)
        console.key_value("failed", report.failed, indent=2)

        for outcome in report.entities:
            action = "created" if outcome.created else "updated"
            console.success(f"  {outcome.entity_name} ({action})")
            for note in outcome.degraded:
                console.dim(f"    degraded {note.path}: {note.reason}")
        for failure in report.errors:
            console.error(f"{self.files[failure.index]}: {failure.error}")

        return 0 if report.failed == 0 else 1


@dataclass
class List:
    """List the entities of a product's schema."""

    product: str = field(metadata={"help": "Product id"})
    data_dir: Path | None = field(
        default=None,
        metadata={"help": "Store directory (default .schemasync)"},
    )

    def run(self) -> int:
        """Execute the list command."""
        with open_store(self.data_dir) as store:
            summaries = store.list_entities(self.product)
            stats = store.stats(self.product)

        if not summaries:
            console.info(f"no entities for product {self.product}")
            return 0

        console.table(
            f"Entities ({stats.total_entities})",
            ["Entity", "Module", "Fields", "Relations", "Indexes", "Source"],
            [
                [
                    s.name,
                    s.module or "-",
                    s.field_count,
                    s.relationship_count,
                    s.index_count,
                    s.source_type,
                ]
                for s in summaries
            ],
        )
        return 0


@dataclass
class Show:
    """Show one entity as JSON."""

    product: str = field(metadata={"help": "Product id"})
    entity: str = field(metadata={"help": "Entity name (case-insensitive)"})
    data_dir: Path | None = field(
        default=None,
        metadata={"help": "Store directory (default .schemasync)"},
    )

    def run(self) -> int:
        """Execute the show command."""
        with open_store(self.data_dir) as store:
            try:
                entity = store.get_entity(self.product, self.entity)
            except SchemaSyncError as e:
                console.error(str(e))
                return 1
        print_json(entity.to_dict())
        return 0


@dataclass
class Resync:
    """Re-parse an entity from its stored source."""

    product: str = field(metadata={"help": "Product id"})
    entity: str = field(metadata={"help": "Entity name (case-insensitive)"})
    data_dir: Path | None = field(
        default=None,
        metadata={"help": "Store directory (default .schemasync)"},
    )

    def run(self) -> int:
        """Execute the resync command."""
        with open_store(self.data_dir) as store:
            try:
                outcome = store.resync_entity(self.product, self.entity)
            except SchemaSyncError as e:
                console.error(str(e))
                return 1
        console.success(
            f"{outcome.entity_name} resynced "
            f"({len(outcome.entity['fields'])} fields)"
        )
        return 0
