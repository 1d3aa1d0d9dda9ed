"""Output commands - graph, generate, export."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from schemasync import console
from schemasync.cli._common import open_store, print_json
from schemasync.errors import SchemaSyncError


@dataclass
class Graph:
    """Show the relationship graph of a product's entities."""

    product: str = field(metadata={"help": "Product id"})
    as_json: bool = field(
        default=False,
        metadata={"help": "Print {nodes, edges} as JSON"},
    )
    data_dir: Path | None = field(
        default=None,
        metadata={"help": "Store directory (default .schemasync)"},
    )

    def run(self) -> int:
        """Execute the graph command."""
        with open_store(self.data_dir) as store:
            graph = store.get_relationship_map(self.product)

        if self.as_json:
            print_json(graph.model_dump())
            return 0

        console.header("Relationship Graph")
        console.key_value("nodes", graph.stats.total_nodes, indent=2)
        console.key_value("edges", graph.stats.total_edges, indent=2)
        if graph.edges:
            print()
        for edge in graph.edges:
            marker = " (implicit)" if edge.implicit else ""
            print(
                f"  {edge.source} --{edge.label}--> {edge.target} "
                f"[{edge.cardinality}]{marker}"
            )
        return 0


@dataclass
class Generate:
    """Generate mongoose source for an entity."""

    product: str = field(metadata={"help": "Product id"})
    entity: str = field(metadata={"help": "Entity name (case-insensitive)"})
    output: Path | None = field(
        default=None,
        metadata={"help": "Write to this file instead of stdout"},
    )
    data_dir: Path | None = field(
        default=None,
        metadata={"help": "Store directory (default .schemasync)"},
    )

    def run(self) -> int:
        """Execute the generate command."""
        with open_store(self.data_dir) as store:
            try:
                generated = store.generate_code(self.product, self.entity)
            except SchemaSyncError as e:
                console.error(str(e))
                return 1

        if self.output:
            self.output.write_text(generated.code, encoding="utf-8")
            console.success(f"wrote {self.output}")
        else:
            print(generated.code, end="")
        return 0


@dataclass
class Export:
    """Export a product's schema as JSON."""

    product: str = field(metadata={"help": "Product id"})
    data_dir: Path | None = field(
        default=None,
        metadata={"help": "Store directory (default .schemasync)"},
    )

    def run(self) -> int:
        """Execute the export command."""
        with open_store(self.data_dir) as store:
            try:
                data = store.export_json(self.product)
            except SchemaSyncError as e:
                console.error(str(e))
                return 1
        print_json(data)
        return 0
