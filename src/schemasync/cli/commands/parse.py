"""Parse and normalize commands - no store access."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from schemasync import console
from schemasync.cli._common import print_json, read_source
from schemasync.config import EngineConfig
from schemasync.errors import SchemaSyncError


@dataclass
class Parse:
    """Parse a model source file into a canonical entity."""

    file: Path | None = field(
        default=None,
        metadata={"help": "Model source file (reads stdin if omitted)"},
    )
    dialect: str | None = field(
        default=None,
        metadata={"help": "Dialect hint: mongoose or prisma (autodetect)"},
    )
    as_json: bool = field(
        default=False,
        metadata={"help": "Print the full entity as JSON"},
    )

    def run(self) -> int:
        """Execute the parse command."""
        from schemasync.extract import SchemaExtractionEngine

        engine = SchemaExtractionEngine(EngineConfig.from_env())
        source = read_source(self.file)
        try:
            engine.validate_source(source)
            entity = engine.parse(source, self.dialect)
        except SchemaSyncError as e:
            console.error(str(e))
            return 1

        if self.as_json:
            data = entity.to_dict()
            data.pop("source_code", None)
            print_json(data)
            return 0

        console.header(f"Entity: {entity.name}")
        console.key_value("dialect", entity.source_type, indent=2)
        if entity.collection_name:
            console.key_value("collection", entity.collection_name, indent=2)
        console.key_value("timestamps", entity.timestamps.enabled, indent=2)

        console.subheader(f"\nFields ({len(entity.fields)})")
        for f in entity.fields:
            flags = [
                flag
                for flag, on in (
                    ("required", f.required),
                    ("unique", f.unique),
                    ("index", f.index),
                )
                if on
            ]
            type_desc = f.type
            if f.array_type:
                type_desc = f"[{f.array_type}]"
            if f.reference:
                type_desc += f" -> {f.reference}"
            suffix = f"  ({', '.join(flags)})" if flags else ""
            print(f"  {f.name}: {type_desc}{suffix}")

        if entity.indexes:
            console.subheader(f"\nIndexes ({len(entity.indexes)})")
            for idx in entity.indexes:
                unique = " unique" if idx.unique else ""
                print(f"  {idx.name}: {', '.join(idx.fields)}{unique}")

        if entity.degraded:
            console.subheader(f"\nDegraded ({len(entity.degraded)})")
            for note in entity.degraded:
                console.dim(f"  {note.path}: {note.reason}")
        return 0


@dataclass
class Normalize:
    """Normalize completion-service JSON into canonical records."""

    file: Path | None = field(
        default=None,
        metadata={"help": "JSON file (reads stdin if omitted)"},
    )
    kind: Literal["entity", "schema", "endpoint", "architecture"] = field(
        default="architecture",
        metadata={"help": "What the JSON describes"},
    )

    def run(self) -> int:
        """Execute the normalize command."""
        from schemasync import normalize

        try:
            raw = json.loads(read_source(self.file))
        except json.JSONDecodeError as e:
            console.error(f"invalid JSON: {e}")
            return 1

        if self.kind == "entity":
            print_json(normalize.normalize_entity(raw).to_dict())
        elif self.kind == "schema":
            print_json(
                [e.to_dict() for e in normalize.normalize_database_schema(raw)]
            )
        elif self.kind == "endpoint":
            if isinstance(raw, list):
                print_json(
                    [e.to_dict() for e in normalize.normalize_endpoints(raw)]
                )
            else:
                print_json(normalize.normalize_endpoint(raw).to_dict())
        else:
            print_json(normalize.normalize_architecture(raw).to_dict())
        return 0
