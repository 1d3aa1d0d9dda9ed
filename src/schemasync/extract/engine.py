"""Schema extraction engine.

Composes the tokenizer, field extractor and secondary scanners into a single
``parse(source_text, dialect_hint=None) -> Entity`` entry point.
"""

from __future__ import annotations

import re

import structlog

from schemasync.config import SUPPORTED_DIALECTS, EngineConfig
from schemasync.errors import (
    DegradedExtraction,
    InputTooSparse,
    UnsupportedDialect,
)
from schemasync.extract.fields import FieldExtractor
from schemasync.extract.secondary import detect_timestamps, extract_indexes
from schemasync.extract.tokenizer import balanced_span, find_closing
from schemasync.models import (
    Cardinality,
    Entity,
    Field,
    Relationship,
    SoftDeletePolicy,
)
from schemasync.types import CanonicalType, normalize_type

logger = structlog.get_logger(__name__)

UNKNOWN_MODEL = "UnknownModel"

# Entity name idioms, highest priority first
MODEL_NAME_PATTERNS = [
    # mongoose.model('User', userSchema)
    r"""mongoose\s*\.\s*model\s*\(\s*['"](\w+)['"]\s*(?:,\s*(\w+))?""",
    # module.exports = model('User', ...) / export default model('User', ...)
    r"""(?:exports\s*=|export\s+default)\s*(?:mongoose\.)?model\s*\("""
    r"""\s*['"](\w+)['"]\s*(?:,\s*(\w+))?""",
]

# const userSchema = new Schema(
_SCHEMA_VAR_NAME_RE = re.compile(
    r"(?:const|let|var)\s+([\w$]+?)Schema\s*=\s*new\s+(?:mongoose\.)?Schema\b",
    re.IGNORECASE,
)
# [const userSchema =] new mongoose.Schema(
_SCHEMA_CALL_RE = re.compile(
    r"(?:(?:const|let|var)\s+([\w$]+)\s*=\s*)?new\s+(?:mongoose\.)?Schema\s*\("
)
_COLLECTION_RE = re.compile(r"""\bcollection\s*:\s*['"]([\w.\-]+)['"]""")

_MONGOOSE_MARKERS = ("mongoose", "new Schema(")
_PRISMA_MODEL_RE = re.compile(r"\bmodel\s+(\w+)\s*\{")

# name Type[]? @attrs
_PRISMA_FIELD_RE = re.compile(
    r"^[ \t]+(\w+)[ \t]+(\w+)(\[\])?(\?)?[ \t]*(@[^\n]+)?", re.MULTILINE
)


class SchemaExtractionEngine:
    """Turns model source text into a canonical Entity."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self.field_extractor = FieldExtractor()
        self.model_name_patterns = [re.compile(p) for p in MODEL_NAME_PATTERNS]

    # -- validation / dialects ---------------------------------------------

    def validate_source(self, text: object) -> str:
        """Reject source that cannot plausibly be a model declaration."""
        if not isinstance(text, str) or not text:
            raise InputTooSparse("source code is required and must be a string")
        if len(text.strip()) < self.config.min_source_length:
            raise InputTooSparse(
                f"source code is too short to be a model declaration "
                f"(minimum {self.config.min_source_length} characters)"
            )
        if not any(marker in text for marker in self.config.schema_markers):
            raise InputTooSparse(
                "source code does not look like a model declaration; "
                "include the schema definition"
            )
        return text

    def detect_dialect(self, text: str) -> str:
        if any(marker in text for marker in _MONGOOSE_MARKERS):
            return "mongoose"
        if _PRISMA_MODEL_RE.search(text):
            return "prisma"
        return self.config.default_dialect

    def resolve_dialect(self, text: str, dialect_hint: str | None) -> str:
        if not dialect_hint:
            return self.detect_dialect(text)
        dialect = dialect_hint.strip().lower()
        if dialect not in SUPPORTED_DIALECTS:
            raise UnsupportedDialect(dialect, SUPPORTED_DIALECTS)
        return dialect

    # -- entry point -------------------------------------------------------

    def parse(self, text: str, dialect_hint: str | None = None) -> Entity:
        """Extract a canonical Entity from model source text.

        Raises UnsupportedDialect for hints naming an unimplemented dialect.
        Malformed fragments never raise; they are recorded on
        ``Entity.degraded``.
        """
        dialect = self.resolve_dialect(text, dialect_hint)
        if dialect == "prisma":
            entity = self._parse_prisma(text)
        else:
            entity = self._parse_mongoose(text)

        entity.relationships = derive_relationships(entity.fields)
        entity.soft_delete = detect_soft_delete(entity.fields)
        entity.source_code = text
        entity.source_type = dialect

        logger.debug(
            "parsed entity",
            entity=entity.name,
            dialect=dialect,
            fields=len(entity.fields),
            indexes=len(entity.indexes),
            relationships=len(entity.relationships),
            degraded=len(entity.degraded),
        )
        return entity

    # -- mongoose ----------------------------------------------------------

    def extract_model_name(self, text: str) -> tuple[str, str | None]:
        """Return ``(entity_name, schema_var)``; schema_var may be None."""
        for pattern in self.model_name_patterns:
            m = pattern.search(text)
            if m:
                return m.group(1), m.group(2)

        m = _SCHEMA_VAR_NAME_RE.search(text)
        if m and m.group(1):
            name = m.group(1)
            return name[0].upper() + name[1:], None

        return UNKNOWN_MODEL, None

    def _locate_schema_call(
        self, text: str, schema_var: str | None
    ) -> re.Match | None:
        first = None
        for m in _SCHEMA_CALL_RE.finditer(text):
            if first is None:
                first = m
            if schema_var and m.group(1) == schema_var:
                return m
        return first

    def _parse_mongoose(self, text: str) -> Entity:
        name, model_schema_var = self.extract_model_name(text)
        entity = Entity(name=name, source_type="mongoose")
        notes: list[DegradedExtraction] = []
        if name == UNKNOWN_MODEL:
            notes.append(
                DegradedExtraction(path="name", reason="model name not found")
            )

        call = self._locate_schema_call(text, model_schema_var)
        if call is None:
            notes.append(
                DegradedExtraction(
                    path="fields", reason="schema body not found"
                )
            )
            entity.timestamps = detect_timestamps(text)
            entity.collection_name = _find_collection(text)
            entity.degraded = notes
            return entity

        schema_var = call.group(1)
        paren = call.end() - 1
        paren_close = find_closing(text, paren)
        if paren_close >= 0:
            call_text = text[paren : paren_close + 1]
        else:
            call_text = text[paren:]

        body_open, body_close = balanced_span(call_text, 0)
        options_text = None
        if body_open < 0:
            notes.append(
                DegradedExtraction(
                    path="fields", reason="schema body not found"
                )
            )
        elif body_close < 0:
            notes.append(
                DegradedExtraction(
                    path="fields", reason="unbalanced schema body"
                )
            )
            fields, field_notes = self.field_extractor.extract_block(
                call_text[body_open:]
            )
            entity.fields = fields
            notes.extend(field_notes)
        else:
            fields, field_notes = self.field_extractor.extract_block(
                call_text[body_open : body_close + 1]
            )
            entity.fields = fields
            notes.extend(field_notes)

            opts_open, opts_close = balanced_span(call_text, body_close + 1)
            if opts_open >= 0 and opts_close >= 0:
                options_text = call_text[opts_open : opts_close + 1]

        scope = options_text if options_text is not None else text
        entity.timestamps = detect_timestamps(scope)
        entity.collection_name = (
            _find_collection(scope) or _find_collection(text)
        )
        if schema_var:
            entity.indexes = extract_indexes(text, schema_var)

        entity.degraded = notes
        return entity

    # -- prisma ------------------------------------------------------------

    def _parse_prisma(self, text: str) -> Entity:
        """Best-effort Prisma model parsing.

        Only name, type, list shape, optionality, @id/@unique and
        @relation references are read.
        """
        m = _PRISMA_MODEL_RE.search(text)
        if not m:
            return Entity(
                name=UNKNOWN_MODEL,
                source_type="prisma",
                degraded=[
                    DegradedExtraction(
                        path="name", reason="model block not found"
                    )
                ],
            )

        entity = Entity(name=m.group(1), source_type="prisma")
        block_open = m.end() - 1
        block_close = find_closing(text, block_open)
        block = text[block_open + 1 : block_close if block_close >= 0 else None]

        for fm in _PRISMA_FIELD_RE.finditer(block):
            name, type_token, is_list, optional, attrs = fm.groups()
            attrs = attrs or ""
            fld = Field(name=name, required=not optional)
            if is_list:
                fld.type = CanonicalType.LIST.value
                fld.array_type = normalize_type(type_token)
            else:
                fld.type = normalize_type(type_token)
            if "@id" in attrs:
                fld.is_primary_key = True
            if "@unique" in attrs:
                fld.unique = True
            if "@relation" in attrs:
                fld.set_reference(type_token)
            entity.fields.append(fld)

        return entity


def _find_collection(text: str) -> str | None:
    m = _COLLECTION_RE.search(text)
    return m.group(1) if m else None


def derive_relationships(fields: list[Field]) -> list[Relationship]:
    """One relationship per reference field; list-shaped means one-to-many."""
    relationships = []
    for f in fields:
        if not f.reference:
            continue
        cardinality = (
            Cardinality.ONE_TO_MANY if f.is_list else Cardinality.ONE_TO_ONE
        )
        relationships.append(
            Relationship(
                target=f.reference,
                cardinality=cardinality.value,
                field=f.name,
                description=f"Reference to {f.reference}",
            )
        )
    return relationships


def detect_soft_delete(fields: list[Field]) -> SoftDeletePolicy:
    for f in fields:
        if "deleted" in f.name.lower():
            return SoftDeletePolicy(enabled=True, field=f.name)
    return SoftDeletePolicy()


def parse(text: str, dialect_hint: str | None = None) -> Entity:
    """Parse with a default-configured engine."""
    return SchemaExtractionEngine().parse(text, dialect_hint)
