"""Field extraction from declaration value text.

Each field value is probed by an ordered list of independent
``(pattern, apply)`` pairs folded over a Field accumulator. Probes never
depend on each other and tolerate absence; a probe that finds nothing leaves
the field untouched.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from schemasync.errors import DegradedExtraction
from schemasync.extract.tokenizer import (
    balanced_span,
    split_declarations,
    split_list_items,
    unescape_string,
)
from schemasync.models import Field
from schemasync.types import CanonicalType, normalize_type

logger = structlog.get_logger(__name__)

# option keys that make an object literal a field-options object rather than
# a nested structure
OPTION_MARKERS = frozenset({"type", "ref"})

# schema-option keys that never become nested fields
NESTED_SKIP_KEYS = frozenset({"_id", "timestamps"})

_BARE_TYPE_RE = re.compile(r"^[\w$.]+$")
_NESTED_SCHEMA_RE = re.compile(r"^new\s+(?:mongoose\.)?Schema\s*\(")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


@dataclass
class _Context:
    path: str
    notes: list[DegradedExtraction] = field(default_factory=list)

    def degrade(self, reason: str, path: str | None = None) -> None:
        self.notes.append(
            DegradedExtraction(path=path or self.path, reason=reason)
        )


def is_function_like(text: str) -> bool:
    """True for defaults that are computed rather than literal."""
    text = text.strip()
    if "function" in text or "=>" in text:
        return True
    if text.endswith(".now") or text == "Date.now":
        return True
    return bool(re.match(r"^[\w$.]+\s*\(.*\)$", text, re.DOTALL))


def parse_literal(text: str) -> object:
    """Convert a literal value token into a Python value.

    Quoted strings lose their quotes and have their escapes decoded,
    booleans and numbers are converted, anything else is kept as raw text.
    """
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return unescape_string(text[1:-1])
    if len(text) >= 2 and text[0] == text[-1] == "`" and "${" not in text:
        return unescape_string(text[1:-1])
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in ("null", "undefined"):
        return None
    if _NUMBER_RE.match(text):
        return float(text) if "." in text else int(text)
    if text == "[]":
        return []
    if text == "{}":
        return {}
    return text


def _to_number(text: str) -> int | float:
    return float(text) if "." in text else int(text)


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------

ProbeFn = Callable[["FieldExtractor", Field, re.Match, _Context], None]


def _probe_type(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
    value = m.group(1).strip()
    if value.startswith("["):
        ex._fill_list(fld, value, ctx)
    elif value.startswith("{"):
        ex._fill_structure(fld, value, ctx)
    else:
        fld.type = normalize_type(value)


def _probe_required(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
    fld.required = m.group(1).lower() == "true"


def _flag(attr: str, value: bool = True) -> ProbeFn:
    def apply(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
        setattr(fld, attr, value)

    return apply


def _probe_default(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
    raw = m.group(1).strip()
    if is_function_like(raw):
        return
    fld.default_value = parse_literal(raw)


def _probe_enum(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
    raw = m.group(1).strip()
    if raw.startswith("{"):
        values = dict(split_declarations(raw)).get("values", "")
        raw = values.strip()
    if not raw.startswith("["):
        return
    items = [parse_literal(item) for item in split_list_items(raw)]
    fld.enum_values = [item for item in items if item not in (None, "")]


def _number(attr: str) -> ProbeFn:
    def apply(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
        setattr(fld, attr, _to_number(m.group(1)))

    return apply


def _probe_match(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
    fld.match = m.group(1) if m.group(1) is not None else m.group(2)


def _probe_ref(ex: FieldExtractor, fld: Field, m: re.Match, ctx: _Context):
    fld.reference = m.group(1)


# matched against "key: value" for each depth-zero option of the field
FIELD_PROBES: list[tuple[str, ProbeFn]] = [
    # type: String / type: [String] / type: { ... }
    (r"^type\s*:\s*(.+)$", _probe_type),
    # required: true / required: [true, 'msg']
    (r"^required\s*:\s*\[?\s*(true|false)\b", _probe_required),
    (r"^unique\s*:\s*\[?\s*true\b", _flag("unique")),
    (r"^index\s*:\s*true\b", _flag("index")),
    (r"^sparse\s*:\s*true\b", _flag("sparse")),
    (r"^trim\s*:\s*true\b", _flag("trim")),
    (r"^lowercase\s*:\s*true\b", _flag("lowercase")),
    (r"^uppercase\s*:\s*true\b", _flag("uppercase")),
    # select: false hides the field from query results
    (r"^select\s*:\s*false\b", _flag("exclude_from_response")),
    (r"^default\s*:\s*(.+)$", _probe_default),
    # enum: ['a', 'b'] / enum: { values: [...], message }
    (r"^enum\s*:\s*(.+)$", _probe_enum),
    (r"^min\s*:\s*\[?\s*(-?\d+(?:\.\d+)?)", _number("min")),
    (r"^max\s*:\s*\[?\s*(-?\d+(?:\.\d+)?)", _number("max")),
    (r"^minlength\s*:\s*\[?\s*(\d+)", _number("minlength")),
    (r"^maxlength\s*:\s*\[?\s*(\d+)", _number("maxlength")),
    # match: /regex/flags / match: [/regex/, 'msg'] / match: '^...$'
    (
        r"""^match\s*:\s*\[?\s*(?:/((?:\\.|[^/\\])+)/[a-z]*|['"](.+?)['"])""",
        _probe_match,
    ),
    # ref: 'User' / ref: User
    (r"""^ref\s*:\s*['"]?([\w$]+)""", _probe_ref),
]


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class FieldExtractor:
    """Turns declaration value text into canonical Fields."""

    def __init__(self):
        self.compiled_probes = [
            (re.compile(p, re.IGNORECASE | re.DOTALL), fn)
            for p, fn in FIELD_PROBES
        ]

    def extract_block(
        self, block: str, path: str = ""
    ) -> tuple[list[Field], list[DegradedExtraction]]:
        """Extract every depth-zero declaration of an object-literal block."""
        ctx = _Context(path=path)
        fields = self._extract_declarations(block, ctx, nested=False)
        return fields, ctx.notes

    def extract_field(
        self,
        name: str,
        value: str,
        notes: list[DegradedExtraction] | None = None,
        path: str | None = None,
    ) -> Field:
        """Extract one field; degradation notes are appended to ``notes``."""
        ctx = _Context(path=path or name)
        fld = self._extract(name, value, ctx)
        if notes is not None:
            notes.extend(ctx.notes)
        return fld

    def _extract_declarations(
        self, block: str, ctx: _Context, nested: bool
    ) -> list[Field]:
        fields: list[Field] = []
        for name, value in split_declarations(block):
            if nested and name in NESTED_SKIP_KEYS:
                continue
            path = f"{ctx.path}.{name}" if ctx.path else name
            child = _Context(path=path, notes=ctx.notes)
            fields.append(self._extract(name, value, child))
        return fields

    def _extract(self, name: str, value: str, ctx: _Context) -> Field:
        fld = Field(name=name)
        text = value.strip()
        if not text:
            ctx.degrade("empty declaration")
            return fld
        try:
            self._fill(fld, text, ctx)
        except (re.error, ValueError, TypeError, IndexError) as e:
            logger.debug(
                "field extraction degraded", field=ctx.path, error=str(e)
            )
            ctx.degrade(f"malformed declaration: {e}")
            return Field(name=name)

        # a reference always wins over the declared type
        if fld.reference:
            fld.set_reference(fld.reference)
        return fld

    def _fill(self, fld: Field, text: str, ctx: _Context) -> None:
        # String / mongoose.Schema.Types.ObjectId
        if _BARE_TYPE_RE.match(text):
            fld.type = normalize_type(text)
            return

        # [String] / [{ type: ObjectId, ref: 'User' }]
        if text.startswith("["):
            self._fill_list(fld, text, ctx)
            return

        if text.startswith("{"):
            options = split_declarations(text)
            keys = {k for k, _ in options}
            if not options:
                # {} is an open-valued path
                fld.type = CanonicalType.OPEN.value
            elif keys & OPTION_MARKERS:
                self._apply_probes(fld, options, ctx)
            else:
                self._fill_structure(fld, text, ctx)
            return

        if _NESTED_SCHEMA_RE.match(text):
            self._fill_structure(fld, text, ctx)
            return

        ctx.degrade("unrecognized declaration")
        logger.debug("unrecognized field declaration", field=ctx.path)

    def _apply_probes(
        self, fld: Field, options: list[tuple[str, str]], ctx: _Context
    ) -> None:
        for pattern, apply in self.compiled_probes:
            for key, value in options:
                m = pattern.match(f"{key}: {value}")
                if m:
                    apply(self, fld, m, ctx)
                    break

    def _fill_structure(self, fld: Field, text: str, ctx: _Context) -> None:
        open_idx, close_idx = balanced_span(text, 0)
        if open_idx < 0 or close_idx < 0:
            ctx.degrade("unbalanced nested structure")
            return
        fld.type = CanonicalType.STRUCTURE.value
        fld.nested_fields = self._extract_declarations(
            text[open_idx : close_idx + 1], ctx, nested=True
        )

    def _fill_list(self, fld: Field, text: str, ctx: _Context) -> None:
        fld.type = CanonicalType.LIST.value
        items = split_list_items(text)
        if not items:
            fld.array_type = CanonicalType.OPEN.value
            return

        first = items[0]
        if _BARE_TYPE_RE.match(first):
            fld.array_type = normalize_type(first)
        elif first.startswith("{") or _NESTED_SCHEMA_RE.match(first):
            elem_ctx = _Context(path=f"{ctx.path}[]", notes=ctx.notes)
            elem = self._extract(fld.name, first, elem_ctx)
            if elem.reference:
                fld.reference = elem.reference
                fld.array_type = CanonicalType.REFERENCE.value
            elif elem.type == CanonicalType.STRUCTURE.value:
                fld.array_type = CanonicalType.STRUCTURE.value
                fld.nested_fields = elem.nested_fields
            else:
                fld.array_type = elem.type
        elif first.startswith("["):
            fld.array_type = CanonicalType.LIST.value
        else:
            fld.array_type = CanonicalType.OPEN.value
            ctx.degrade("unrecognized list element", f"{ctx.path}[]")


def extract_fields(block: str) -> list[Field]:
    """Extract the Fields of a declaration block, discarding notes."""
    fields, _notes = FieldExtractor().extract_block(block)
    return fields
