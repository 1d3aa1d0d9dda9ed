"""Regenerate mongoose model source from a canonical Entity.

Output is deterministic: field attributes are emitted in a fixed order and
anything outside that attribute set is dropped. Parsing the generated source
yields the same entity on the emitted attributes.
"""

from __future__ import annotations

import json
import re

from schemasync.models import Entity, Field, Index, TimestampPolicy
from schemasync.types import CanonicalType

INDENT = "  "

# canonical tag -> mongoose type expression
TYPE_EXPRESSIONS = {
    CanonicalType.REFERENCE.value: "mongoose.Schema.Types.ObjectId",
    CanonicalType.OPEN.value: "mongoose.Schema.Types.Mixed",
    CanonicalType.DECIMAL.value: "mongoose.Schema.Types.Decimal128",
    CanonicalType.UUID.value: "mongoose.Schema.Types.UUID",
}

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

# keys that would make a nested object read back as field options
_OPTION_KEYS = frozenset({"type", "ref"})


def _key(name: str) -> str:
    return name if _IDENTIFIER_RE.match(name) else json.dumps(name)


def _quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _literal(value: object) -> str:
    return json.dumps(value, ensure_ascii=False)


def type_expression(tag: str | None) -> str:
    if not tag:
        return "String"
    return TYPE_EXPRESSIONS.get(tag, tag)


def schema_var(entity: Entity) -> str:
    base = re.sub(r"[^\w$]", "", entity.name) or "Model"
    if base[0].isdigit():
        base = "_" + base
    return f"{base}Schema"


def _attributes(fld: Field, include_ref: bool = True) -> list[tuple[str, str]]:
    """Emitted options after ``type``, in fixed order."""
    attrs: list[tuple[str, str]] = []
    if fld.required:
        attrs.append(("required", "true"))
    if fld.unique:
        attrs.append(("unique", "true"))
    if fld.index:
        attrs.append(("index", "true"))
    if include_ref and fld.reference:
        attrs.append(("ref", _quote(fld.reference)))
    if fld.default_value is not None:
        attrs.append(("default", _literal(fld.default_value)))
    if fld.enum_values:
        attrs.append(("enum", _literal(list(fld.enum_values))))
    if fld.trim:
        attrs.append(("trim", "true"))
    if fld.lowercase:
        attrs.append(("lowercase", "true"))
    if fld.minlength is not None:
        attrs.append(("minlength", str(fld.minlength)))
    if fld.maxlength is not None:
        attrs.append(("maxlength", str(fld.maxlength)))
    if fld.min is not None:
        attrs.append(("min", str(fld.min)))
    if fld.max is not None:
        attrs.append(("max", str(fld.max)))
    return attrs


def _options_block(pairs: list[tuple[str, str]], depth: int) -> str:
    pad = INDENT * (depth + 1)
    body = ",\n".join(f"{pad}{k}: {v}" for k, v in pairs)
    return "{\n" + body + "\n" + INDENT * depth + "}"


def _object(fields: list[Field], depth: int) -> str:
    if not fields:
        return "{}"
    pad = INDENT * (depth + 1)
    body = ",\n".join(
        f"{pad}{_key(f.name)}: {render_field(f, depth + 1)}" for f in fields
    )
    return "{\n" + body + "\n" + INDENT * depth + "}"


def _structure(fields: list[Field], depth: int) -> str:
    block = _object(fields, depth)
    if any(f.name in _OPTION_KEYS for f in fields):
        return f"new mongoose.Schema({block}, {{ _id: false }})"
    return block


def _list_element(fld: Field, depth: int) -> str:
    if fld.reference:
        ref = [
            ("type", type_expression(CanonicalType.REFERENCE.value)),
            ("ref", _quote(fld.reference)),
        ]
        return "{ " + ", ".join(f"{k}: {v}" for k, v in ref) + " }"
    if fld.array_type == CanonicalType.STRUCTURE.value and fld.nested_fields:
        return _structure(fld.nested_fields, depth)
    if fld.array_type is None:
        return ""
    return type_expression(fld.array_type)


def render_field(fld: Field, depth: int = 1) -> str:
    """Render the value side of one field declaration."""
    if fld.is_list:
        attrs = _attributes(fld, include_ref=False)
        list_expr = f"[{_list_element(fld, depth + 1)}]"
        if not attrs:
            return list_expr
        return _options_block([("type", list_expr)] + attrs, depth)

    if fld.type == CanonicalType.STRUCTURE.value and fld.nested_fields:
        # options cannot be attached to a plain nested path
        return _structure(fld.nested_fields, depth)

    pairs = [("type", type_expression(fld.type))] + _attributes(fld)
    return _options_block(pairs, depth)


def _schema_options(entity: Entity) -> list[tuple[str, str]]:
    options: list[tuple[str, str]] = []
    ts = entity.timestamps
    if ts.enabled:
        defaults = TimestampPolicy()
        if (ts.created_at, ts.updated_at) == (
            defaults.created_at,
            defaults.updated_at,
        ):
            options.append(("timestamps", "true"))
        else:
            names = (
                f"{{ createdAt: {_quote(ts.created_at)}, "
                f"updatedAt: {_quote(ts.updated_at)} }}"
            )
            options.append(("timestamps", names))
    if entity.collection_name:
        options.append(("collection", _quote(entity.collection_name)))
    return options


def render_index(var: str, index: Index) -> str:
    keys = ", ".join(f"{_key(name)}: 1" for name in index.fields)
    opts = []
    if index.unique:
        opts.append("unique: true")
    if index.sparse:
        opts.append("sparse: true")
    if index.name and index.name != "_".join(index.fields):
        opts.append(f"name: {_quote(index.name)}")
    line = f"{var}.index({{ {keys} }}"
    if opts:
        line += ", { " + ", ".join(opts) + " }"
    return line + ");"


def generate(entity: Entity) -> str:
    """Generate mongoose model source for ``entity``."""
    var = schema_var(entity)
    lines = ["const mongoose = require('mongoose');", ""]

    body = _object(entity.fields, 0)
    options = _schema_options(entity)
    if options:
        lines.append(
            f"const {var} = new mongoose.Schema({body}, "
            f"{_options_block(options, 0)});"
        )
    else:
        lines.append(f"const {var} = new mongoose.Schema({body});")

    indexes = [render_index(var, idx) for idx in entity.indexes if idx.fields]
    if indexes:
        lines.append("")
        lines.extend(indexes)

    lines.append("")
    model_name = _quote(entity.name)
    lines.append(f"module.exports = mongoose.model({model_name}, {var});")
    return "\n".join(lines) + "\n"
