"""Normalize completion-service entity JSON into canonical Entities."""

from __future__ import annotations

from typing import Any

import structlog

from schemasync.models import (
    Cardinality,
    Entity,
    Field,
    Hook,
    Index,
    Relationship,
    SoftDeletePolicy,
    TimestampPolicy,
)
from schemasync.normalize._common import (
    as_bool,
    as_dict,
    as_int,
    as_list,
    as_number,
    as_str,
    first_of,
)
from schemasync.types import CanonicalType, element_type, normalize_type

logger = structlog.get_logger(__name__)

# loose relationship spellings -> canonical cardinality
CARDINALITY_ALIASES: dict[str, Cardinality] = {
    "one-to-one": Cardinality.ONE_TO_ONE,
    "one_to_one": Cardinality.ONE_TO_ONE,
    "onetoone": Cardinality.ONE_TO_ONE,
    "1:1": Cardinality.ONE_TO_ONE,
    "has_one": Cardinality.ONE_TO_ONE,
    "hasone": Cardinality.ONE_TO_ONE,
    "belongs_to": Cardinality.ONE_TO_ONE,
    "belongsto": Cardinality.ONE_TO_ONE,
    # from the owning side a single reference
    "many-to-one": Cardinality.ONE_TO_ONE,
    "many_to_one": Cardinality.ONE_TO_ONE,
    "n:1": Cardinality.ONE_TO_ONE,
    "one-to-many": Cardinality.ONE_TO_MANY,
    "one_to_many": Cardinality.ONE_TO_MANY,
    "onetomany": Cardinality.ONE_TO_MANY,
    "1:n": Cardinality.ONE_TO_MANY,
    "1:m": Cardinality.ONE_TO_MANY,
    "1:*": Cardinality.ONE_TO_MANY,
    "has_many": Cardinality.ONE_TO_MANY,
    "hasmany": Cardinality.ONE_TO_MANY,
    "many-to-many": Cardinality.MANY_TO_MANY,
    "many_to_many": Cardinality.MANY_TO_MANY,
    "manytomany": Cardinality.MANY_TO_MANY,
    "n:m": Cardinality.MANY_TO_MANY,
    "m:n": Cardinality.MANY_TO_MANY,
    "n:n": Cardinality.MANY_TO_MANY,
    "*:*": Cardinality.MANY_TO_MANY,
    "belongs_to_many": Cardinality.MANY_TO_MANY,
    "belongstomany": Cardinality.MANY_TO_MANY,
    "has_and_belongs_to_many": Cardinality.MANY_TO_MANY,
}


def normalize_cardinality(value: Any) -> str:
    """Map a relationship type spelling to a canonical cardinality."""
    key = as_str(value).lower().replace(" ", "")
    cardinality = CARDINALITY_ALIASES.get(key)
    if cardinality is None:
        cardinality = CARDINALITY_ALIASES.get(key.replace("-", "_"))
    return (cardinality or Cardinality.ONE_TO_MANY).value


def _enum_values(value: Any) -> list:
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, dict):
        return list(as_list(value.get("values")))
    return [v for v in as_list(value) if v is not None]


def normalize_field(raw: Any) -> Field:
    """Normalize one field; a bare string is a text field of that name."""
    if isinstance(raw, str):
        return Field(name=as_str(raw, "unknown"))
    data = as_dict(raw)

    fld = Field(name=as_str(first_of(data, "name", "field_name"), "unknown"))

    type_token = first_of(data, "type", "data_type")
    if isinstance(type_token, list):
        # ["String"] shorthand
        fld.type = CanonicalType.LIST.value
        fld.array_type = (
            normalize_type(as_str(type_token[0])) if type_token
            else CanonicalType.OPEN.value
        )
    else:
        token = as_str(type_token)
        fld.type = normalize_type(token)
        inner = element_type(token)
        if inner is not None:
            fld.array_type = inner

    fld.required = as_bool(data.get("required"))
    fld.unique = as_bool(data.get("unique"))
    fld.index = as_bool(data.get("index"))
    fld.sparse = as_bool(data.get("sparse"))
    fld.description = as_str(data.get("description"))

    if "default_value" in data:
        fld.default_value = data.get("default_value")
    elif "default" in data:
        fld.default_value = data.get("default")

    fld.trim = as_bool(data.get("trim"))
    fld.lowercase = as_bool(data.get("lowercase"))
    fld.uppercase = as_bool(data.get("uppercase"))
    fld.minlength = as_int(data.get("minlength"))
    fld.maxlength = as_int(data.get("maxlength"))
    match = data.get("match")
    fld.match = as_str(match) or None
    fld.min = as_number(data.get("min"))
    fld.max = as_number(data.get("max"))
    fld.enum_values = _enum_values(first_of(data, "enum_values", "enum"))

    array_type = as_str(data.get("array_type"))
    if array_type:
        fld.array_type = normalize_type(array_type)
    fld.array_min = as_int(data.get("array_min"))
    fld.array_max = as_int(data.get("array_max"))

    fld.nested_fields = [
        normalize_field(nf) for nf in as_list(data.get("nested_fields"))
    ]
    if (
        fld.nested_fields
        and fld.type == CanonicalType.TEXT.value
        and not type_token
    ):
        fld.type = CanonicalType.STRUCTURE.value

    fld.example = data.get("example")
    fld.is_primary_key = as_bool(data.get("is_primary_key"))
    fld.auto_generate = as_bool(data.get("auto_generate"))
    fld.is_sensitive = as_bool(data.get("is_sensitive"))
    fld.exclude_from_response = as_bool(data.get("exclude_from_response"))
    fld.ref_field = as_str(data.get("ref_field")) or None

    reference = as_str(first_of(data, "reference", "ref"))
    if reference:
        fld.set_reference(reference)
    elif as_bool(data.get("is_foreign_key")):
        fld.is_foreign_key = True
    return fld


def _normalize_index(raw: Any) -> Index | None:
    if isinstance(raw, str):
        return Index(fields=[raw], name=raw) if raw.strip() else None
    data = as_dict(raw)
    fields = data.get("fields")
    if isinstance(fields, dict):
        # {email: 1, createdAt: -1}
        names = [as_str(k) for k in fields]
    elif isinstance(fields, str):
        names = [fields]
    else:
        names = [as_str(f) for f in as_list(fields)]
    if not names and data.get("field"):
        names = [as_str(data.get("field"))]
    names = [n for n in names if n]
    if not names:
        return None
    return Index(
        fields=names,
        unique=as_bool(data.get("unique")),
        sparse=as_bool(data.get("sparse")),
        name=as_str(data.get("name"), "_".join(names)),
    )


def _normalize_relationship(raw: Any) -> Relationship | None:
    if isinstance(raw, str):
        if not raw.strip():
            return None
        return Relationship(target=raw.strip(), field=raw.strip())
    data = as_dict(raw)
    target = as_str(first_of(data, "target", "target_entity", "entity", "to"))
    if not target:
        return None
    return Relationship(
        target=target,
        cardinality=normalize_cardinality(
            first_of(data, "type", "cardinality")
        ),
        field=as_str(data.get("field")),
        foreign_field=as_str(data.get("foreign_field")),
        cascade_delete=as_bool(data.get("cascade_delete")),
        description=as_str(data.get("description")),
    )


def _normalize_timestamps(raw: Any) -> TimestampPolicy:
    if isinstance(raw, bool):
        return TimestampPolicy(enabled=raw)
    data = as_dict(raw)
    if not data:
        return TimestampPolicy()
    return TimestampPolicy(
        enabled=data.get("enabled") is not False,
        created_at=as_str(data.get("created_at"), "createdAt"),
        updated_at=as_str(data.get("updated_at"), "updatedAt"),
    )


def _normalize_soft_delete(raw: Any) -> SoftDeletePolicy:
    if isinstance(raw, bool):
        return SoftDeletePolicy(enabled=raw)
    data = as_dict(raw)
    return SoftDeletePolicy(
        enabled=as_bool(data.get("enabled")),
        field=as_str(data.get("field"), "deleted_at"),
    )


def normalize_entity(raw: Any) -> Entity:
    """Normalize one entity of a completion-service database schema."""
    data = as_dict(raw)
    name = as_str(first_of(data, "table_name", "entity", "name"), "Unknown")

    entity = Entity(
        name=name,
        description=as_str(data.get("description")),
        collection_name=as_str(first_of(data, "collection_name", "table_name"))
        or None,
        fields=[normalize_field(f) for f in as_list(data.get("fields"))],
        module=as_str(data.get("module")),
        notes=as_str(data.get("notes")),
        source_type="manual",
    )
    entity.timestamps = _normalize_timestamps(data.get("timestamps"))
    entity.soft_delete = _normalize_soft_delete(data.get("soft_delete"))
    entity.indexes = [
        idx
        for idx in (_normalize_index(i) for i in as_list(data.get("indexes")))
        if idx is not None
    ]
    entity.relationships = [
        rel
        for rel in (
            _normalize_relationship(r)
            for r in as_list(data.get("relationships"))
        )
        if rel is not None
    ]
    entity.hooks = [
        Hook(
            event=as_str(as_dict(h).get("event"), "pre-save"),
            description=as_str(as_dict(h).get("description")),
        )
        for h in as_list(data.get("hooks"))
    ]
    return entity


def normalize_database_schema(raw: Any) -> list[Entity]:
    """Normalize a list of entities; anything else yields no entities."""
    if isinstance(raw, dict):
        raw = first_of(raw, "entities", "database_schema", default=[])
    entities = [normalize_entity(e) for e in as_list(raw)]
    logger.debug("normalized database schema", entities=len(entities))
    return entities
