"""Secondary declarations scanned from the full source text.

Indexes and the timestamps option live outside the field block, so they are
found by scanning the whole source rather than the tokenized body.
"""

from __future__ import annotations

import re

import structlog

from schemasync.extract.tokenizer import (
    balanced_span,
    find_closing,
    split_declarations,
    unescape_string,
)
from schemasync.models import Index, TimestampPolicy

logger = structlog.get_logger(__name__)

# 1, -1, 'text', 'hashed', '2dsphere'
_DIRECTION_RE = re.compile(
    r"""^(?:(-?1)|['"](text|hashed|2dsphere)['"])$"""
)
_TRUE_RE = re.compile(r"^true\b", re.IGNORECASE)
_QUOTED_RE = re.compile(r"""^(['"])((?:\\.|(?!\1).)+)\1$""", re.DOTALL)
_TIMESTAMPS_RE = re.compile(r"\btimestamps\s*:\s*")


def _quoted_value(text: str) -> str | None:
    m = _QUOTED_RE.match(text.strip())
    return unescape_string(m.group(2)) if m else None


def extract_indexes(source: str, schema_var: str) -> list[Index]:
    """Collect every ``<schema_var>.index({...}, {...})`` declaration."""
    indexes: list[Index] = []
    call_re = re.compile(rf"\b{re.escape(schema_var)}\s*\.\s*index\s*\(")

    for m in call_re.finditer(source):
        paren = m.end() - 1
        paren_close = find_closing(source, paren)
        if paren_close < 0:
            logger.debug("unterminated index call", schema=schema_var)
            continue
        call_body = source[paren + 1 : paren_close]

        keys_open, keys_close = balanced_span(call_body, 0)
        if keys_open < 0 or keys_close < 0:
            continue

        fields: list[str] = []
        keys_text = call_body[keys_open : keys_close + 1]
        for name, value in split_declarations(keys_text):
            if _DIRECTION_RE.match(value.strip()):
                fields.append(name)
        if not fields:
            continue

        index = Index(fields=fields, name="_".join(fields))

        opts_open, opts_close = balanced_span(call_body, keys_close + 1)
        if opts_open >= 0 and opts_close >= 0:
            options = dict(
                split_declarations(call_body[opts_open : opts_close + 1])
            )
            index.unique = bool(_TRUE_RE.match(options.get("unique", "")))
            index.sparse = bool(_TRUE_RE.match(options.get("sparse", "")))
            name = _quoted_value(options.get("name", ""))
            if name:
                index.name = name

        indexes.append(index)

    return indexes


def detect_timestamps(source: str) -> TimestampPolicy:
    """Read the ``timestamps`` schema option."""
    m = _TIMESTAMPS_RE.search(source)
    if not m:
        return TimestampPolicy()

    rest = source[m.end() :]
    if _TRUE_RE.match(rest):
        return TimestampPolicy(enabled=True)
    if not rest.startswith("{"):
        return TimestampPolicy()

    close = find_closing(rest, 0)
    if close < 0:
        return TimestampPolicy()

    policy = TimestampPolicy(enabled=True)
    options = dict(split_declarations(rest[: close + 1]))
    created = _quoted_value(options.get("createdAt", ""))
    updated = _quoted_value(options.get("updatedAt", ""))
    if created:
        policy.created_at = created
    if updated:
        policy.updated_at = updated
    return policy
