"""Bracket-depth tokenizer for object-literal declaration blocks.

There is no syntax tree for the source dialect, so declarations are split
with a small state machine: OUTSIDE (between declarations) and VALUE (inside
one declaration's value), plus a bracket depth counter and string-literal
tracking. A comma at depth zero ends a declaration. Comments and regex
literals are opaque in both states.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

OPENERS = "{[("
CLOSERS = "}])"
QUOTES = "'\"`"

# a slash after one of these starts a regex literal, not a division
REGEX_PRECEDERS = ":[(,=!&|?{};"

# identifier or quoted key followed by a colon
_KEY_RE = re.compile(r"""\s*(?:(['"])([\w$.\-]+)\1|([A-Za-z_$][\w$]*))\s*:""")
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_REGEX_FLAGS_RE = re.compile(r"[a-z]*")
_ESCAPE_RE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|.)", re.DOTALL
)

SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
    "\n": "",
}


def _unescape_one(m: re.Match) -> str:
    esc = m.group(1)
    if esc.startswith("u{"):
        code = int(esc[2:-1], 16)
        return chr(code) if code <= 0x10FFFF else m.group(0)
    if len(esc) > 1:
        return chr(int(esc[1:], 16))
    return SIMPLE_ESCAPES.get(esc, esc)


def unescape_string(body: str) -> str:
    """Decode the escapes of a string literal body (quotes removed)."""
    if "\\" not in body:
        return body
    return _ESCAPE_RE.sub(_unescape_one, body)


@dataclass
class Declaration:
    """One ``name: value`` pair at depth zero of a block."""

    name: str
    value: str


def strip_outer(text: str, opener: str = "{", closer: str = "}") -> str:
    """Remove one pair of enclosing brackets, if present."""
    inner = text.strip()
    if inner.startswith(opener) and inner.endswith(closer):
        return inner[1:-1]
    return inner


def _skip_comment(text: str, i: int) -> int:
    """Skip a comment starting at ``i``; return the new position."""
    if text.startswith("//", i):
        m = _LINE_COMMENT_RE.match(text, i)
        return m.end() if m else len(text)
    if text.startswith("/*", i):
        m = _BLOCK_COMMENT_RE.match(text, i)
        return m.end() if m else len(text)
    return i


def _in_value_position(text: str, i: int) -> bool:
    j = i - 1
    while j >= 0 and text[j].isspace():
        j -= 1
    return j < 0 or text[j] in REGEX_PRECEDERS


def _skip_regex(text: str, i: int) -> int:
    """Skip a regex literal starting at ``i``; return the new position.

    Returns ``i`` unchanged when no literal closes on the same line.
    """
    in_class = False
    j = i + 1
    n = len(text)
    while j < n:
        ch = text[j]
        if ch == "\\":
            j += 2
            continue
        if ch == "\n":
            return i
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            return _REGEX_FLAGS_RE.match(text, j + 1).end()
        j += 1
    return i


def skip_opaque(text: str, i: int) -> int:
    """Skip a comment or regex literal at ``i``; ``i`` if there is none."""
    if text[i] != "/":
        return i
    skipped = _skip_comment(text, i)
    if skipped != i:
        return skipped
    if _in_value_position(text, i):
        return _skip_regex(text, i)
    return i


def find_closing(text: str, start: int) -> int:
    """Return the index of the bracket closing the one at ``start``.

    Returns -1 when the literal is unbalanced.
    """
    depth = 0
    quote: str | None = None
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if quote is not None:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch == "/":
            skipped = skip_opaque(text, i)
            if skipped != i:
                i = skipped
                continue
        elif ch in QUOTES:
            quote = ch
        elif ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def balanced_span(text: str, start: int, opener: str = "{") -> tuple[int, int]:
    """Locate the first ``opener`` at or after ``start`` and its closer.

    Returns ``(open_index, close_index)`` or ``(-1, -1)``.
    """
    open_idx = text.find(opener, start)
    if open_idx < 0:
        return -1, -1
    close_idx = find_closing(text, open_idx)
    if close_idx < 0:
        return open_idx, -1
    return open_idx, close_idx


def iter_declarations(block: str) -> Iterator[Declaration]:
    """Yield the depth-zero declarations of an object-literal body.

    ``block`` may include its enclosing braces. Stray characters between
    declarations are skipped; an unterminated final declaration is still
    yielded with whatever value text was collected. Comments are removed
    from the yielded values.
    """
    text = strip_outer(block)
    n = len(text)
    i = 0
    in_value = False
    depth = 0
    quote: str | None = None
    name = ""
    pieces: list[str] = []
    piece_start = 0

    def value_text(end: int) -> str:
        return ("".join(pieces) + text[piece_start:end]).strip()

    while i < n:
        ch = text[i]

        if not in_value:
            if ch.isspace() or ch == ",":
                i += 1
                continue
            skipped = _skip_comment(text, i)
            if skipped != i:
                i = skipped
                continue
            m = _KEY_RE.match(text, i)
            if m:
                name = m.group(2) or m.group(3)
                in_value = True
                depth = 0
                quote = None
                i = m.end()
                pieces = []
                piece_start = i
                continue
            # not a declaration start (spread, stray token); skip it
            i += 1
            continue

        if quote is not None:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch == "/":
            skipped = _skip_comment(text, i)
            if skipped != i:
                pieces.append(text[piece_start:i])
                # keep a line break so the surrounding tokens stay apart
                pieces.append("\n")
                i = piece_start = skipped
                continue
            skipped = skip_opaque(text, i)
            if skipped != i:
                i = skipped
                continue
        elif ch in QUOTES:
            quote = ch
        elif ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            if depth == 0:
                # unbalanced closer; treat as end of the block
                break
            depth -= 1
        elif ch == "," and depth == 0:
            yield Declaration(name, value_text(i))
            in_value = False
        i += 1

    if in_value:
        yield Declaration(name, value_text(min(i, n)))


def split_declarations(block: str) -> list[tuple[str, str]]:
    """Convenience wrapper returning ``(name, value)`` pairs."""
    return [(d.name, d.value) for d in iter_declarations(block)]


def split_list_items(text: str) -> list[str]:
    """Split the items of an array literal at depth zero.

    Comments are removed from the items.
    """
    inner = strip_outer(text, "[", "]")
    n = len(inner)
    items: list[str] = []
    pieces: list[str] = []
    depth = 0
    quote: str | None = None
    start = 0
    i = 0
    while i < n:
        ch = inner[i]
        if quote is not None:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch == "/":
            skipped = _skip_comment(inner, i)
            if skipped != i:
                pieces.append(inner[start:i] + "\n")
                i = start = skipped
                continue
            skipped = skip_opaque(inner, i)
            if skipped != i:
                i = skipped
                continue
        elif ch in QUOTES:
            quote = ch
        elif ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
        elif ch == "," and depth == 0:
            items.append(("".join(pieces) + inner[start:i]).strip())
            pieces = []
            start = i + 1
        i += 1
    tail = ("".join(pieces) + inner[start:]).strip()
    if tail:
        items.append(tail)
    return [item for item in items if item]
