"""
CBOR helpers on top of cbor2.

cbor2 decodes values; it does not report where an item sits in the input, and
it turns tag-258 sets into unordered Python sets. Both matter for ledger data:
transaction ids and datum hashes are computed over the bytes exactly as
encoded, and certificates / proposal procedures are *ordered* sets whose
position is what a redeemer index points at.

This module therefore walks item heads only (no value decoding) to:
- find the byte span of an item, of array elements and of map entries;
- copy an encoded item with every tag-258 wrapper removed, so that cbor2
  hands back the set as a plain list in its encoded order.
"""

from __future__ import annotations

import hashlib
from typing import Any

import cbor2

from nawi.core.exceptions import DecodingError

MAJOR_UNSIGNED = 0
MAJOR_NEGATIVE = 1
MAJOR_BYTES = 2
MAJOR_TEXT = 3
MAJOR_ARRAY = 4
MAJOR_MAP = 5
MAJOR_TAG = 6
MAJOR_SIMPLE = 7

SET_TAG = 258
BREAK = 0xFF

Span = tuple[int, int]


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def blake2b_224(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=28).digest()


def _peek(data: bytes, pos: int) -> int:
    if pos >= len(data):
        raise DecodingError(f"Unexpected end of CBOR data at offset {pos}")
    return data[pos]


def read_head(data: bytes, pos: int) -> tuple[int, int | None, int]:
    """
    Read one item head at pos.

    Returns (major type, argument, offset after the head). The argument is
    None for indefinite-length items (and for the break marker).
    """
    initial = _peek(data, pos)
    major, info = initial >> 5, initial & 0x1F
    pos += 1
    if info < 24:
        return major, info, pos
    if info == 31:
        return major, None, pos
    if info > 27:
        raise DecodingError(f"Invalid CBOR additional info {info} at offset {pos - 1}")
    size = 1 << (info - 24)
    if pos + size > len(data):
        raise DecodingError(f"Unexpected end of CBOR data at offset {pos}")
    return major, int.from_bytes(data[pos:pos + size], "big"), pos + size


def encode_head(major: int, argument: int) -> bytes:
    """Encode a definite item head in its shortest form."""
    if argument < 24:
        return bytes([(major << 5) | argument])
    for info, size in ((24, 1), (25, 2), (26, 4), (27, 8)):
        if argument < 1 << (8 * size):
            return bytes([(major << 5) | info]) + argument.to_bytes(size, "big")
    raise ValueError(f"CBOR argument too large: {argument}")


def item_end(data: bytes, pos: int) -> int:
    """Return the offset just past the item starting at pos."""
    major, arg, pos = read_head(data, pos)
    if major in (MAJOR_UNSIGNED, MAJOR_NEGATIVE):
        return pos
    if major == MAJOR_SIMPLE:
        if arg is None:
            raise DecodingError(f"Unexpected CBOR break at offset {pos - 1}")
        return pos
    if major == MAJOR_TAG:
        return item_end(data, pos)
    if arg is None:
        # indefinite: chunks, elements or key/value items until break
        while _peek(data, pos) != BREAK:
            pos = item_end(data, pos)
        return pos + 1
    if major in (MAJOR_BYTES, MAJOR_TEXT):
        if pos + arg > len(data):
            raise DecodingError(f"Unexpected end of CBOR data at offset {pos}")
        return pos + arg
    count = arg * 2 if major == MAJOR_MAP else arg
    for _ in range(count):
        pos = item_end(data, pos)
    return pos


def _container(data: bytes, pos: int, expected: int) -> tuple[int | None, int]:
    major, arg, pos = read_head(data, pos)
    if major == MAJOR_TAG and arg == SET_TAG:
        major, arg, pos = read_head(data, pos)
    if major != expected:
        kind = "array" if expected == MAJOR_ARRAY else "map"
        raise DecodingError(f"Expected a CBOR {kind}, found major type {major}")
    return arg, pos


def _item_spans(data: bytes, pos: int, count: int | None) -> list[Span]:
    spans: list[Span] = []
    if count is None:
        while _peek(data, pos) != BREAK:
            end = item_end(data, pos)
            spans.append((pos, end))
            pos = end
        return spans
    for _ in range(count):
        end = item_end(data, pos)
        spans.append((pos, end))
        pos = end
    return spans


def array_spans(data: bytes, pos: int = 0) -> list[Span]:
    """Spans of the elements of the array (or tag-258 set) starting at pos."""
    count, pos = _container(data, pos, MAJOR_ARRAY)
    return _item_spans(data, pos, count)


def map_spans(data: bytes, pos: int = 0) -> list[tuple[Span, Span]]:
    """(key span, value span) pairs of the map starting at pos."""
    count, pos = _container(data, pos, MAJOR_MAP)
    flat = _item_spans(data, pos, None if count is None else count * 2)
    return list(zip(flat[0::2], flat[1::2]))


def _copy_without_sets(data: bytes, pos: int, out: bytearray) -> int:
    start = pos
    major, arg, pos = read_head(data, pos)
    if major == MAJOR_TAG:
        if arg != SET_TAG:
            out += data[start:pos]
        return _copy_without_sets(data, pos, out)
    if major in (MAJOR_ARRAY, MAJOR_MAP):
        out += data[start:pos]
        if arg is None:
            while _peek(data, pos) != BREAK:
                pos = _copy_without_sets(data, pos, out)
            out.append(BREAK)
            return pos + 1
        for _ in range(arg * 2 if major == MAJOR_MAP else arg):
            pos = _copy_without_sets(data, pos, out)
        return pos
    end = item_end(data, start)
    out += data[start:end]
    return end


def strip_set_tags(data: bytes) -> bytes:
    """Copy one encoded item, dropping every tag-258 wrapper. Trailing bytes are an error."""
    out = bytearray()
    end = _copy_without_sets(data, 0, out)
    if end != len(data):
        raise DecodingError(f"Trailing bytes after CBOR item: {len(data) - end} byte(s)")
    return bytes(out)


def loads(data: bytes) -> Any:
    """Decode one CBOR item, keeping ordered sets as lists."""
    try:
        return cbor2.loads(strip_set_tags(data))
    except cbor2.CBORDecodeError as e:
        raise DecodingError(f"Invalid CBOR: {e}") from e
