"""Packed kana strings.

Message text is stored compressed: common double-byte characters (mostly
hiragana, katakana and a few symbols) are replaced by a one-byte index into a
fixed 128-entry table, everything else is carried as a raw two-byte pair.

Byte layout (per byte b):
  - 0x00        terminator
  - 0x5C i      character whose lead byte is table[0xB8] and whose trail byte
                is the trail of table entry i (i == 0 means entry 0x5C itself,
                and the terminator is left for the next round)
  - 0x7F..0xFF  raw two-byte pair; 0x7F x carries a single-byte character x
  - other       table entry b

Unpacking yields a list of (hi, lo) pairs; the terminator is not part of it.
"""

from __future__ import annotations

from typing import Iterator, List, Tuple, Union

from .common import IsfDecodeError, IsfError, decode_exact, is_sjis_lead

KANA = bytes(
    (
        0x81, 0x40, 0x81, 0x40, 0x81, 0x41, 0x81, 0x42,
        0x81, 0x45, 0x81, 0x48, 0x81, 0x49, 0x81, 0x69,
        0x81, 0x6A, 0x81, 0x75, 0x81, 0x76, 0x82, 0x4F,
        0x82, 0x50, 0x82, 0x51, 0x82, 0x52, 0x82, 0x53,
        0x82, 0x54, 0x82, 0x55, 0x82, 0x56, 0x82, 0x57,
        0x82, 0x58, 0x82, 0xA0, 0x82, 0xA2, 0x82, 0xA4,
        0x82, 0xA6, 0x82, 0xA8, 0x82, 0xA9, 0x82, 0xAA,
        0x82, 0xAB, 0x82, 0xAC, 0x82, 0xAD, 0x82, 0xAE,
        0x81, 0x40, 0x82, 0xB0, 0x82, 0xB1, 0x82, 0xB2,
        0x82, 0xB3, 0x82, 0xB4, 0x82, 0xB5, 0x82, 0xB6,
        0x82, 0xB7, 0x82, 0xB8, 0x82, 0xB9, 0x82, 0xBA,
        0x82, 0xBB, 0x82, 0xBC, 0x82, 0xBD, 0x82, 0xBE,
        0x82, 0xBF, 0x82, 0xC0, 0x82, 0xC1, 0x82, 0xC2,
        0x82, 0xC3, 0x82, 0xC4, 0x82, 0xC5, 0x82, 0xC6,
        0x82, 0xC7, 0x82, 0xC8, 0x82, 0xC9, 0x82, 0xCA,
        0x82, 0xCB, 0x82, 0xCC, 0x82, 0xCD, 0x82, 0xCE,
        0x82, 0xD0, 0x82, 0xD1, 0x82, 0xD3, 0x82, 0xD4,
        0x82, 0xD6, 0x82, 0xD7, 0x82, 0xD9, 0x82, 0xDA,
        0x82, 0xDC, 0x82, 0xDD, 0x82, 0xDE, 0x82, 0xDF,
        0x82, 0xE0, 0x82, 0xE1, 0x82, 0xE2, 0x82, 0xE3,
        0x82, 0xE4, 0x82, 0xE5, 0x82, 0xE6, 0x82, 0xE7,
        0x82, 0xE8, 0x82, 0xE9, 0x82, 0xEA, 0x82, 0xEB,
        0x82, 0xED, 0x82, 0xF0, 0x82, 0xF1, 0x83, 0x41,
        0x83, 0x43, 0x83, 0x45, 0x83, 0x47, 0x83, 0x49,
        0x83, 0x4A, 0x83, 0x4C, 0x83, 0x4E, 0x83, 0x50,
        0x83, 0x52, 0x83, 0x54, 0x83, 0x56, 0x83, 0x58,
        0x83, 0x5A, 0x83, 0x5C, 0x83, 0x5E, 0x83, 0x60,
        0x83, 0x62, 0x83, 0x63, 0x83, 0x65, 0x83, 0x67,
        0x83, 0x69, 0x83, 0x6A, 0x82, 0xAF, 0x83, 0x6C,
        0x83, 0x6D, 0x83, 0x6E, 0x83, 0x71, 0x83, 0x74,
        0x83, 0x77, 0x83, 0x7A, 0x83, 0x7D, 0x83, 0x7E,
        0x83, 0x80, 0x83, 0x81, 0x83, 0x82, 0x83, 0x84,
    )
)  # fmt: skip

ESCAPE = 0x5C
SINGLE = 0x7F
ESCAPE_LEAD = KANA[0xB8]

Pair = Tuple[int, int]
Unit = Union[str, bytes]


def _entry(i: int) -> Pair:
    return KANA[i * 2], KANA[i * 2 + 1]


# first index wins when the table repeats an entry (0x00, 0x01 and 0x20)
_DIRECT = {}
for _i in range(1, SINGLE):
    if _i != ESCAPE:
        _DIRECT.setdefault(_entry(_i), _i)

_ESCAPED = {}
for _i in range(1, 0x80):
    _ESCAPED.setdefault(KANA[_i * 2 + 1], _i)

del _i


def scan(data, pos: int) -> int:
    """Return the end offset of the packed string starting at pos.

    The terminator is included when present; a string cut off by the end of
    data ends there. A raw pair missing its second byte is an error.
    """
    n = len(data)
    i = pos
    while i < n:
        b = data[i]
        if b == 0:
            return i + 1
        if b == ESCAPE:
            i += 2 if (i + 1 < n and data[i + 1] != 0) else 1
        elif b >= SINGLE:
            if i + 1 >= n:
                raise IsfDecodeError("packed string: truncated pair", i)
            i += 2
        else:
            i += 1
    return n


def tokens(raw) -> Iterator[Tuple[Pair, bytes]]:
    """Yield (pair, packed bytes) for every character up to the terminator."""
    n = len(raw)
    i = 0
    while i < n:
        b = raw[i]
        if b == 0:
            return
        start = i
        if b == ESCAPE:
            if i + 1 < n and raw[i + 1] != 0:
                idx = raw[i + 1]
                i += 2
            else:
                idx = ESCAPE
                i += 1
            if idx >= 0x80:
                raise IsfDecodeError(f"packed string: bad escape index 0x{idx:02X}", i)
            pair = (ESCAPE_LEAD, KANA[idx * 2 + 1])
        elif b >= SINGLE:
            if i + 1 >= n:
                raise IsfDecodeError("packed string: truncated pair", i)
            pair = (b, raw[i + 1])
            i += 2
        else:
            pair = _entry(b)
            i += 1
        yield pair, bytes(raw[start:i])


def unpack(raw) -> List[Pair]:
    return [pair for pair, _ in tokens(raw)]


def encode_pair(p: Pair, last: bool = False) -> bytes:
    """Shortest packed form of one pair; last means the terminator follows."""
    if p[0] == SINGLE:
        return bytes(p)
    if p == _entry(ESCAPE):
        # the terminator doubles as the escape argument
        return bytes((ESCAPE,)) if last else bytes((ESCAPE, ESCAPE))
    if p in _DIRECT:
        return bytes((_DIRECT[p],))
    if p[0] == ESCAPE_LEAD and p[1] in _ESCAPED:
        return bytes((ESCAPE, _ESCAPED[p[1]]))
    if p[0] < SINGLE:
        raise IsfError(f"packed string: unencodable pair {p[0]:02X} {p[1]:02X}")
    return bytes(p)


def pack(pairs) -> bytes:
    pairs = [(int(p[0]) & 0xFF, int(p[1]) & 0xFF) for p in pairs]
    last = len(pairs) - 1
    return b"".join(encode_pair(p, i == last) for i, p in enumerate(pairs)) + b"\x00"


def _pair_text(p: Pair, encoding: str):
    hi, lo = p
    if hi == SINGLE:
        if is_sjis_lead(lo):
            return None
        return decode_exact(bytes((lo,)), encoding)
    if not is_sjis_lead(hi):
        return None
    s = decode_exact(bytes((hi, lo)), encoding)
    return s if s is not None and len(s) == 1 else None


def _char_pair(ch: str, encoding: str) -> Pair:
    try:
        b = ch.encode(encoding)
    except UnicodeEncodeError as exc:
        raise IsfError(f"packed string: {ch!r} is not in {encoding}") from exc
    if len(b) == 1:
        return SINGLE, b[0]
    if len(b) == 2:
        return b[0], b[1]
    raise IsfError(f"packed string: {ch!r} is not a one or two byte character")


def packed_to_units(raw, encoding: str = "cp932") -> List[Unit]:
    """Split a packed string into text characters and verbatim packed bytes.

    A character is shown as text only when packing it again gives back the
    same bytes; anything else (raw pairs the table could shorten, long
    escapes, undecodable pairs) stays as its packed bytes.
    """
    toks = list(tokens(raw))
    last = len(toks) - 1
    out = []
    for i, (pair, b) in enumerate(toks):
        s = _pair_text(pair, encoding)
        if s is not None and encode_pair(pair, i == last) == b:
            out.append(s)
        else:
            out.append(b)
    return out


def pack_units(units, encoding: str = "cp932") -> bytes:
    """Inverse of packed_to_units: text is packed shortest-form, bytes verbatim."""
    items = []
    for u in units:
        if isinstance(u, bytes):
            items.append(u)
        else:
            items.extend(_char_pair(ch, encoding) for ch in u)
    last = len(items) - 1
    out = bytearray()
    for i, it in enumerate(items):
        out.extend(it if isinstance(it, bytes) else encode_pair(it, i == last))
    out.append(0)
    return bytes(out)
