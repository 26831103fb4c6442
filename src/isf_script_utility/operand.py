"""Instruction operands.

Each operand kind is a small frozen dataclass; together they form a closed set
(see OPERAND_TYPES). Readers take (data, pos) and return one operand, the
caller advances by operand_size(). encode_operand() is the exact inverse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from . import kana
from .common import (
    IsfDecodeError,
    IsfEncodeError,
    read_u8,
    read_u16_le,
    read_u24_le,
    read_u32_le,
    write_u16_le,
    write_u24_le,
    write_u32_le,
)

VALUE_CONST = 0
VALUE_RAND = 1
VALUE_VAR = 2
VALUE_VAR_EX = 3

COMPARATORS = ("==", "<", "<=", ">", ">=", "!=")

ARITH_OPS = ("+", "-", "*", "/", "%")

COND_JP = 0x00
COND_HS = 0x01
COND_AND = 0x02
COND_END = 0xFF

MESSAGE_TEXT = 0xFF


@dataclass(frozen=True)
class UInt8:
    value: int


@dataclass(frozen=True)
class UInt16:
    value: int


@dataclass(frozen=True)
class UInt24:
    value: int


@dataclass(frozen=True)
class UInt32:
    value: int


@dataclass(frozen=True)
class RawByte:
    value: int


@dataclass(frozen=True)
class CString:
    """Encoded text including its zero terminator (when the data had one)."""

    raw: bytes


@dataclass(frozen=True)
class PackedString:
    """Packed kana text, kept in its packed form."""

    raw: bytes


@dataclass(frozen=True)
class Label:
    index: int


@dataclass(frozen=True)
class Value:
    """32-bit tagged value: 2-bit kind on top of a signed 30-bit payload."""

    raw: int

    @classmethod
    def make(cls, tag: int, n: int) -> "Value":
        return cls(((tag & 3) << 30) | (int(n) & 0x3FFFFFFF))

    @property
    def tag(self) -> int:
        return (self.raw >> 30) & 3

    @property
    def payload(self) -> int:
        return self.raw & 0x3FFFFFFF

    @property
    def number(self) -> int:
        p = self.payload
        return p - (1 << 30) if p & (1 << 29) else p


@dataclass(frozen=True)
class LabelTable:
    value: Value
    labels: Tuple[Label, ...] = ()


@dataclass(frozen=True)
class MessagePart:
    code: int
    args: Tuple["Operand", ...] = ()


@dataclass(frozen=True)
class Message:
    parts: Tuple[MessagePart, ...] = ()


@dataclass(frozen=True)
class Term:
    left: Value
    cmp: int
    right: Value


@dataclass(frozen=True)
class Condition:
    """terms[0] (links[0] terms[1]) ... then action (COND_JP/COND_HS/COND_END).

    A JP or HS action is normally followed by a COND_END byte; closed is
    False when the data had something else there.
    """

    terms: Tuple[Term, ...]
    links: Tuple[int, ...] = ()
    action: int = COND_END
    action_args: Tuple["Operand", ...] = ()
    closed: bool = True


@dataclass(frozen=True)
class Assignment:
    variable: int
    chain: Tuple[Tuple[int, Value], ...] = ()


Operand = Union[
    UInt8,
    UInt16,
    UInt24,
    UInt32,
    CString,
    PackedString,
    Label,
    Value,
    LabelTable,
    Message,
    Condition,
    Assignment,
    RawByte,
]

OPERAND_TYPES = (
    UInt8,
    UInt16,
    UInt24,
    UInt32,
    CString,
    PackedString,
    Label,
    Value,
    LabelTable,
    Message,
    Condition,
    Assignment,
    RawByte,
)

_FIXED_SIZE = {
    UInt8: 1,
    RawByte: 1,
    UInt16: 2,
    Label: 2,
    UInt24: 3,
    UInt32: 4,
    Value: 4,
}


def operand_size(op) -> int:
    sz = _FIXED_SIZE.get(type(op))
    if sz is not None:
        return sz
    if isinstance(op, (CString, PackedString)):
        return len(op.raw)
    if isinstance(op, LabelTable):
        return 5 + 2 * len(op.labels)
    if isinstance(op, Message):
        return sum(1 + sum(operand_size(a) for a in p.args) for p in op.parts)
    if isinstance(op, Condition):
        n = 9 * len(op.terms) + len(op.links) + 1
        if op.action != COND_END:
            n += sum(operand_size(a) for a in op.action_args) + (1 if op.closed else 0)
        return n
    if isinstance(op, Assignment):
        return 2 + 5 * len(op.chain)
    raise TypeError(f"not an operand: {op!r}")


# ---- encoding


def encode_operand(op, out: bytearray) -> None:
    if isinstance(op, (UInt8, RawByte)):
        out.append(op.value & 0xFF)
    elif isinstance(op, UInt16):
        write_u16_le(out, op.value)
    elif isinstance(op, UInt24):
        write_u24_le(out, op.value)
    elif isinstance(op, UInt32):
        write_u32_le(out, op.value)
    elif isinstance(op, Value):
        write_u32_le(out, op.raw)
    elif isinstance(op, Label):
        write_u16_le(out, op.index)
    elif isinstance(op, (CString, PackedString)):
        out.extend(op.raw)
    elif isinstance(op, LabelTable):
        if len(op.labels) > 0xFF:
            raise IsfEncodeError(f"label table too long: {len(op.labels)} entries")
        write_u32_le(out, op.value.raw)
        out.append(len(op.labels))
        for lb in op.labels:
            write_u16_le(out, lb.index)
    elif isinstance(op, Message):
        for part in op.parts:
            out.append(part.code & 0xFF)
            for a in part.args:
                encode_operand(a, out)
    elif isinstance(op, Condition):
        if not op.terms or len(op.links) != len(op.terms) - 1:
            raise IsfEncodeError("condition: links do not join the terms")
        for i, t in enumerate(op.terms):
            if i:
                out.append(op.links[i - 1] & 0xFF)
            write_u32_le(out, t.left.raw)
            out.append(t.cmp & 0xFF)
            write_u32_le(out, t.right.raw)
        out.append(op.action & 0xFF)
        if op.action != COND_END:
            for a in op.action_args:
                encode_operand(a, out)
            if op.closed:
                out.append(COND_END)
    elif isinstance(op, Assignment):
        write_u16_le(out, op.variable)
        for code, v in op.chain:
            out.append(code & 0xFF)
            write_u32_le(out, v.raw)
    else:
        raise TypeError(f"not an operand: {op!r}")


def encode_operands(args) -> bytes:
    out = bytearray()
    for a in args:
        encode_operand(a, out)
    return bytes(out)


# ---- readers


def rd_u8(data, pos):
    return UInt8(read_u8(data, pos))


def rd_u16(data, pos):
    return UInt16(read_u16_le(data, pos))


def rd_u24(data, pos):
    return UInt24(read_u24_le(data, pos))


def rd_u32(data, pos):
    return UInt32(read_u32_le(data, pos))


def rd_value(data, pos):
    return Value(read_u32_le(data, pos))


def rd_label(data, pos):
    return Label(read_u16_le(data, pos))


def rd_cstring(data, pos):
    end = bytes(data).find(b"\x00", pos)
    end = len(data) if end < 0 else end + 1
    return CString(bytes(data[pos:end]))


def rd_packed(data, pos):
    return PackedString(bytes(data[pos : kana.scan(data, pos)]))


def rd_table(data, pos):
    v = rd_value(data, pos)
    n = read_u8(data, pos + 4)
    labels = tuple(rd_label(data, pos + 5 + 2 * i) for i in range(n))
    return LabelTable(v, labels)


def rd_assignment(data, pos):
    var = read_u16_le(data, pos)
    p = pos + 2
    chain = []
    while p < len(data) and data[p] < len(ARITH_OPS):
        chain.append((data[p], rd_value(data, p + 1)))
        p += 5
    return Assignment(var, tuple(chain))


def rd_condition(data, pos):
    terms = []
    links = []
    p = pos
    while True:
        left = rd_value(data, p)
        cmp = read_u8(data, p + 4)
        right = rd_value(data, p + 5)
        terms.append(Term(left, cmp, right))
        code = read_u8(data, p + 9)
        p += 10
        if code == COND_END:
            return Condition(tuple(terms), tuple(links))
        if code == COND_JP:
            args = (rd_label(data, p),)
        elif code == COND_HS:
            args = (rd_u16(data, p), rd_value(data, p + 2))
        else:
            links.append(code)
            continue
        p += sum(operand_size(a) for a in args)
        closed = p < len(data) and data[p] == COND_END
        return Condition(tuple(terms), tuple(links), code, args, closed)


MESSAGE_SHAPES = {
    0x01: (rd_u8, rd_u8, rd_u8, rd_u8),
    0x04: (rd_u8,),
    0x07: (rd_u8,),
    0x08: (rd_value,),
    0x09: (rd_u8,),
    0x0A: (rd_u16, rd_u8, rd_u8),
    0x0B: (rd_u8, rd_u8),
    0x0C: (rd_u8, rd_u8),
    0x10: (rd_u8, rd_u8),
    0x11: (rd_value,),
    MESSAGE_TEXT: (rd_packed,),
}


def rd_message(data, pos):
    parts = []
    p = pos
    while p < len(data):
        code = data[p]
        p += 1
        args = []
        for rd in MESSAGE_SHAPES.get(code, ()):
            a = rd(data, p)
            p += operand_size(a)
            args.append(a)
        parts.append(MessagePart(code, tuple(args)))
        if code == MESSAGE_TEXT:
            break
    return Message(tuple(parts))


def read_operands(data, readers) -> tuple:
    """Apply readers in order; leftover bytes become RawByte operands."""
    out = []
    pos = 0
    for rd in readers:
        if pos >= len(data):
            raise IsfDecodeError(
                f"operands end after {pos} bytes, {rd.__name__} has nothing to read",
                pos,
            )
        a = rd(data, pos)
        pos += operand_size(a)
        out.append(a)
    out.extend(RawByte(b) for b in data[pos:])
    return tuple(out)
