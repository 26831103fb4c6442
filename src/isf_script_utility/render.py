from .common import decode_exact, split_chars
from .kana import packed_to_units
from .operand import (
    ARITH_OPS,
    COMPARATORS,
    COND_AND,
    COND_END,
    COND_JP,
    Assignment,
    CString,
    Condition,
    Label,
    LabelTable,
    Message,
    PackedString,
    RawByte,
    UInt8,
    UInt16,
    UInt24,
    UInt32,
    Value,
    VALUE_CONST,
    VALUE_RAND,
    VALUE_VAR,
)

INDENT = "    "

_CHAR_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def quote_units(units, q: str) -> str:
    """Quote a mix of text (str) and undecodable bytes (bytes) with q."""
    out = [q]
    for u in units:
        if isinstance(u, bytes):
            out.extend(f"\\x{b:02X}" for b in u)
            continue
        for ch in u:
            if ch in _CHAR_ESCAPES:
                out.append(_CHAR_ESCAPES[ch])
            elif ch == q:
                out.append("\\" + q)
            elif ord(ch) < 0x20 or ord(ch) == 0x7F:
                out.append(f"\\u{ord(ch):04X}")
            else:
                out.append(ch)
    out.append(q)
    return "".join(out)


def bytes_to_units(raw: bytes, encoding: str):
    s = decode_exact(raw, encoding)
    if s is not None:
        return [s]
    out = []
    for run in split_chars(raw, encoding):
        s = decode_exact(run, encoding)
        out.append(run if s is None else s)
    return out


def format_value(v: Value) -> str:
    if v.tag == VALUE_CONST:
        return str(v.number)
    if v.tag == VALUE_RAND:
        return f"RAND({v.number})"
    if v.tag == VALUE_VAR:
        return f"&{v.payload:04X}"
    return f"${v.payload:04X}"


def format_cstring(op: CString, encoding: str) -> str:
    raw = op.raw[:-1] if op.raw.endswith(b"\x00") else op.raw
    return quote_units(bytes_to_units(raw, encoding), "'")


def format_packed(op: PackedString, encoding: str) -> str:
    return quote_units(packed_to_units(op.raw, encoding), "`")


def format_assignment(op: Assignment) -> str:
    s = f"&{op.variable:04X} ="
    for code, v in op.chain:
        s += f" {ARITH_OPS[code]} {format_value(v)}"
    return s


def format_operand(op, encoding: str) -> str:
    if isinstance(op, (UInt8, RawByte)):
        return f"0x{op.value:02X}"
    if isinstance(op, UInt16):
        return f"0x{op.value:04X}"
    if isinstance(op, UInt24):
        return f"0x{op.value:06X}"
    if isinstance(op, UInt32):
        return f"0x{op.value:08X}"
    if isinstance(op, Value):
        return format_value(op)
    if isinstance(op, Label):
        return f"LABEL_{op.index}"
    if isinstance(op, CString):
        return format_cstring(op, encoding)
    if isinstance(op, PackedString):
        return format_packed(op, encoding)
    if isinstance(op, LabelTable):
        labels = ", ".join(format_operand(lb, encoding) for lb in op.labels)
        return f"{format_value(op.value)}, [{labels}]"
    if isinstance(op, Assignment):
        return format_assignment(op)
    raise TypeError(f"cannot format {type(op).__name__} inline")


def format_args(args, encoding: str) -> str:
    return ", ".join(format_operand(a, encoding) for a in args)


def format_term(t) -> str:
    cmp = COMPARATORS[t.cmp] if t.cmp < len(COMPARATORS) else f"?0x{t.cmp:02X}"
    return f"{format_value(t.left)} {cmp} {format_value(t.right)}"


def format_link(code: int) -> str:
    return "AND" if code == COND_AND else f"AND/0x{code:02X}"


def hex_bytes(b) -> str:
    return " ".join(f"{x:02X}" for x in b)


def _join(head: str, args: str) -> str:
    return f"{head} {args}" if args else head


def _message_lines(msg: Message, encoding: str):
    for part in msg.parts:
        line = f"0x{part.code:02X}"
        if part.args:
            line += ", " + format_args(part.args, encoding)
        yield INDENT * 2 + line


def _condition_lines(name: str, cond: Condition, encoding: str):
    yield INDENT + f"{name} {format_term(cond.terms[0])}"
    for link, t in zip(cond.links, cond.terms[1:]):
        yield INDENT * 2 + f"{format_link(link)} {format_term(t)}"
    if cond.action != COND_END:
        act = "JP" if cond.action == COND_JP else "HS"
        yield INDENT * 2 + _join(act, format_args(cond.action_args, encoding))
        if not cond.closed:
            yield INDENT * 2 + "NOEND"


def render_action(action, encoding: str):
    name = action.instruction.name
    args = action.args
    for i, a in enumerate(args):
        if isinstance(a, Message):
            yield INDENT + _join(name, format_args(args[:i], encoding))
            yield from _message_lines(a, encoding)
            yield INDENT + _join(f"END {name}", format_args(args[i + 1 :], encoding))
            return
        if isinstance(a, Condition):
            if i:
                raise TypeError(f"{name}: condition must be the first operand")
            yield from _condition_lines(name, a, encoding)
            yield INDENT + _join(f"END {name}", format_args(args[i + 1 :], encoding))
            return
    yield INDENT + _join(name, format_args(args, encoding))


def render(asm) -> str:
    lines = [f"; version: {asm.version:04X}", f"; encoding: {asm.encoding}"]
    if asm.reserved:
        lines.append(f"; reserved: {asm.reserved:04X}")
    if asm.padding:
        lines.append(f"; padding: {hex_bytes(asm.padding)}")
    labels_at = {}
    for j, idx in enumerate(asm.labels):
        if idx is not None:
            labels_at.setdefault(idx, []).append(j)
    for i, action in enumerate(asm.actions):
        for j in labels_at.get(i, ()):
            lines.append(f"#LABEL_{j}:")
        if action.frame is not None:
            lines.append(INDENT + f"; frame: {hex_bytes(action.frame)}")
        lines.extend(render_action(action, asm.encoding))
    for j in labels_at.get(len(asm.actions), ()):
        lines.append(f"#LABEL_{j}:")
    return "\n".join(lines) + "\n"
