import re
from dataclasses import replace

from . import kana
from .common import (
    DEFAULT_ENCODING,
    IsfError,
    IsfSyntaxError,
    default_version,
    norm_charset,
)
from .linker import field_fits, size_field
from .model import Action, Assembler
from .opcodes import MESSAGE_BLOCKS, Opcode, decode_operands
from .operand import (
    ARITH_OPS,
    COMPARATORS,
    COND_AND,
    COND_END,
    COND_HS,
    COND_JP,
    Assignment,
    Condition,
    CString,
    Label,
    LabelTable,
    Message,
    MessagePart,
    PackedString,
    Term,
    UInt8,
    UInt16,
    UInt24,
    UInt32,
    Value,
    VALUE_CONST,
    VALUE_RAND,
    VALUE_VAR,
    VALUE_VAR_EX,
    encode_operands,
)

_LABEL_DEF = re.compile(r"^#LABEL_(\d+):$")
_HEADER = re.compile(r"^;\s*(version|encoding|reserved|padding)\s*:\s*(.*?)\s*$", re.I)
_FRAME = re.compile(r"^;\s*frame\s*:\s*(.*?)\s*$", re.I)
_FIXED = {2: UInt8, 4: UInt16, 6: UInt24, 8: UInt32}
_SIMPLE_ESCAPES = {"\\": "\\", "'": "'", "`": "`", "n": "\n", "r": "\r", "t": "\t"}

PAYLOAD_MIN = -(1 << 29)
PAYLOAD_MAX = (1 << 29) - 1


# ---- literals


def split_args(s):
    """Split on top-level commas, leaving quoted text and [...] lists whole."""
    out = []
    cur = []
    q = None
    depth = 0
    i = 0
    n = len(s)
    while i < n:
        c = s[i]
        if q:
            cur.append(c)
            if c == "\\" and i + 1 < n:
                cur.append(s[i + 1])
                i += 2
                continue
            if c == q:
                q = None
        elif c in "'`":
            q = c
            cur.append(c)
        elif c == "[":
            depth += 1
            cur.append(c)
        elif c == "]":
            depth -= 1
            if depth < 0:
                raise IsfError("unbalanced ']'")
            cur.append(c)
        elif c == "," and depth == 0:
            out.append("".join(cur).strip())
            cur = []
        else:
            cur.append(c)
        i += 1
    if q:
        raise IsfError(f"unterminated {q} string")
    if depth:
        raise IsfError("unterminated '[' list")
    tail = "".join(cur).strip()
    if tail or out:
        out.append(tail)
    return out


def unquote(tok):
    """Undo quote_units(): a list of str (text) and bytes (raw) runs."""
    q = tok[0]
    if len(tok) < 2 or tok[-1] != q:
        raise IsfError(f"unterminated {q} string")
    body = tok[1:-1]
    units = []
    text = []
    raw = bytearray()

    def flush_text():
        if text:
            units.append("".join(text))
            text.clear()

    def flush_raw():
        if raw:
            units.append(bytes(raw))
            raw.clear()

    i = 0
    n = len(body)
    while i < n:
        c = body[i]
        if c == q:
            raise IsfError(f"unescaped {q} inside string")
        if c != "\\":
            flush_raw()
            text.append(c)
            i += 1
            continue
        if i + 1 >= n:
            raise IsfError("dangling backslash")
        e = body[i + 1]
        if e in _SIMPLE_ESCAPES:
            flush_raw()
            text.append(_SIMPLE_ESCAPES[e])
            i += 2
        elif e == "x":
            flush_text()
            raw.append(_hex_digits(body[i + 2 : i + 4], 2))
            i += 4
        elif e == "u":
            flush_raw()
            text.append(chr(_hex_digits(body[i + 2 : i + 6], 4)))
            i += 6
        else:
            raise IsfError(f"unknown escape \\{e}")
    flush_text()
    flush_raw()
    return units


def _hex_digits(s, width):
    if len(s) != width or any(c not in "0123456789abcdefABCDEF" for c in s):
        raise IsfError(f"bad escape digits {s!r}")
    return int(s, 16)


def units_to_bytes(units, encoding):
    out = bytearray()
    for u in units:
        if isinstance(u, bytes):
            out.extend(u)
            continue
        try:
            out.extend(u.encode(encoding))
        except UnicodeEncodeError as exc:
            raise IsfError(f"text not representable in {encoding}: {u!r}") from exc
    return bytes(out)


def _int(s, base=10):
    try:
        return int(s, base)
    except ValueError:
        raise IsfError(f"bad number {s!r}") from None


def _signed(s):
    n = _int(s)
    if not PAYLOAD_MIN <= n <= PAYLOAD_MAX:
        raise IsfError(f"value {n} out of range")
    return n


def _hex_payload(s):
    if not s or s.startswith(("-", "+")):
        raise IsfError(f"bad variable number {s!r}")
    n = _int(s, 16)
    if n > 0x3FFFFFFF:
        raise IsfError(f"variable number {s} out of range")
    return n


def parse_value(tok):
    if tok.startswith("RAND(") and tok.endswith(")"):
        return Value.make(VALUE_RAND, _signed(tok[5:-1]))
    if tok.startswith("&"):
        return Value.make(VALUE_VAR, _hex_payload(tok[1:]))
    if tok.startswith("$"):
        return Value.make(VALUE_VAR_EX, _hex_payload(tok[1:]))
    if tok[:1] == "-" or tok[:1].isdigit():
        return Value.make(VALUE_CONST, _signed(tok))
    raise IsfError(f"not a value: {tok!r}")


def parse_assignment(tok):
    left, _, right = tok.partition("=")
    left = left.strip()
    if not left.startswith("&"):
        raise IsfError(f"assignment target must be &XXXX: {left!r}")
    var = _int(left[1:], 16)
    if not 0 <= var <= 0xFFFF:
        raise IsfError(f"assignment target {left} out of range")
    words = right.split()
    if len(words) % 2:
        raise IsfError(f"assignment needs operator/value pairs: {right.strip()!r}")
    chain = []
    for k in range(0, len(words), 2):
        if words[k] not in ARITH_OPS:
            raise IsfError(f"unknown operator {words[k]!r}")
        chain.append((ARITH_OPS.index(words[k]), parse_value(words[k + 1])))
    return Assignment(var, tuple(chain))


def parse_label(tok):
    n = _int(tok[6:])
    if not 0 <= n <= 0xFFFF:
        raise IsfError(f"label number out of range: {tok}")
    return Label(n)


def parse_literal(tok, encoding=DEFAULT_ENCODING):
    """One argument token to an operand; a [...] list comes back as a list of Labels."""
    if not tok:
        raise IsfError("empty argument")
    c = tok[0]
    if c == "'":
        return CString(units_to_bytes(unquote(tok), encoding) + b"\x00")
    if c == "`":
        return PackedString(kana.pack_units(unquote(tok), encoding))
    if c == "[":
        if not tok.endswith("]"):
            raise IsfError(f"bad label list {tok!r}")
        labels = []
        for t in split_args(tok[1:-1]):
            if not t.startswith("LABEL_"):
                raise IsfError(f"label list entries must be LABEL_n: {t!r}")
            labels.append(parse_label(t))
        return labels
    if "=" in tok:
        return parse_assignment(tok)
    if tok.startswith("LABEL_"):
        return parse_label(tok)
    if tok[:2] in ("0x", "0X"):
        cls = _FIXED.get(len(tok) - 2)
        if cls is None:
            raise IsfError(f"hex literal must have 2, 4, 6 or 8 digits: {tok}")
        return cls(_int(tok[2:], 16))
    return parse_value(tok)


def parse_args(s, encoding=DEFAULT_ENCODING):
    out = []
    for tok in split_args(s.strip()):
        lit = parse_literal(tok, encoding)
        if isinstance(lit, list):
            if not out or not isinstance(out[-1], Value):
                raise IsfError("label list must follow a value")
            out.append(LabelTable(out.pop(), tuple(lit)))
        else:
            out.append(lit)
    return tuple(out)


def parse_term(s):
    words = s.split()
    if len(words) != 3:
        raise IsfError(f"comparison must be '<value> <op> <value>': {s!r}")
    left, cmp, right = words
    if cmp in COMPARATORS:
        code = COMPARATORS.index(cmp)
    elif cmp.startswith("?0x"):
        code = _int(cmp[3:], 16) & 0xFF
    else:
        raise IsfError(f"unknown comparison {cmp!r}")
    return Term(parse_value(left), code, parse_value(right))


# ---- lines


def _split_head(s):
    parts = s.split(None, 1)
    return parts[0], (parts[1] if len(parts) > 1 else "")


def _end_args(s, name, encoding):
    """Arguments of an 'END <name>' line, or None when s is not one."""
    head = f"END {name}"
    if s == head:
        return ()
    if s.startswith(head) and s[len(head)].isspace():
        return parse_args(s[len(head) :], encoding)
    return None


def _body_lines(lines, start):
    j = start
    while j < len(lines):
        s = lines[j].strip()
        if s and not s.startswith(";"):
            yield j, s
        j += 1


def _parse_message_block(lines, start, name, encoding):
    parts = []
    for j, s in _body_lines(lines, start):
        try:
            tail = _end_args(s, name, encoding)
            if tail is not None:
                return Message(tuple(parts)), j - start + 1, tail
            toks = parse_args(s, encoding)
            if not isinstance(toks[0], UInt8):
                raise IsfError("message line must start with a 0xNN type code")
            parts.append(MessagePart(toks[0].value, toks[1:]))
        except IsfSyntaxError:
            raise
        except IsfError as exc:
            raise IsfSyntaxError(str(exc), j + 1, lines[j]) from exc
    raise IsfSyntaxError(f"missing END {name}", start, lines[start - 1])


def _parse_condition_block(lines, i, name, first, encoding):
    terms = [parse_term(first)]
    links = []
    action = COND_END
    action_args = ()
    closed = True
    for j, s in _body_lines(lines, i + 1):
        try:
            tail = _end_args(s, name, encoding)
            if tail is not None:
                cond = Condition(tuple(terms), tuple(links), action, action_args, closed)
                return cond, j - i + 1, tail
            word, more = _split_head(s)
            if word == "NOEND" and not more and action != COND_END and closed:
                closed = False
                continue
            if action != COND_END:
                raise IsfError(f"nothing may follow the {name} action")
            if word == "AND" or word.startswith("AND/"):
                link = COND_AND if word == "AND" else _int(word[4:], 0)
                if link in (COND_JP, COND_HS, COND_END) or not 0 <= link <= 0xFF:
                    raise IsfError(f"bad link code {word}")
                links.append(link)
                terms.append(parse_term(more))
            elif word == "JP":
                action, action_args = COND_JP, parse_args(more, encoding)
            elif word == "HS":
                action, action_args = COND_HS, parse_args(more, encoding)
            else:
                raise IsfError(f"unexpected {word!r} inside {name}")
        except IsfSyntaxError:
            raise
        except IsfError as exc:
            raise IsfSyntaxError(str(exc), j + 1, lines[j]) from exc
    raise IsfSyntaxError(f"missing END {name}", i + 1, lines[i])


def _has_message(op, head):
    if op != Opcode.MPM:
        return True
    b = encode_operands(head)
    return bool(b and b[0])


def parse_action(lines, i, encoding=DEFAULT_ENCODING):
    """Parse the instruction starting at lines[i]; return (Action, lines used)."""
    name, rest = _split_head(lines[i].strip())
    op = Opcode.__members__.get(name)
    if op is None:
        raise IsfSyntaxError(f"unknown instruction {name!r}", i + 1, lines[i])
    try:
        if op == Opcode.IF:
            cond, used, tail = _parse_condition_block(lines, i, name, rest, encoding)
            args = (cond,) + tail
        else:
            args = parse_args(rest, encoding)
            used = 1
            if op in MESSAGE_BLOCKS and _has_message(op, args):
                msg, n, tail = _parse_message_block(lines, i + 1, name, encoding)
                args = args + (msg,) + tail
                used += n
        # text and binary must agree on structure: run the bytes through the decoder
        args = decode_operands(op, encode_operands(args))
    except IsfSyntaxError:
        raise
    except IsfError as exc:
        raise IsfSyntaxError(f"{name}: {exc}", i + 1, lines[i]) from exc
    return Action(op, args), used


def _read_header(lines):
    """Header comments count only in the comment block ahead of the first label or instruction."""
    found = {}
    for i, line in enumerate(lines):
        s = line.strip()
        if not s:
            continue
        if not s.startswith(";"):
            break
        m = _HEADER.match(s)
        if m:
            found.setdefault(m.group(1).lower(), (m.group(2), i))
    return found


def _header_hex(found, key, default, lines):
    if key not in found:
        return default
    v, i = found[key]
    try:
        n = int(v, 16)
    except ValueError:
        raise IsfSyntaxError(f"{key}: not a hex number: {v!r}", i + 1, lines[i]) from None
    if not 0 <= n <= 0xFFFF:
        raise IsfSyntaxError(f"{key}: out of range: {v}", i + 1, lines[i])
    return n


def _hex_bytes(s):
    try:
        return bytes.fromhex(s)
    except ValueError:
        raise IsfError(f"not a list of hex bytes: {s!r}") from None


def _frame_field(s):
    b = _hex_bytes(s)
    if len(b) == 1 and not b[0] & 0x80:
        return b
    if len(b) == 2 and b[0] & 0x80:
        return b
    raise IsfError(f"frame must be one short or two long-form length bytes: {s!r}")


def _label_refs(args):
    for a in args:
        if isinstance(a, Label):
            yield a.index
        elif isinstance(a, LabelTable):
            yield from (lb.index for lb in a.labels)
        elif isinstance(a, Condition):
            yield from _label_refs(a.action_args)
        elif isinstance(a, Message):
            for part in a.parts:
                yield from _label_refs(part.args)


def _with_frame(action, field, at, lines):
    n = len(encode_operands(action.args))
    if not field_fits(field, n):
        raise IsfSyntaxError(
            f"frame {field.hex(' ').upper()} does not fit {n} operand bytes", at + 1, lines[at]
        )
    if field == size_field(n):
        return action
    return replace(action, frame=field)


def parse_source(text: str) -> Assembler:
    lines = text.splitlines()
    found = _read_header(lines)
    version = _header_hex(found, "version", None, lines)
    if version is None:
        version = default_version()
    reserved = _header_hex(found, "reserved", 0, lines)
    encoding = DEFAULT_ENCODING
    if "encoding" in found:
        v, at = found["encoding"]
        encoding = norm_charset(v)
        if not encoding:
            raise IsfSyntaxError(f"unknown encoding {v!r}", at + 1, lines[at])
    padding = b""
    if "padding" in found:
        v, at = found["padding"]
        try:
            padding = _hex_bytes(v)
        except IsfError as exc:
            raise IsfSyntaxError(f"padding: {exc}", at + 1, lines[at]) from exc
        if len(padding) > 3:
            raise IsfSyntaxError("padding: at most 3 bytes", at + 1, lines[at])

    actions = []
    action_lines = []
    label_at = {}
    pending = None
    i = 0
    while i < len(lines):
        s = lines[i].strip()
        if not s:
            i += 1
            continue
        if s.startswith(";"):
            m = _FRAME.match(s)
            if m:
                if pending is not None:
                    raise IsfSyntaxError("two frame lines for one instruction", i + 1, lines[i])
                try:
                    pending = (_frame_field(m.group(1)), i)
                except IsfError as exc:
                    raise IsfSyntaxError(str(exc), i + 1, lines[i]) from exc
            i += 1
            continue
        if s.startswith("#"):
            m = _LABEL_DEF.match(s)
            if not m:
                raise IsfSyntaxError("bad label definition", i + 1, lines[i])
            n = int(m.group(1))
            if n in label_at:
                raise IsfSyntaxError(f"LABEL_{n} defined twice", i + 1, lines[i])
            label_at[n] = len(actions)
            i += 1
            continue
        action, used = parse_action(lines, i, encoding)
        if pending is not None:
            action = _with_frame(action, pending[0], pending[1], lines)
            pending = None
        actions.append(action)
        action_lines.append(i)
        i += used
    if pending is not None:
        at = pending[1]
        raise IsfSyntaxError("frame line without an instruction", at + 1, lines[at])

    size = max(label_at) + 1 if label_at else 0
    labels = tuple(label_at.get(j) for j in range(size))
    for action, at in zip(actions, action_lines):
        for idx in _label_refs(action.args):
            if idx >= size or labels[idx] is None:
                raise IsfSyntaxError(f"LABEL_{idx} is not defined", at + 1, lines[at])
    return Assembler(version, encoding, tuple(actions), labels, reserved, padding)
