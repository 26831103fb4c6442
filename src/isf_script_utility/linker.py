from .common import IsfEncodeError, write_i32_le, write_i32_le_array, write_u16_le
from .disam import HEADER_SIZE, LONG_FORM, MAX_SHORT
from .operand import encode_operands

MAX_LONG = 0x7FFF


def size_field(n: int, name="instruction") -> bytes:
    """Length bytes the encoder writes for an operand block of n bytes."""
    total = 2 + n
    if total <= MAX_SHORT:
        return bytes((total,))
    total = 3 + n
    if total > MAX_LONG:
        raise IsfEncodeError(f"{name}: instruction too long ({total} bytes)")
    return bytes((LONG_FORM | (total >> 8), total & 0xFF))


def field_fits(field: bytes, n: int) -> bool:
    """True when the length bytes describe an instruction with n operand bytes."""
    if len(field) == 1 and not field[0] & LONG_FORM:
        declared = field[0]
    elif len(field) == 2 and field[0] & LONG_FORM:
        declared = ((field[0] & 0x7F) << 8) | field[1]
    else:
        return False
    used = 1 + len(field)
    return max(declared, used) == used + n


def frame(op, body, field=None) -> bytes:
    """Prefix an operand block with its opcode and total length.

    field keeps the length bytes of a decoded instruction as they were, as
    long as they still match the block.
    """
    if field is None or not field_fits(field, len(body)):
        field = size_field(len(body), getattr(op, "name", op))
    return bytes((int(op) & 0xFF,)) + field + bytes(body)


def _label_offsets(labels, offsets):
    out = []
    for j, idx in enumerate(labels):
        if idx is None:
            out.append(-1)
            continue
        if idx < 0 or idx >= len(offsets):
            raise IsfEncodeError(f"LABEL_{j}: action index {idx} out of range")
        out.append(offsets[idx])
    return out


def link(asm) -> bytes:
    frames = [frame(a.instruction, encode_operands(a.args), a.frame) for a in asm.actions]
    offsets = []
    pos = 0
    for fr in frames:
        offsets.append(pos)
        pos += len(fr)
    offsets.append(pos)
    b = bytearray()
    write_i32_le(b, HEADER_SIZE + 4 * len(asm.labels) + len(asm.padding))
    write_u16_le(b, asm.version)
    write_u16_le(b, asm.reserved)
    write_i32_le_array(b, _label_offsets(asm.labels, offsets))
    b.extend(asm.padding)
    for fr in frames:
        b.extend(fr)
    return bytes(b)
