from .common import (
    DEFAULT_ENCODING,
    IsfDecodeError,
    eprint,
    hx,
    read_i32_le,
    read_u16_le,
)
from .model import Action, Assembler
from .opcodes import Opcode, decode_operands

HEADER_SIZE = 8
LONG_FORM = 0x80
MAX_SHORT = 0x7F


def read_frame(data, index):
    """Return (opcode, header_size, length) of the instruction at index.

    length covers the whole instruction, header included, and is never less
    than the header itself.
    """
    n = len(data)
    if index + 2 > n:
        raise IsfDecodeError("instruction header truncated", index)
    op = data[index]
    b1 = data[index + 1]
    if b1 & LONG_FORM:
        if index + 3 > n:
            raise IsfDecodeError("instruction header truncated", index)
        length = ((b1 & 0x7F) << 8) | data[index + 2]
        used = 3
    else:
        length = b1
        used = 2
    length = max(length, used)
    if index + length > n:
        raise IsfDecodeError(
            f"{Opcode(op).name}: length {length} runs past end of code", index
        )
    return op, used, length


def odd_field(data, index, used, length):
    """The length bytes at index when the encoder would not write them, else None."""
    field = bytes(data[index + 1 : index + used])
    declared = field[0] if used == 2 else ((field[0] & 0x7F) << 8) | field[1]
    if declared == length and (used == 2 or length - 1 > MAX_SHORT):
        return None
    return field


def iter_frames(code):
    """Yield (offset, opcode, operand_bytes, odd_field) for every instruction in code."""
    index = 0
    while index < len(code):
        op, used, length = read_frame(code, index)
        field = odd_field(code, index, used, length)
        yield index, op, code[index + used : index + length], field
        index += length


def decode_action(op, block, ofs=0, field=None) -> Action:
    try:
        args = decode_operands(op, block)
    except IsfDecodeError as exc:
        raise IsfDecodeError(f"{Opcode(op).name}: {exc}", ofs) from exc
    return Action(Opcode(op), args, field)


def read_header(data):
    if len(data) < HEADER_SIZE:
        raise IsfDecodeError(f"header too small: {len(data)} bytes")
    offset = read_i32_le(data, 0)
    if offset < HEADER_SIZE or offset > len(data):
        raise IsfDecodeError(f"bad code offset {hx(offset)} (len={len(data)})")
    version = read_u16_le(data, 4)
    reserved = read_u16_le(data, 6)
    count = (offset - HEADER_SIZE) // 4
    entries = [read_i32_le(data, HEADER_SIZE + 4 * i) for i in range(count)]
    padding = bytes(data[HEADER_SIZE + 4 * count : offset])
    return offset, version, reserved, entries, padding


def disassemble(data) -> Assembler:
    data = bytes(data)
    offset, version, reserved, entries, padding = read_header(data)
    code = data[offset:]
    actions = []
    action_at = {}
    for ofs, op, block, field in iter_frames(code):
        action_at[ofs] = len(actions)
        actions.append(decode_action(op, block, offset + ofs, field))
    action_at[len(code)] = len(actions)
    labels = []
    for j, e in enumerate(entries):
        idx = action_at.get(e)
        if idx is None:
            eprint(f"warning: LABEL_{j} points at {hx(e)}, not an instruction")
        labels.append(idx)
    return Assembler(
        version, DEFAULT_ENCODING, tuple(actions), tuple(labels), reserved, padding
    )
