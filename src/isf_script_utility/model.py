from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .common import DEFAULT_ENCODING, DEFAULT_VERSION
from .opcodes import Opcode


@dataclass(frozen=True)
class Action:
    """One instruction.

    frame holds the raw length bytes of a decoded instruction whose header is
    not the one the encoder would write (a declared length below the header
    size, or the long form for a short instruction); None otherwise.
    """

    instruction: Opcode
    args: tuple = ()
    frame: Optional[bytes] = None


@dataclass(frozen=True)
class Assembler:
    """A whole script: header fields, instructions and the label table.

    labels[n] is the index of the action LABEL_n points at; len(actions) means
    the end of the code and None an offset that hit no instruction. padding is
    whatever sits between the label table and the code when the code offset
    is not on a four byte boundary.
    """

    version: int = DEFAULT_VERSION
    encoding: str = DEFAULT_ENCODING
    actions: Tuple[Action, ...] = ()
    labels: Tuple[Optional[int], ...] = ()
    reserved: int = 0
    padding: bytes = b""

    @classmethod
    def from_bytes(cls, data) -> "Assembler":
        from .disam import disassemble

        return disassemble(data)

    @classmethod
    def from_text(cls, text: str) -> "Assembler":
        from .LA import parse_source

        return parse_source(text)

    def to_text(self) -> str:
        from .render import render

        return render(self)

    def to_text_bytes(self) -> bytes:
        return self.to_text().encode(self.encoding)

    def to_bytes(self) -> bytes:
        from .linker import link

        return link(self)


def decompile(data) -> Assembler:
    return Assembler.from_bytes(data)


def compile(text: str) -> Assembler:
    return Assembler.from_text(text)
