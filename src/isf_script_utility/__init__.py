__version__ = "0.1.0"

from .common import IsfDecodeError, IsfEncodeError, IsfError, IsfSyntaxError
from .model import Action, Assembler, compile, decompile
from .opcodes import Opcode
