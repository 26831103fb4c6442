import codecs
import os
import struct
import sys

DEFAULT_VERSION = 0x9597

DEFAULT_ENCODING = "cp932"

ISF_EXTENSION = ".isf"

TEXT_EXTENSION = ".txt"


class IsfError(ValueError):
    pass


class IsfDecodeError(IsfError):
    def __init__(self, msg: str, offset=None):
        if offset is not None:
            msg = f"{msg} (at {hx(offset)})"
        super().__init__(msg)
        self.offset = offset


class IsfSyntaxError(IsfError):
    def __init__(self, msg: str, line_no: int = 0, line: str = ""):
        if line_no:
            msg = f"line {line_no}: {msg}"
        super().__init__(msg)
        self.line_no = line_no
        self.line = line


class IsfEncodeError(IsfError):
    pass


def _env_text(name: str, default: str = "") -> str:
    return str(os.environ.get(name, default) or default).strip()


def default_version() -> int:
    s = _env_text("ISF_SSU_VERSION")
    if not s:
        return DEFAULT_VERSION
    try:
        v = int(s, 16)
    except ValueError:
        eprint(f"ISF_SSU_VERSION: not a hex number: {s!r}")
        return DEFAULT_VERSION
    return v & 0xFFFF


def text_file_encoding() -> str:
    return norm_charset(_env_text("ISF_SSU_TEXT_ENCODING", "utf-8")) or "utf-8"


def norm_charset(cs: str) -> str:
    s = str(cs or "").strip().lower()
    if s in (
        "jis",
        "sjis",
        "shift_jis",
        "shift-jis",
        "cp932",
        "ms932",
        "windows-932",
        "windows932",
    ):
        return "cp932"
    if s in ("utf8", "utf-8", "utf_8", "utf8-sig", "utf-8-sig"):
        return "utf-8"
    if not s:
        return ""
    try:
        return codecs.lookup(s).name
    except LookupError:
        return ""


def is_sjis_lead(b: int) -> bool:
    return 0x81 <= b <= 0x9F or 0xE0 <= b <= 0xFC


def split_chars(raw: bytes, encoding: str):
    """Split encoded text into per-character byte runs.

    Only the double-byte Japanese code pages are split by lead byte; any other
    encoding is returned as one run.
    """
    if encoding != "cp932":
        return [bytes(raw)] if raw else []
    out = []
    i = 0
    n = len(raw)
    while i < n:
        w = 2 if (is_sjis_lead(raw[i]) and i + 1 < n) else 1
        out.append(bytes(raw[i : i + w]))
        i += w
    return out


def decode_exact(raw: bytes, encoding: str):
    try:
        s = raw.decode(encoding)
    except UnicodeDecodeError:
        return None
    try:
        if s.encode(encoding) != raw:
            return None
    except UnicodeEncodeError:
        return None
    return s


def log_stage(stage, file_path):
    name = os.path.basename(file_path) if file_path else ""
    print(f"{stage}: {name}")


def eprint(msg: str, errors: str = "backslashreplace") -> None:
    try:
        sys.stderr.write(msg + "\n")
        sys.stderr.flush()
    except UnicodeEncodeError:
        sys.stderr.buffer.write((msg + "\n").encode("utf-8", errors=errors))
        sys.stderr.flush()


def read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def write_bytes(path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)


def read_text(path: str, enc: str = "utf-8") -> str:
    with open(path, "r", encoding=enc, newline=None) as f:
        text = f.read()
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


def write_text(path: str, text: str, enc: str = "utf-8") -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding=enc, newline="\r\n") as f:
        f.write(text)


_U16_LE = struct.Struct("<H")
_U32_LE = struct.Struct("<I")
_I32_LE = struct.Struct("<i")


def _read_struct_le(st: struct.Struct, buf, off):
    off_i = int(off)
    if off_i < 0 or off_i + st.size > len(buf):
        raise IsfDecodeError(
            f"buffer too small for {st.size} bytes (len={len(buf)})", off_i
        )
    return st.unpack_from(buf, off_i)[0]


def read_u8(buf, off) -> int:
    if off < 0 or off >= len(buf):
        raise IsfDecodeError(f"buffer too small for 1 byte (len={len(buf)})", off)
    return buf[off]


def read_u16_le(buf, off) -> int:
    return _read_struct_le(_U16_LE, buf, off)


def read_u24_le(buf, off) -> int:
    if off < 0 or off + 3 > len(buf):
        raise IsfDecodeError(f"buffer too small for 3 bytes (len={len(buf)})", off)
    return buf[off] | (buf[off + 1] << 8) | (buf[off + 2] << 16)


def read_u32_le(buf, off) -> int:
    return _read_struct_le(_U32_LE, buf, off)


def read_i32_le(buf, off) -> int:
    return _read_struct_le(_I32_LE, buf, off)


def write_u16_le(out: bytearray, v) -> None:
    out.extend(_U16_LE.pack(int(v) & 0xFFFF))


def write_u24_le(out: bytearray, v) -> None:
    v = int(v) & 0xFFFFFF
    out.extend((v & 0xFF, (v >> 8) & 0xFF, (v >> 16) & 0xFF))


def write_u32_le(out: bytearray, v) -> None:
    out.extend(_U32_LE.pack(int(v) & 0xFFFFFFFF))


def write_i32_le(out: bytearray, v) -> None:
    out.extend(_I32_LE.pack(int(v)))


def write_i32_le_array(out: bytearray, arr) -> None:
    for v in arr or []:
        write_i32_le(out, v)


def hx(x):
    try:
        v = int(x)
    except (TypeError, ValueError):
        return "-"
    if v < 0:
        return "-"
    if v <= 0xFFFFFFFF:
        return f"0x{v:08X}"
    return f"0x{v:X}"


def iter_files_by_ext(root: str, extensions):
    exts = tuple(e.lower() for e in extensions)
    out = []
    for dp, _dns, fns in os.walk(root):
        for fn in fns:
            if fn.lower().endswith(exts):
                out.append(os.path.join(dp, fn))
    out.sort()
    return out
