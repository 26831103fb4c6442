"""File-level disassembly and assembly.

  -d  .isf -> text listing (one file, or every .isf under a directory)
  -a  text listing -> .isf
"""

import os
import sys

from .common import (
    ISF_EXTENSION,
    TEXT_EXTENSION,
    eprint,
    iter_files_by_ext,
    log_stage,
    norm_charset,
    read_bytes,
    read_text,
    text_file_encoding,
    write_bytes,
    write_text,
)
from .model import decompile, compile as compile_text
from .parallel import parallel_convert


def disassemble_file(src: str, dst: str, enc: str = "utf-8") -> None:
    asm = decompile(read_bytes(src))
    write_text(dst, asm.to_text(), enc=enc)


def assemble_file(src: str, dst: str, enc: str = "utf-8") -> None:
    asm = compile_text(read_text(src, enc=enc))
    write_bytes(dst, asm.to_bytes())


def plan_jobs(inp: str, out: str, src_ext: str, dst_ext: str):
    """Pair every input with its output path, mirroring directory layout."""
    if os.path.isfile(inp):
        if os.path.isdir(out):
            name = os.path.splitext(os.path.basename(inp))[0] + dst_ext
            return [(inp, os.path.join(out, name))]
        return [(inp, out)]
    jobs = []
    for src in iter_files_by_ext(inp, [src_ext]):
        rel = os.path.relpath(src, inp)
        jobs.append((src, os.path.join(out, os.path.splitext(rel)[0] + dst_ext)))
    return jobs


def _hint_help(out=None):
    if out is None:
        out = sys.stderr
    out.write("usage:\n")
    out.write(
        "  -d [--charset ENC] [--parallel] [--max-workers N] <input.isf|input_dir> <output.txt|output_dir>\n"
    )
    out.write(
        "  -a [--charset ENC] [--parallel] [--max-workers N] <input.txt|input_dir> <output.isf|output_dir>\n"
    )


def _take_value(argv, flag):
    """Remove '<flag> <value>' from argv; return (argv, value or None, ok)."""
    if flag not in argv:
        return argv, None, True
    i = argv.index(flag)
    if i + 1 >= len(argv):
        eprint(f"error: {flag} expects a value")
        return argv, None, False
    v = argv[i + 1]
    return argv[:i] + argv[i + 2 :], v, True


def main(argv=None, mode: str = "-d") -> int:
    if argv is None:
        argv = sys.argv[1:]
    if not argv or argv[0] in ("-h", "--help", "help"):
        _hint_help()
        return 0

    parallel = "--parallel" in argv
    argv = [a for a in argv if a != "--parallel"]
    argv, workers, ok = _take_value(argv, "--max-workers")
    if not ok:
        return 2
    argv, charset, ok = _take_value(argv, "--charset")
    if not ok:
        return 2
    max_workers = None
    if workers is not None:
        try:
            max_workers = int(workers)
        except ValueError:
            eprint(f"error: --max-workers expects a number: {workers}")
            return 2
    enc = text_file_encoding()
    if charset is not None:
        enc = norm_charset(charset)
        if not enc:
            eprint(f"error: unknown charset: {charset}")
            return 2

    if len(argv) != 2:
        eprint("error: expected <input> <output>")
        _hint_help()
        return 2
    inp, out = argv

    if mode == "-d":
        src_ext, dst_ext, stage = ISF_EXTENSION, TEXT_EXTENSION, "DISASSEMBLE"

        def fn(s, d):
            disassemble_file(s, d, enc)

    else:
        src_ext, dst_ext, stage = TEXT_EXTENSION, ISF_EXTENSION, "ASSEMBLE"

        def fn(s, d):
            assemble_file(s, d, enc)

    if not os.path.exists(inp):
        eprint(f"input not found: {inp}")
        return 1
    jobs = plan_jobs(inp, out, src_ext, dst_ext)
    if not jobs:
        eprint(f"no {src_ext} files under: {inp}")
        return 1

    if parallel and len(jobs) > 1:
        errors = parallel_convert(fn, jobs, max_workers)
    else:
        errors = []
        for src, dst in jobs:
            log_stage(stage, src)
            try:
                fn(src, dst)
            except (OSError, ValueError) as e:
                errors.append((os.path.basename(src), str(e)))

    for fname, err in errors:
        eprint(f"ERROR in {fname}: {err}")
    return 1 if errors else 0
