import os
import sys


def _prog():
    p = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "isf-ssu"
    return p or "isf-ssu"


def _get_version() -> str:
    from importlib.metadata import PackageNotFoundError, version as _pkg_version

    try:
        return _pkg_version("isf-ssu")
    except PackageNotFoundError:
        from . import __version__ as _v

        return str(_v)


def _print_version(out=None) -> None:
    if out is None:
        out = sys.stdout
    out.write(f"{_prog()} {_get_version()}\n")


def _usage(out=None):
    if out is None:
        out = sys.stderr
    p = _prog()
    out.write(f"{p} {_get_version()}\n")
    out.write(f"usage: {p} [-h] [-V|--version] (-d|-a) [args]\n")
    out.write("\n")
    out.write("Options:\n")
    out.write("  -V, --version        Show version and exit\n")
    out.write("\n")
    out.write("Modes:\n")
    out.write("  -d, --disassemble    Convert .isf scripts to text\n")
    out.write("  -a, --assemble       Convert text back to .isf scripts\n")
    out.write("\n")
    out.write("Disassemble mode:\n")
    out.write(
        f"  {p} -d [--charset ENC] [--parallel] [--max-workers N] <input.isf|input_dir> <output.txt|output_dir>\n"
    )
    out.write("\n")
    out.write("Assemble mode:\n")
    out.write(
        f"  {p} -a [--charset ENC] [--parallel] [--max-workers N] <input.txt|input_dir> <output.isf|output_dir>\n"
    )
    out.write("    --charset ENC  Encoding of the text files (default: utf-8)\n")
    out.write("    --parallel     Convert files on a thread pool\n")
    out.write("    --max-workers  Limit parallel workers (default: auto)\n")
    out.write("\n")
    out.write("Environment:\n")
    out.write("  ISF_SSU_TEXT_ENCODING  Default for --charset\n")
    out.write("  ISF_SSU_VERSION        Version (hex) for text without a version line\n")


def _usage_short(out=None):
    if out is None:
        out = sys.stderr
    p = _prog()
    out.write(f"{p} {_get_version()}\n")
    out.write(f"usage: {p} [-h] [-V|--version] (-d|-a) [args]\n")
    out.write(f"Try '{p} --help' for more information.\n")


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    if argv and argv[0] in ("-V", "--version", "version"):
        _print_version()
        return 0
    if not argv:
        _usage_short()
        return 0
    if argv[0] in ("-h", "--help", "help"):
        _usage()
        return 0
    mode = argv[0]

    if mode in ("-d", "--disassemble", "-a", "--assemble"):
        from . import convert

        rc = convert.main(argv[1:], mode="-d" if mode in ("-d", "--disassemble") else "-a")
        if rc == 2:
            _usage_short()
        return rc

    sys.stderr.write(f"{_prog()}: unknown mode: {mode}\n")
    _usage_short()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
