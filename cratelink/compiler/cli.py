"""CLI entry point and argument parsing."""
from __future__ import annotations

import argparse
import sys

from cratelink.internals.version import print_banner


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="cratelink",
        description="Compute a crate's link identity and link its object file",
    )

    ap.add_argument("object", nargs='?', help="Path to the compiled object file")
    ap.add_argument("--version", action="store_true", help="Show version and exit")
    ap.add_argument("-o", "--out", metavar="OUT",
                    help="Output path (default: object filename without extension). "
                         "With --lib only its directory is used.")
    ap.add_argument("--lib", action="store_true",
                    help="Link a shared library named after the crate's link identity")
    ap.add_argument("--attrs", metavar="FILE", action="append", default=[],
                    help="File of crate attribute declarations, e.g. #[link(name = \"foo\")]")
    ap.add_argument("--attr", metavar="TEXT", action="append", default=[],
                    help="Inline crate attribute declaration")
    ap.add_argument("--dep", metavar="PATH", action="append", default=[],
                    help="Crate dependency (static archive or shared library)")
    ap.add_argument("-l", dest="libs", metavar="NAME", action="append", default=[],
                    help="Link an extra native library")
    ap.add_argument("-L", dest="lib_dirs", metavar="DIR", action="append", default=[],
                    help="Add a native library search path")
    ap.add_argument("--link-arg", dest="link_args", metavar="ARG", action="append", default=[],
                    help="Raw linker argument (use --link-arg=-flag for dashed values)")
    ap.add_argument("--target", metavar="TRIPLE",
                    help="Target triple (default: the host triple reported by LLVM)")
    ap.add_argument("--cc", metavar="PROG", help="Linker driver to invoke instead of the platform default")
    ap.add_argument("--sysroot", metavar="DIR",
                    help="Sysroot holding lib/cratelink/<triple>/lib (default: $CRATELINK_SYSROOT)")
    ap.add_argument(
        "--save-temps",
        action="store_true",
        help="Keep the object file after a successful link",
    )
    ap.add_argument(
        "--print-file-name",
        action="store_true",
        help="Print the output artifact path and exit without linking",
    )
    ap.add_argument("--mangle", metavar="PATH",
                    help="Print the symbol name for a '::'-separated item path and exit")
    ap.add_argument("--type", metavar="ENC", help="Type encoding used with --mangle")
    ap.add_argument("--internal", action="store_true",
                    help="With --mangle, produce an internal (unversioned) name")
    ap.add_argument("--verbose", action="store_true", help="Print link identity and linker command")
    return ap


def main(argv: list[str] | None = None) -> int:
    """Main linker entry point."""
    print_banner()

    ap = build_arg_parser()
    args = ap.parse_args(argv)

    if args.version:
        return 0

    if not args.object:
        print("error: object file required (unless using --version)", file=sys.stderr)
        return 2

    if args.mangle and not args.type:
        print("error: --mangle requires --type", file=sys.stderr)
        return 2

    from cratelink.compiler.loader import resolve_input_path
    from cratelink.compiler.pipeline import link_unit
    from cratelink.internals.report import Reporter

    obj_path = resolve_input_path(args.object).resolve()
    reporter = Reporter(filename=str(obj_path))

    result = link_unit(obj_path, reporter, args)
    reporter.print()
    return result


if __name__ == "__main__":
    raise SystemExit(main())
