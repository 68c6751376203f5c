"""Command line for cleaning and analysing CSV exports."""

from __future__ import annotations

import sys

from pipeyard.csvclean import analyze_columns, process_directory

_USAGE = (
    "Phase 1 MDB Data Processing Tools\n"
    "Usage:\n"
    "  data-tools normalize-dir <input_dir> <output_dir>\n"
    "  data-tools analyze <input_dir>"
)


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv=None) -> int:
    """Run the data tools; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(_USAGE)
        return 1

    command, rest = args[0], args[1:]

    if command == "normalize-dir":
        if len(rest) != 2:
            return _fail("Usage: data-tools normalize-dir <input_dir> <output_dir>")
        try:
            process_directory(rest[0], rest[1])
        except OSError as exc:
            return _fail(f"Failed to process directory: {exc}")
        print("✅ Phase 1 normalization complete - ready for Phase 2")
        return 0

    if command == "analyze":
        if len(rest) != 1:
            return _fail("Usage: data-tools analyze <input_dir>")
        try:
            analyze_columns(rest[0])
        except OSError as exc:
            return _fail(f"Failed to analyze columns: {exc}")
        return 0

    return _fail(f"Unknown command: {command}")


if __name__ == "__main__":
    sys.exit(main())