"""Extraction and cleaning of Access (MDB) databases through the mdb-tools programs."""

from __future__ import annotations

import csv
import io
import shutil
import subprocess
import sys
from collections.abc import Iterable, Iterator
from datetime import datetime
from pathlib import Path

from pipeyard.columns import normalize_column_name
from pipeyard.csvclean import process_csv_file

_USAGE = (
    "Enhanced MDB Processor - Integrating Phase 1 Logic\n"
    "Usage:\n"
    "  mdb-processor analyze <mdb_file> [tenant_code]\n"
    "  mdb-processor process <mdb_file> <tenant_code> <output_dir>\n"
    "  mdb-processor extract <mdb_file> <output_dir>\n"
    "  mdb-processor clean <input_csv_dir> <output_csv_dir>\n"
    "\n"
    "Examples:\n"
    "  mdb-processor analyze longbeach.mdb longbeach\n"
    "  mdb-processor process longbeach.mdb longbeach ./processed"
)


class MDBToolError(Exception):
    """An mdb-tools program could not be run or reported failure."""


def is_system_table(name: str) -> bool:
    """Return True for Access system or temporary tables, and for blank names."""
    return not name or name.startswith("MSys") or name.startswith("~")


def _run_tool(*args: str) -> bytes:
    try:
        completed = subprocess.run(list(args), capture_output=True, check=True)
    except FileNotFoundError as exc:
        raise MDBToolError(f"{args[0]} not found: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
        message = f"{args[0]} failed with exit status {exc.returncode}"
        raise MDBToolError(f"{message}: {detail}" if detail else message) from exc
    return completed.stdout


def _valid_rows(lines: Iterable[str], uniform: bool = False) -> Iterator[list[str]]:
    """Yield non-blank rows that parse; with ``uniform`` drop rows wider or narrower than the first."""
    reader = csv.reader(lines)
    width: int | None = None
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error:
            continue
        if not row:
            continue
        if uniform:
            if width is None:
                width = len(row)
            elif len(row) != width:
                continue
        yield row


class MDBProcessor:
    """Turns one MDB file into cleaned CSV files for a tenant."""

    def __init__(self, mdb_file, tenant_code: str, output_dir) -> None:
        self.mdb_file = str(mdb_file)
        self.tenant_code = tenant_code
        self.output_dir = Path(output_dir)
        self.working_dir = self.output_dir / f"working_{tenant_code}"

    def list_tables(self) -> list[str]:
        """Return every table name reported by ``mdb-tables``."""
        output = _run_tool("mdb-tables", "-1", self.mdb_file)
        return output.decode("utf-8", errors="surrogateescape").split()

    def _export(self, table: str) -> bytes:
        return _run_tool("mdb-export", self.mdb_file, table)

    def _analyze_table(self, table: str) -> None:
        text = self._export(table).decode("utf-8", errors="replace")
        rows = _valid_rows(io.StringIO(text, newline=""))
        headers = next(rows, None)
        if headers is None:
            raise MDBToolError("no header row")
        row_count = sum(1 for _ in rows)
        mapped = sum(1 for h in headers if h.lower() != normalize_column_name(h))

        message = f"  ✅ {table}: {len(headers)} columns, {row_count} rows"
        if mapped:
            message += f" ({mapped} mapped)"
        print(message)

    def analyze(self) -> list[str]:
        """Print a structural summary of each user table; return their names."""
        print(f"🔍 Analyzing MDB file for tenant: {self.tenant_code}")
        print(f"📁 Source: {self.mdb_file}")

        tables = self.list_tables()
        print(f"📋 Found {len(tables)} tables:")

        clean_tables = [name for name in tables if not is_system_table(name)]
        for table in clean_tables:
            try:
                self._analyze_table(table)
            except MDBToolError as exc:
                print(f"  ❌ {table}: Error - {exc}")

        print()
        print("📊 Analysis Summary:")
        print(f"  Tables to process: {len(clean_tables)}")
        print(f"  Tenant: {self.tenant_code}")
        print("  Ready for extraction: ✅")
        return clean_tables

    def process_complete(self) -> Path:
        """Extract, clean and report; return the directory holding the final files."""
        print(f"🚀 Starting complete MDB processing pipeline for tenant: {self.tenant_code}")
        self.working_dir.mkdir(parents=True, exist_ok=True)

        raw_dir = self.working_dir / "raw_csv"
        clean_dir = self.working_dir / "clean_csv"

        print("📤 Step 1: Extracting MDB to CSV...")
        try:
            self.extract_to_csv(raw_dir)
        except MDBToolError as exc:
            raise MDBToolError(f"extraction failed: {exc}") from exc

        print("🧹 Step 2: Cleaning and normalizing CSV...")
        self.clean_csv_files(raw_dir, clean_dir)

        print("📊 Step 3: Generating processing report...")
        self.generate_report(clean_dir)

        final_dir = self.output_dir / f"tenant_{self.tenant_code}_processed"
        final_dir.mkdir(parents=True, exist_ok=True)
        shutil.copytree(clean_dir, final_dir, dirs_exist_ok=True)

        print(f"✅ Processing complete! Files ready at: {final_dir}")
        return final_dir

    def extract_to_csv(self, output_dir) -> int:
        """Export each user table to ``<table>.csv`` (lower-cased); return how many were written."""
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        processed = 0
        for table in self.list_tables():
            if is_system_table(table):
                continue
            output_file = out_dir / f"{table.lower()}.csv"
            try:
                data = self._export(table)
            except MDBToolError as exc:
                print(f"  ❌ Failed to export {table}: {exc}")
                continue
            try:
                output_file.write_bytes(data)
            except OSError as exc:
                print(f"  ❌ Failed to write {output_file}: {exc}")
                continue
            lines = data.count(b"\n")
            print(f"  ✅ {table} → {output_file.name} ({lines - 1} rows)")
            processed += 1

        print(f"📤 Extraction complete: {processed} tables processed")
        return processed

    def clean_csv_files(self, input_dir, output_dir) -> int:
        """Normalise every ``.csv`` of ``input_dir`` into ``output_dir``; return the count cleaned."""
        src_dir = Path(input_dir)
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        entries = sorted(src_dir.iterdir(), key=lambda p: p.name)
        processed = 0
        for entry in entries:
            if not entry.is_file() or not entry.name.lower().endswith(".csv"):
                continue
            try:
                process_csv_file(entry, out_dir / entry.name, "  ")
            except (OSError, ValueError) as exc:
                print(f"  ❌ Error processing {entry.name}: {exc}")
            else:
                processed += 1

        print(f"🧹 Cleaning complete: {processed} files processed")
        return processed

    def generate_report(self, clean_csv_dir) -> Path:
        """Write ``processing_report_<tenant>.md`` into the output directory and return its path."""
        clean_dir = Path(clean_csv_dir)
        report_file = self.output_dir / f"processing_report_{self.tenant_code}.md"

        parts = [
            f"# MDB Processing Report - Tenant: {self.tenant_code}\n\n"
            f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"Source: {self.mdb_file}\n"
            f"Output: {clean_csv_dir}\n\n"
            "## Processing Summary\n\n"
        ]

        total_rows = 0
        for entry in sorted(clean_dir.iterdir(), key=lambda p: p.name):
            if not entry.name.endswith(".csv"):
                continue
            try:
                with entry.open(newline="", encoding="utf-8", errors="replace") as fh:
                    row_count = sum(1 for _ in _valid_rows(fh, uniform=True))
            except OSError:
                continue
            parts.append(f"- **{entry.name}**: {row_count - 1} rows\n")
            total_rows += row_count - 1

        parts.append(
            f"\n## Total Records: {total_rows}\n\n"
            "## Ready for Import\n"
            "Files are cleaned and normalized, ready for PostgreSQL import.\n\n"
            "Use command:\n"
            "```bash\n"
            f"make data-import TENANT={self.tenant_code} CSV_DIR={clean_csv_dir}\n"
            "```\n"
        )

        report_file.parent.mkdir(parents=True, exist_ok=True)
        report_file.write_text("".join(parts), encoding="utf-8")
        return report_file


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv=None) -> int:
    """Run the MDB processor command line; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(_USAGE)
        return 1

    command, rest = args[0], args[1:]
    try:
        if command == "analyze":
            if not rest:
                return _fail("Usage: mdb-processor analyze <mdb_file> [tenant_code]")
            tenant_code = rest[1] if len(rest) > 1 else "default"
            MDBProcessor(rest[0], tenant_code, "").analyze()
        elif command == "process":
            if len(rest) != 3:
                return _fail("Usage: mdb-processor process <mdb_file> <tenant_code> <output_dir>")
            MDBProcessor(rest[0], rest[1], rest[2]).process_complete()
        elif command == "extract":
            if len(rest) != 2:
                return _fail("Usage: mdb-processor extract <mdb_file> <output_dir>")
            MDBProcessor(rest[0], "default", rest[1]).extract_to_csv(rest[1])
        elif command == "clean":
            if len(rest) != 2:
                return _fail("Usage: mdb-processor clean <input_csv_dir> <output_csv_dir>")
            MDBProcessor("", "default", "").clean_csv_files(rest[0], rest[1])
        else:
            return _fail(f"Unknown command: {command}")
    except (MDBToolError, OSError) as exc:
        return _fail(str(exc))
    return 0


if __name__ == "__main__":
    sys.exit(main())