"""Cleaning and analysis of CSV exports: header normalisation and row shaping."""

from __future__ import annotations

import csv
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TextIO

from pipeyard.columns import normalize_column_name, normalize_headers

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


@dataclass(frozen=True)
class CleanResult:
    """Outcome of cleaning one CSV file."""

    output_file: Path
    rows: int = 0
    columns: int = 0
    mapped: int = 0
    skipped: str | None = None


@dataclass(frozen=True)
class DirectorySummary:
    """Counts from cleaning a directory of CSV files."""

    processed: int
    skipped: int
    output_dir: Path


def _records(reader: Iterator[list[str]]) -> Iterator[list[str] | csv.Error]:
    """Yield non-blank records, or the parse error raised for a bad line."""
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            yield exc
            continue
        if row:
            yield row


def _is_csv(path: Path) -> bool:
    return path.is_file() and path.name.lower().endswith(".csv")


def process_csv_file(input_file, output_file, indent: str = "") -> CleanResult:
    """Clean one CSV file, writing normalised headers and fixed-width rows.

    Empty inputs are skipped. ``indent`` prefixes every progress message.
    """
    src = Path(input_file)
    dst = Path(output_file)

    if src.stat().st_size == 0:
        print(f"{indent}⚠️  Skipping empty file: {src.name}")
        return CleanResult(dst, skipped="empty file")

    with src.open(newline="", encoding=_ENCODING, errors=_ERRORS) as fin, dst.open(
        "w", newline="", encoding=_ENCODING, errors=_ERRORS
    ) as fout:
        records = _records(csv.reader(fin, skipinitialspace=True))
        writer = csv.writer(fout, lineterminator="\n")

        headers = next(records, None)
        if headers is None:
            print(f"{indent}⚠️  Skipping file with no data (EOF): {src.name}")
            return CleanResult(dst, skipped="no data")
        if isinstance(headers, csv.Error):
            raise ValueError(f"failed to read headers from {src}: {headers}")
        if not headers:
            print(f"{indent}⚠️  Skipping file with no columns: {src.name}")
            return CleanResult(dst, skipped="no columns")

        normalized, mapped = normalize_headers(headers)
        width = len(normalized)
        writer.writerow(normalized)

        rows = 0
        for record in records:
            if isinstance(record, csv.Error):
                print(f"{indent}⚠️  Parse error in {src.name} at row {rows + 2}: {record}")
                continue
            shaped = (record + [""] * width)[:width]
            writer.writerow(shaped)
            rows += 1

    message = f"{indent}✅ {dst.name}: {rows} rows, {len(headers)} columns"
    if mapped:
        message += f" ({mapped} columns mapped)"
    print(message)
    return CleanResult(dst, rows=rows, columns=len(headers), mapped=mapped)


def process_directory(input_dir, output_dir) -> DirectorySummary:
    """Clean every ``.csv`` file of a directory into ``output_dir`` (lower-cased names)."""
    src_dir = Path(input_dir)
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    entries = sorted(src_dir.iterdir(), key=lambda p: p.name)

    print(f"🔄 Processing: {input_dir} -> {output_dir}")
    print("-" * 50)

    processed = 0
    skipped = 0
    for entry in filter(_is_csv, entries):
        try:
            process_csv_file(entry, out_dir / entry.name.lower(), "")
        except (OSError, ValueError) as exc:
            print(f"❌ Error processing {entry.name}: {exc}")
            skipped += 1
        else:
            processed += 1

    print("=" * 50)
    print("📊 Processing Summary:")
    print(f"  ✅ Files processed: {processed}")
    print(f"  ⚠️  Files skipped: {skipped}")
    print(f"  📁 Output directory: {output_dir}")

    return DirectorySummary(processed, skipped, out_dir)


def analyze_columns(input_dir, out: TextIO | None = None) -> tuple[int, int]:
    """Write a Markdown report of header mappings for each CSV in ``input_dir``.

    Returns the number of CSV files found and the number analysed.
    """
    stream = sys.stdout if out is None else out
    src_dir = Path(input_dir)
    entries = sorted(src_dir.iterdir(), key=lambda p: p.name)

    def emit(text: str = "") -> None:
        stream.write(text + "\n")

    emit("# MDB Column Analysis Report")
    emit(f"# Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    emit(f"# Source directory: {input_dir}")
    emit("# Purpose: Phase 1 migration analysis for Phase 2 development setup")
    emit()

    total = 0
    analysed = 0
    for entry in filter(_is_csv, entries):
        total += 1
        try:
            size = entry.stat().st_size
        except OSError:
            size = 0
        if size == 0:
            emit(f"## {entry.name}\n❌ Empty or inaccessible file\n")
            continue

        try:
            with entry.open(newline="", encoding=_ENCODING, errors=_ERRORS) as fh:
                headers = next(_records(csv.reader(fh)), None)
        except OSError as exc:
            emit(f"## {entry.name}\n❌ Cannot open file: {exc}\n")
            continue

        if headers is None:
            emit(f"## {entry.name}\n⚠️  No data (EOF)\n")
            continue
        if isinstance(headers, csv.Error):
            emit(f"## {entry.name}\n❌ Read error: {headers}\n")
            continue

        analysed += 1
        emit(f"## {entry.name}")
        emit(f"📊 Columns: {len(headers)}")
        emit("### Column Mappings (Original -> Normalized):")
        for position, header in enumerate(headers, start=1):
            if not header.strip():
                emit(f"{position:2d}. (empty) -> column_{position}")
                continue
            normalized = normalize_column_name(header)
            if header.lower() != normalized:
                emit(f"{position:2d}. {header} -> {normalized}")
            else:
                emit(f"{position:2d}. {header}")
        emit()

    emit("## Analysis Summary")
    emit(f"- Total CSV files: {total}")
    emit(f"- Successfully analyzed: {analysed}")
    emit("- Ready for Phase 2: ✅")
    return total, analysed