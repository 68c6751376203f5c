"""Tenant-aware CSV preparation: tagged rows, an SQL import script and a validation report."""

from __future__ import annotations

import csv
import re
import shutil
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime
from pathlib import Path

from pipeyard.columns import normalize_column_name
from pipeyard.csvclean import process_directory

_TENANT_TABLES = frozenset({"customers", "inventory", "received"})
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_TENANT_ID = re.compile(r"[a-z0-9_]{2,20}")

_TABLE_MAPPING: dict[str, str] = {
    "customers": "customers",
    "customer": "customers",
    "custid": "customers",
    "inventory": "inventory",
    "received": "received",
    "recv": "received",
    "workorder": "inventory",
    "workorders": "inventory",
    "grades": "grade",
    "grade": "grade",
    "sizes": "sizes",
    "size": "sizes",
}


def _now() -> str:
    return datetime.now().strftime(_TIMESTAMP_FORMAT)


def _rows(lines: Iterable[str]) -> Iterator[list[str]]:
    """Yield parsed, non-blank rows as wide as the first one; skip the rest."""
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
        if width is None:
            width = len(row)
        elif len(row) != width:
            continue
        yield row


def count_csv_rows(csv_file) -> int:
    """Count the data rows of a CSV file, not counting the header or malformed rows.

    Raises ``ValueError`` when the file has no header row.
    """
    with Path(csv_file).open(newline="", encoding="utf-8", errors="replace") as fh:
        rows = _rows(fh)
        if next(rows, None) is None:
            raise ValueError(f"no header row in {csv_file}")
        return sum(1 for _ in rows)


def map_csv_to_table(csv_name: str) -> str:
    """Return the database table a CSV file name loads into; unknown names map to themselves."""
    return _TABLE_MAPPING.get(csv_name.lower(), csv_name)


def is_valid_tenant_id(tenant_id: str) -> bool:
    """Tenant ids are 2 to 20 characters of lower-case letters, digits and underscores."""
    return _TENANT_ID.fullmatch(tenant_id) is not None


class TenantProcessor:
    """Prepares one tenant's exported tables for import into its own database."""

    def __init__(self, tenant_id: str, mdb_file, output_dir) -> None:
        self.tenant_id = tenant_id
        self.mdb_file = Path(mdb_file)
        self.output_dir = Path(output_dir)
        self.csv_files: dict[str, Path] = {}

    @property
    def tenant_dir(self) -> Path:
        return self.output_dir / self.tenant_id

    def process_mdb_for_tenant(self) -> Path:
        """Clean the source tables, tag them for the tenant and write the import files.

        Returns the tenant's output directory.
        """
        print(f"🔄 Processing MDB for tenant: {self.tenant_id}")
        tenant_dir = self.tenant_dir
        tenant_dir.mkdir(parents=True, exist_ok=True)
        temp_dir = tenant_dir / "temp"
        temp_dir.mkdir(parents=True, exist_ok=True)

        try:
            try:
                process_directory(self.mdb_file, temp_dir)
            except OSError as exc:
                raise OSError(f"failed to process MDB file: {exc}") from exc

            for entry in sorted(temp_dir.iterdir(), key=lambda p: p.name):
                lowered = entry.name.lower()
                if not lowered.endswith(".csv"):
                    continue
                table_name = lowered[: -len(".csv")]
                output_file = tenant_dir / entry.name
                try:
                    self.process_tenant_csv(entry, output_file, table_name)
                except (OSError, ValueError) as exc:
                    print(f"⚠️  Error processing {entry.name}: {exc}")
                    continue
                self.csv_files[table_name] = output_file
                print(f"✅ {entry.name}: tenant-ready")

            self.generate_import_script()
            self.generate_validation_report()
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        print(f"✅ Tenant {self.tenant_id} processing complete")
        return tenant_dir

    def process_tenant_csv(self, input_file, output_file, table_name: str) -> int:
        """Normalise headers and add tenant columns where the table needs them.

        Rows are padded or cut to the header width; malformed rows are dropped.
        Returns the number of data rows written.
        """
        tagged = table_name in _TENANT_TABLES
        with Path(input_file).open(newline="", encoding="utf-8", errors="surrogateescape") as fin:
            rows = _rows(fin)
            headers = next(rows, None)
            if headers is None:
                raise ValueError("failed to read headers: no data")

            normalized = [normalize_column_name(header) for header in headers]
            if tagged:
                normalized += ["tenant_id", "imported_at"]
            width = len(normalized)

            with Path(output_file).open(
                "w", newline="", encoding="utf-8", errors="surrogateescape"
            ) as fout:
                writer = csv.writer(fout, lineterminator="\n")
                writer.writerow(normalized)
                count = 0
                for record in rows:
                    if tagged:
                        record = record + [self.tenant_id, _now()]
                    writer.writerow((record + [""] * width)[:width])
                    count += 1
        return count

    def generate_import_script(self) -> Path:
        """Write ``import_script.sql`` into the tenant directory and return its path."""
        tenant = self.tenant_id
        script_path = self.tenant_dir / "import_script.sql"

        parts = [
            f"-- Import script for tenant: {tenant}\n"
            f"-- Generated: {_now()}\n"
            f"-- Database: oilgas_{tenant}\n\n"
            f"\\\\c oilgas_{tenant};\n"
            "SET search_path TO store, public;\n\n"
            "-- Disable triggers for faster import\n"
            "ALTER TABLE store.customers DISABLE TRIGGER ALL;\n"
            "ALTER TABLE store.inventory DISABLE TRIGGER ALL;\n"
            "ALTER TABLE store.received DISABLE TRIGGER ALL;\n\n"
        ]

        for table_name, csv_file in self.csv_files.items():
            db_table = map_csv_to_table(table_name)
            if not db_table:
                continue
            parts.append(
                f"\n-- Import {table_name}\n"
                f"\\\\COPY store.{db_table} FROM '{csv_file}' WITH CSV HEADER DELIMITER ',';\n\n"
            )

        parts.append(
            "\n-- Re-enable triggers\n"
            "ALTER TABLE store.customers ENABLE TRIGGER ALL;\n"
            "ALTER TABLE store.inventory ENABLE TRIGGER ALL;\n"
            "ALTER TABLE store.received ENABLE TRIGGER ALL;\n\n"
            "-- Update sequences\n"
            "SELECT setval('store.customers_customer_id_seq', "
            "COALESCE((SELECT MAX(customer_id) FROM store.customers), 1));\n"
            "SELECT setval('store.inventory_id_seq', "
            "COALESCE((SELECT MAX(id) FROM store.inventory), 1));\n"
            "SELECT setval('store.received_id_seq', "
            "COALESCE((SELECT MAX(id) FROM store.received), 1));\n\n"
            "-- Validation queries\n"
            "SELECT 'customers' as table_name, COUNT(*) as imported_rows "
            f"FROM store.customers WHERE tenant_id = '{tenant}';\n"
            "SELECT 'inventory' as table_name, COUNT(*) as imported_rows "
            f"FROM store.inventory WHERE tenant_id = '{tenant}';\n"
            "SELECT 'received' as table_name, COUNT(*) as imported_rows "
            f"FROM store.received WHERE tenant_id = '{tenant}';\n"
        )

        script_path.parent.mkdir(parents=True, exist_ok=True)
        script_path.write_text("".join(parts), encoding="utf-8")
        return script_path

    def generate_validation_report(self) -> Path:
        """Write ``validation_report.md`` into the tenant directory and return its path."""
        tenant = self.tenant_id
        report_path = self.tenant_dir / "validation_report.md"

        parts = [
            "# Tenant Data Validation Report\n\n"
            f"**Tenant ID**: {tenant}  \n"
            f"**Source MDB**: {self.mdb_file.name}  \n"
            f"**Processed**: {_now()}  \n\n"
            "## Files Generated\n\n"
        ]

        for table_name, csv_file in self.csv_files.items():
            try:
                row_count = count_csv_rows(csv_file)
            except (OSError, ValueError):
                row_count = -1
            parts.append(
                f"### {table_name}.csv\n"
                f"- **Rows**: {row_count}\n"
                f"- **Path**: {csv_file}\n"
                f"- **Database Table**: store.{map_csv_to_table(table_name)}\n\n"
            )

        script = Path(tenant) / "import_script.sql"
        parts.append(
            "## Import Instructions\n\n"
            "1. Create tenant database:\n"
            "   ```bash\n"
            f"   cd backend && go run migrator.go tenant-create {tenant}\n"
            "   ```\n\n"
            "2. Import data:\n"
            "   ```bash\n"
            f"   psql oilgas_{tenant} -f {script}\n"
            "   ```\n\n"
            "3. Validate import:\n"
            "   ```bash\n"
            f"   cd backend && go run migrator.go tenant-status {tenant}\n"
            "   ```\n\n"
            "## Next Steps\n\n"
            "- [ ] Verify tenant database creation\n"
            "- [ ] Run import script  \n"
            "- [ ] Test API endpoints with tenant header\n"
            "- [ ] Validate data quality and completeness\n\n"
        )

        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text("".join(parts), encoding="utf-8")
        return report_path


def handle_tenant_command(args: Sequence[str]) -> Path:
    """Handle ``data-tools process-tenant <mdb_file> <tenant_id> <output_dir>``.

    ``args`` is the full argument vector, program name and command included.
    """
    if len(args) != 5:
        raise ValueError("usage: data-tools process-tenant <mdb_file> <tenant_id> <output_dir>")

    mdb_file, tenant_id, output_dir = args[2], args[3], args[4]

    if not Path(mdb_file).exists():
        raise FileNotFoundError(f"MDB file not found: {mdb_file}")

    if not is_valid_tenant_id(tenant_id):
        raise ValueError(
            f"invalid tenant ID: {tenant_id} (use lowercase letters, numbers, underscores only)"
        )

    return TenantProcessor(tenant_id, mdb_file, output_dir).process_mdb_for_tenant()