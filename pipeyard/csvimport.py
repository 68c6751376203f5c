"""Import of cleaned CSV files into a tenant's database."""

from __future__ import annotations

import sys
from pathlib import Path


def tenant_database_name(tenant: str) -> str:
    """Return the database name that holds a tenant's data."""
    return f"oilgas_{tenant}"


def import_csv_directory(tenant: str, csv_dir) -> list[Path]:
    """Announce and collect the ``*.csv`` files of ``csv_dir`` for a tenant, in name order."""
    print(f"📥 Importing CSV data for tenant: {tenant}")
    files = sorted(Path(csv_dir).glob("*.csv"), key=lambda p: p.name)
    for path in files:
        print(f"Importing {path.name}...")
    print(f"✅ Import complete for tenant: {tenant}")
    return files


def main(argv=None) -> int:
    """Run the CSV importer command line; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 2:
        print("Usage: csv-importer <tenant> <csv_directory>")
        print("Example: csv-importer longbeach ./csv/longbeach/")
        return 1
    tenant, csv_dir = args
    import_csv_directory(tenant, csv_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())