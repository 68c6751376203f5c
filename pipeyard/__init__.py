"""Tenant-aware data tooling for pipe yard inventory: CSV cleaning, MDB extraction, tenant routing and events."""

__version__ = "1.0.0"