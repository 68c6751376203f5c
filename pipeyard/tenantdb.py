"""Per-tenant database connections, cached by tenant id."""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from typing import Any


class TenantConnectionError(Exception):
    """A tenant database connection could not be established."""


def build_tenant_connection_string(base_url: str, tenant_id: str) -> str:
    """Point ``base_url`` at the tenant's database ``oilgas_<tenant_id>``.

    The last path segment is replaced when the URL has one; otherwise the
    tenant database name is appended with an underscore.
    """
    parts = base_url.split("/")
    if len(parts) >= 4:
        parts[-1] = f"oilgas_{tenant_id}"
        return "/".join(parts)
    return f"{base_url}_oilgas_{tenant_id}"


def strict_tenant_connection_string(base_url: str, tenant_id: str) -> str:
    """Like :func:`build_tenant_connection_string` but reject URLs without a database path."""
    parts = base_url.split("/")
    if len(parts) < 4:
        raise TenantConnectionError("invalid DATABASE_URL format")
    parts[-1] = f"oilgas_{tenant_id}"
    return "/".join(parts)


class TenantConnectionPool:
    """Thread-safe cache of one connection per tenant.

    ``connect`` receives the tenant connection URL and returns a connection
    object with a ``close()`` method. When ``database_url`` is not given the
    ``DATABASE_URL`` environment variable is read on each new connection.
    """

    def __init__(
        self,
        connect: Callable[[str], Any],
        database_url: str | None = None,
        strict: bool = False,
    ) -> None:
        self._connect = connect
        self._database_url = database_url
        self._strict = strict
        self._connections: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _tenant_url(self, tenant_id: str) -> str:
        base_url = self._database_url
        if base_url is None:
            base_url = os.environ.get("DATABASE_URL", "")
        if not base_url:
            raise TenantConnectionError("DATABASE_URL environment variable not set")
        if self._strict:
            return strict_tenant_connection_string(base_url, tenant_id)
        return build_tenant_connection_string(base_url, tenant_id)

    def get(self, tenant_id: str) -> Any:
        """Return the tenant's connection, opening it on first use."""
        with self._lock:
            existing = self._connections.get(tenant_id)
            if existing is not None:
                return existing
            url = self._tenant_url(tenant_id)
            try:
                connection = self._connect(url)
            except Exception as exc:
                raise TenantConnectionError(
                    f"failed to open connection to tenant database: {exc}"
                ) from exc
            self._connections[tenant_id] = connection
            return connection

    def close_all(self) -> None:
        """Close and forget every cached connection."""
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            if connection is not None:
                connection.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, tenant_id: object) -> bool:
        with self._lock:
            return tenant_id in self._connections

    def __enter__(self) -> TenantConnectionPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close_all()