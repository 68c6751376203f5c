"""Request authentication and tenant database selection."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from pipeyard.auth.models import Tenant


class AuthError(Exception):
    """A request was refused; ``status`` is the HTTP status to answer with."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


@dataclass(frozen=True)
class TenantContext:
    """The tenant a request acts for, with its database connection."""

    tenant: Tenant
    tenant_db: Any


class _TenantLookup(Protocol):
    def get_tenant_by_code(self, code: str) -> Tenant: ...


class _DatabaseManager(Protocol):
    def get_connection(self, database_name: str) -> Any: ...


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def extract_session_id(cookies: Mapping[str, str], headers: Mapping[str, str]) -> str:
    """Return the session id from the ``session_id`` cookie or a Bearer Authorization header."""
    cookie = cookies.get("session_id")
    if cookie:
        return cookie
    authorization = _header(headers, "Authorization")
    prefix = "Bearer "
    if authorization.startswith(prefix):
        return authorization[len(prefix):]
    return ""


class TenantMiddleware:
    """Checks the session and tenant headers and opens the tenant's database."""

    def __init__(self, auth_repo: _TenantLookup, db_manager: _DatabaseManager) -> None:
        self.auth_repo = auth_repo
        self.db_manager = db_manager

    def require_auth(self, headers: Mapping[str, str]) -> TenantContext:
        """Authorise a request from its headers; raise :class:`AuthError` when refused."""
        if not _header(headers, "X-Session-ID"):
            raise AuthError(401, "session required")

        tenant_code = _header(headers, "X-Tenant")
        if not tenant_code:
            raise AuthError(400, "tenant required")

        try:
            tenant = self.auth_repo.get_tenant_by_code(tenant_code)
        except Exception as exc:
            raise AuthError(400, "invalid tenant") from exc

        try:
            tenant_db = self.db_manager.get_connection(tenant.database_name)
        except Exception as exc:
            raise AuthError(500, "database connection failed") from exc

        return TenantContext(tenant, tenant_db)