"""Queries against the authentication database."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime
from typing import Any

from pipeyard.auth.models import Tenant, User


class NotFoundError(LookupError):
    """The requested record does not exist or is inactive."""


def _as_datetime(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _tenant(row: tuple) -> Tenant:
    tenant_id, code, name, database_name, active = row
    return Tenant(tenant_id, code, name, database_name, bool(active))


class AuthRepository:
    """Reads users and tenants through a DB-API connection.

    ``placeholder`` is the driver's parameter marker, ``%s`` for most
    PostgreSQL drivers and ``?`` for sqlite3.
    """

    def __init__(self, connection: Any, placeholder: str = "%s") -> None:
        self._connection = connection
        self._placeholder = placeholder

    def _fetch(self, query: str, params: tuple) -> list[tuple]:
        sql = query.format(p=self._placeholder)
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(sql, params)
            return list(cursor.fetchall())

    def get_user_by_email(self, email: str) -> User:
        """Return the active user with this e-mail address."""
        rows = self._fetch(
            "SELECT id, email, username, first_name, last_name, active, created_at "
            "FROM users WHERE email = {p} AND active = true",
            (email,),
        )
        if not rows:
            raise NotFoundError("user not found")
        user_id, mail, username, first, last, active, created = rows[0]
        return User(user_id, mail, username, first, last, bool(active), _as_datetime(created))

    def get_user_tenants(self, user_id: int) -> list[Tenant]:
        """Return the active tenants the user actively belongs to, ordered by name."""
        rows = self._fetch(
            "SELECT t.id, t.code, t.name, t.database_name, t.active "
            "FROM tenants t JOIN user_tenants ut ON t.id = ut.tenant_id "
            "WHERE ut.user_id = {p} AND ut.active = true AND t.active = true "
            "ORDER BY t.name",
            (user_id,),
        )
        return [_tenant(row) for row in rows]

    def get_tenant_by_code(self, code: str) -> Tenant:
        """Return the active tenant with this code."""
        rows = self._fetch(
            "SELECT id, code, name, database_name, active FROM tenants "
            "WHERE code = {p} AND active = true",
            (code,),
        )
        if not rows:
            raise NotFoundError("tenant not found")
        return _tenant(rows[0])