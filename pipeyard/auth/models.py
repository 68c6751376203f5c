"""Records of the authentication database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    """A person who can sign in."""

    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    active: bool
    created_at: datetime


@dataclass(frozen=True)
class Tenant:
    """A location whose data lives in its own database."""

    id: int
    code: str
    name: str
    database_name: str
    active: bool


@dataclass(frozen=True)
class UserTenant:
    """A user's membership of a tenant, with a role such as admin, operator or viewer."""

    user_id: int
    tenant_id: int
    role: str
    active: bool


@dataclass(frozen=True)
class Session:
    """A signed-in user's session for one tenant."""

    session_id: str
    user_id: int
    tenant_id: int
    expires_at: datetime