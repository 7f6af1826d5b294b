"""
Zugriffsregeln fuer Aufgaben, Anhaenge und Benutzerverwaltung.

Pure decision functions: no I/O, no logging, no exceptions except in the
``require_*`` helpers. Every mutation path in the services asks this module
instead of comparing roles itself.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from errors import Forbidden, Unauthenticated

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, role=user.role)


def _is_owner(principal: Principal, task) -> bool:
    return principal.id == task.owner_id


def _is_assigned(principal: Principal, task) -> bool:
    assigned: Iterable[str] = task.assigned_user_ids or ()
    return principal.id in assigned


def can_read_task(principal: Principal, task) -> bool:
    return principal.is_admin or _is_owner(principal, task) or _is_assigned(principal, task)


def can_list_all_tasks(principal: Principal) -> bool:
    return principal.is_admin


def can_fully_update_task(principal: Principal, task) -> bool:
    return principal.is_admin


def can_update_task_status_only(principal: Principal, task) -> bool:
    if principal.is_admin:
        return False
    return _is_owner(principal, task) or _is_assigned(principal, task)


def can_delete_task(principal: Principal, task) -> bool:
    return principal.is_admin or _is_owner(principal, task)


def can_manage_attachments(principal: Principal, task) -> bool:
    return principal.is_admin or _is_owner(principal, task)


def can_download_attachment(principal: Principal, task) -> bool:
    return can_read_task(principal, task)


def can_manage_users(principal: Principal) -> bool:
    return principal.is_admin


def can_delete_user(principal: Principal, user_id: str) -> bool:
    # exakter ID-Vergleich, auch Admins duerfen sich nicht selbst loeschen
    return principal.is_admin and principal.id != user_id


def require_principal(principal: Optional[Principal]) -> Principal:
    if principal is None:
        raise Unauthenticated("Invalid authentication credentials")
    return principal


def require(allowed: bool, detail: str = "Access denied") -> None:
    if not allowed:
        raise Forbidden(detail)
