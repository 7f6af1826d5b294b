import logging
from typing import List

import access_policy as policy
from access_policy import Principal
from errors import Conflict, NotFound, StorageFailure
from logging_setup import get_logger
from schemas import UserOut, UserUpdate
from task_repository import TaskRepository
from user_repository import UserRepository

logger = get_logger(__name__)


class AdminService:
    def __init__(self, users: UserRepository, tasks: TaskRepository, log: logging.Logger = None):
        self.users = users
        self.tasks = tasks
        self.log = log or logger

    def _require_admin(self, principal: Principal) -> Principal:
        principal = policy.require_principal(principal)
        policy.require(policy.can_manage_users(principal), "Admin access required")
        return principal

    def list_users(self, principal: Principal) -> List[UserOut]:
        self._require_admin(principal)
        return [UserOut.model_validate(u) for u in self.users.list_all()]

    def get_user(self, principal: Principal, user_id: str) -> UserOut:
        self._require_admin(principal)
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return UserOut.model_validate(user)

    def update_user(self, principal: Principal, user_id: str, patch: UserUpdate) -> UserOut:
        principal = self._require_admin(principal)
        if self.users.find_by_id(user_id) is None:
            raise NotFound("User not found")

        # leere Strings gelten als "nicht gesetzt"
        fields = {k: v for k, v in patch.model_dump().items() if v}
        if "email" in fields:
            other = self.users.find_by_email(fields["email"])
            if other is not None and other.id != user_id:
                raise Conflict("Email already registered")

        if fields:
            self.users.update_partial(user_id, fields)
            self.log.info("Admin %s updated user %s: %s", principal.id, user_id, sorted(fields))
        return UserOut.model_validate(self.users.find_by_id(user_id))

    def delete_user(self, principal: Principal, user_id: str) -> None:
        """
        Delete a user and every task they own.

        Both steps are attempted even if the first one fails. Attachment blobs
        of the removed tasks stay in the blob store.
        """
        principal = self._require_admin(principal)
        if not policy.can_delete_user(principal, user_id):
            self.log.warning("Admin %s attempted to delete their own account", principal.id)
            policy.require(False, "Cannot delete yourself")
        if self.users.find_by_id(user_id) is None:
            raise NotFound("User not found")

        failures = []
        try:
            self.users.delete(user_id)
        except StorageFailure as exc:
            failures.append("user record: %s" % exc.detail)
        try:
            self.tasks.delete_by_owner(user_id)
        except StorageFailure as exc:
            failures.append("owned tasks: %s" % exc.detail)

        if failures:
            self.log.error("Deleting user %s failed partially: %s", user_id, failures)
            raise StorageFailure("User deletion incomplete (" + "; ".join(failures) + ")")
        self.log.info("Admin %s deleted user %s", principal.id, user_id)
