from typing import Optional

from access_policy import Principal
from auth_utils import Identity
from errors import Unauthenticated
from logging_setup import get_logger
from models import User
from user_repository import UserRepository

logger = get_logger(__name__)


class PrincipalResolver:
    """Turns a verified token identity into the stored user behind it."""

    def __init__(self, users: UserRepository):
        self.users = users

    def resolve_user(self, identity: Optional[Identity]) -> User:
        if identity is None:
            raise Unauthenticated("Invalid authentication credentials")
        user = self.users.find_by_id(identity.subject_id)
        if user is None:
            logger.info("Token subject %s has no user record", identity.subject_id)
            raise Unauthenticated("User not found")
        return user

    def resolve(self, identity: Optional[Identity]) -> Principal:
        # Rolle kommt aus dem gespeicherten User, nicht aus dem Token
        return Principal.from_user(self.resolve_user(identity))
