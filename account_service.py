import logging
from typing import Optional

from access_policy import ADMIN_ROLE, Principal
from auth_utils import create_access_token, hash_password, verify_password
from errors import Conflict, NotFound, Unauthenticated
from logging_setup import get_logger
from models import User
from schemas import TokenResponse, UserCreate, UserOut
from user_repository import UserRepository

logger = get_logger(__name__)


class AccountService:
    def __init__(self, users: UserRepository, log: logging.Logger = None):
        self.users = users
        self.log = log or logger

    def _token_response(self, user: User) -> TokenResponse:
        return TokenResponse(
            access_token=create_access_token(user.id, user.role),
            user=UserOut.model_validate(user),
        )

    def register(self, data: UserCreate) -> TokenResponse:
        if self.users.find_by_email(data.email) is not None:
            raise Conflict("Email already registered")
        # Selbstregistrierung legt immer normale Benutzer an
        user = self.users.insert(User(
            email=data.email,
            name=data.name,
            role="user",
            hashed_password=hash_password(data.password),
        ))
        self.log.info("User registered: %s", user.id)
        return self._token_response(user)

    def login(self, email: str, password: str) -> TokenResponse:
        user = self.users.find_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            raise Unauthenticated("Invalid email or password")
        return self._token_response(user)

    def me(self, principal: Optional[Principal]) -> UserOut:
        if principal is None:
            raise Unauthenticated("Invalid authentication credentials")
        user = self.users.find_by_id(principal.id)
        if user is None:
            raise NotFound("User not found")
        return UserOut.model_validate(user)

    def ensure_admin(self, email: str, password: str, name: str = "Administrator") -> User:
        """Create the bootstrap admin account unless the email is already taken."""
        existing = self.users.find_by_email(email)
        if existing is not None:
            if not Principal.from_user(existing).is_admin:
                self.log.warning("Bootstrap admin email %s belongs to a non-admin account", email)
            return existing
        user = self.users.insert(User(
            email=email,
            name=name,
            role=ADMIN_ROLE,
            hashed_password=hash_password(password),
        ))
        self.log.info("Bootstrap admin created: %s", user.id)
        return user
