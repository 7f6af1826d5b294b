from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import storage_errors
from errors import Conflict
from logging_setup import get_logger
from models import User

logger = get_logger(__name__)

UPDATABLE_USER_FIELDS = ("name", "email", "role")


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        with storage_errors(self.db, "user lookup"):
            return self.db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        with storage_errors(self.db, "user lookup"):
            return self.db.query(User).filter(User.email == email).first()

    def list_all(self) -> List[User]:
        with storage_errors(self.db, "user listing"):
            return self.db.query(User).order_by(User.created_at, User.id).all()

    def insert(self, user: User) -> User:
        with storage_errors(self.db, "user insert"):
            try:
                self.db.add(user)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise Conflict("Email already registered")
            self.db.refresh(user)
        return user

    def update_partial(self, user_id: str, fields: dict) -> bool:
        values = {k: v for k, v in fields.items() if k in UPDATABLE_USER_FIELDS}
        if not values:
            return False
        with storage_errors(self.db, "user update"):
            try:
                updated = self.db.query(User).filter(User.id == user_id).update(values)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise Conflict("Email already registered")
        return updated > 0

    def delete(self, user_id: str) -> bool:
        with storage_errors(self.db, "user delete"):
            deleted = self.db.query(User).filter(User.id == user_id).delete()
            self.db.commit()
        return deleted > 0
