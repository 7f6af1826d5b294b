from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from access_policy import Principal
from account_service import AccountService
from admin_service import AdminService
from auth_utils import Identity, decode_access_token
from blob_store import BlobStore
from database import SessionLocal
from principal_resolver import PrincipalResolver
from task_repository import TaskRepository
from task_service import TaskService
from user_repository import UserRepository

# --- Rate Limiter ---
limiter = Limiter(key_func=get_remote_address)

# auto_error=False: fehlender Token wird von uns als Unauthenticated gemeldet
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# --- Database Dependency ---
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- Auth Dependencies ---
def get_identity(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Identity]:
    return decode_access_token(token)


def get_principal(
    identity: Optional[Identity] = Depends(get_identity),
    db: Session = Depends(get_db),
) -> Principal:
    return PrincipalResolver(UserRepository(db)).resolve(identity)


# --- Services ---
def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(TaskRepository(db), UserRepository(db), BlobStore(db))


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    return AdminService(UserRepository(db), TaskRepository(db))


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(UserRepository(db))
