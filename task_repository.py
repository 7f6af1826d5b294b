from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from database import storage_errors
from logging_setup import get_logger
from task_models import TaskDB

logger = get_logger(__name__)

UPDATABLE_TASK_FIELDS = (
    "title", "description", "status", "priority", "due_date", "tags", "assigned_user_ids",
)


@dataclass
class TaskFilter:
    """
    Conjunctive filter for task listings.

    ``visible_to`` restricts the result to tasks the given user owns or is
    assigned to; ``None`` means no ownership restriction. Empty strings count
    as "not set" everywhere.
    """
    visible_to: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    tag: Optional[str] = None
    search: Optional[str] = None

    def apply_sql(self, query):
        if self.visible_to:
            # JSON-Liste als Text vorfiltern, exakter Vergleich folgt in matches()
            query = query.filter(or_(
                TaskDB.owner_id == self.visible_to,
                cast(TaskDB.assigned_user_ids, String).contains(f'"{self.visible_to}"', autoescape=True),
            ))
        # Nur unverschluesselte Skalar-Spalten lassen sich in SQL filtern
        if self.status:
            query = query.filter(TaskDB.status == self.status)
        if self.priority:
            query = query.filter(TaskDB.priority == self.priority)
        return query

    def matches(self, task: TaskDB) -> bool:
        if self.visible_to and not (
            task.owner_id == self.visible_to or self.visible_to in (task.assigned_user_ids or [])
        ):
            return False
        if self.tag and self.tag not in (task.tags or []):
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in (task.title or "").lower() and needle not in (task.description or "").lower():
                return False
        return True


class TaskRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, task_id: str) -> Optional[TaskDB]:
        if not task_id:
            return None
        with storage_errors(self.db, "task lookup"):
            return self.db.get(TaskDB, task_id)

    def query(self, task_filter: TaskFilter) -> List[TaskDB]:
        with storage_errors(self.db, "task query"):
            rows = task_filter.apply_sql(self.db.query(TaskDB)).order_by(TaskDB.created_at, TaskDB.id).all()
        # title/description are encrypted at rest, so search and tag run here
        return [t for t in rows if task_filter.matches(t)]

    def insert(self, task: TaskDB) -> TaskDB:
        with storage_errors(self.db, "task insert"):
            self.db.add(task)
            self.db.commit()
            self.db.refresh(task)
        return task

    def update_partial(self, task_id: str, fields: dict) -> bool:
        values = {k: v for k, v in fields.items() if k in UPDATABLE_TASK_FIELDS}
        if not values:
            return False
        with storage_errors(self.db, "task update"):
            task = self.db.get(TaskDB, task_id)
            if task is None:
                return False
            for key, value in values.items():
                setattr(task, key, value)
            self.db.commit()
        return True

    def replace_attachments(self, task_id: str, attachments: list) -> bool:
        """Overwrite the whole attachment list. No version check."""
        with storage_errors(self.db, "attachment update"):
            updated = (
                self.db.query(TaskDB)
                .filter(TaskDB.id == task_id)
                .update({TaskDB.attachments: list(attachments)}, synchronize_session="fetch")
            )
            self.db.commit()
        return updated > 0

    def delete(self, task_id: str) -> bool:
        with storage_errors(self.db, "task delete"):
            deleted = self.db.query(TaskDB).filter(TaskDB.id == task_id).delete()
            self.db.commit()
        return deleted > 0

    def delete_by_owner(self, owner_id: str) -> int:
        with storage_errors(self.db, "task cascade delete"):
            deleted = self.db.query(TaskDB).filter(TaskDB.owner_id == owner_id).delete()
            self.db.commit()
        logger.info("Deleted %s task(s) owned by %s", deleted, owner_id)
        return deleted
