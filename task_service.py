import io
import logging
import uuid
from dataclasses import dataclass
from typing import BinaryIO, List, Optional

import access_policy as policy
import config
from access_policy import Principal
from blob_store import BlobDownload, BlobStore
from errors import NotFound, PayloadSizeError, StorageFailure, StoredFileMissing, ValidationError
from logging_setup import get_logger
from models import utc_now
from schemas import AttachmentOut, TaskCreate, TaskOut, TaskUpdate, UserSummary
from task_models import TaskDB
from task_repository import TaskFilter, TaskRepository
from user_repository import UserRepository

logger = get_logger(__name__)


@dataclass
class AttachmentPayload:
    file_name: str
    content_type: str
    stream: BinaryIO


@dataclass
class TaskQuery:
    status: Optional[str] = None
    priority: Optional[str] = None
    tag: Optional[str] = None
    search: Optional[str] = None


def _dedupe(ids: List[str]) -> List[str]:
    seen = set()
    result = []
    for user_id in ids:
        if user_id and user_id not in seen:
            seen.add(user_id)
            result.append(user_id)
    return result


class TaskService:
    """
    Task- und Anhang-Operationen mit Rechtepruefung.

    Every operation takes the acting principal, asks ``access_policy`` for the
    decision and only then touches the repositories. Attachment cleanup on
    delete is best-effort: a blob that cannot be removed is logged and left
    behind rather than blocking the metadata change.
    """

    def __init__(
        self,
        tasks: TaskRepository,
        users: UserRepository,
        blobs: BlobStore,
        max_attachment_size: int = None,
        log: logging.Logger = None,
    ):
        self.tasks = tasks
        self.users = users
        self.blobs = blobs
        self.max_attachment_size = max_attachment_size or config.MAX_ATTACHMENT_SIZE
        self.log = log or logger

    # ---- projection ----

    def project(self, task: TaskDB) -> TaskOut:
        assigned = []
        for user_id in task.assigned_user_ids or []:
            user = self.users.find_by_id(user_id)
            if user is not None:
                assigned.append(UserSummary(id=user.id, name=user.name))
        return TaskOut(
            id=task.id,
            title=task.title,
            description=task.description or "",
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            tags=list(task.tags or []),
            owner_id=task.owner_id,
            assigned_users=assigned,
            attachments=[AttachmentOut(**a) for a in task.attachments or []],
            created_at=task.created_at,
        )

    def _load(self, task_id: str) -> TaskDB:
        task = self.tasks.find_by_id(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    def _remove_blob(self, blob_id: str, task_id: str) -> None:
        try:
            self.blobs.delete(blob_id)
        except (StoredFileMissing, StorageFailure) as exc:
            self.log.warning("Could not delete blob %s of task %s: %s", blob_id, task_id, exc.detail)

    # ---- tasks ----

    def create_task(self, principal: Principal, draft: TaskCreate) -> TaskOut:
        principal = policy.require_principal(principal)
        title = (draft.title or "").strip()
        if not title:
            raise ValidationError("Title is required")

        task = TaskDB(
            title=title,
            description=draft.description or "",
            status=draft.status or "todo",
            priority=draft.priority,
            due_date=draft.due_date,
            tags=list(draft.tags),
            owner_id=principal.id,
            # Ersteller ist immer zugewiesen
            assigned_user_ids=_dedupe(list(draft.assigned_user_ids) + [principal.id]),
            attachments=[],
        )
        task = self.tasks.insert(task)
        self.log.info("Task %s created by %s", task.id, principal.id)
        return self.project(task)

    def list_tasks(self, principal: Principal, query: TaskQuery = None) -> List[TaskOut]:
        principal = policy.require_principal(principal)
        query = query or TaskQuery()
        task_filter = TaskFilter(
            visible_to=None if policy.can_list_all_tasks(principal) else principal.id,
            status=query.status or None,
            priority=query.priority or None,
            tag=query.tag or None,
            search=query.search or None,
        )
        tasks = self.tasks.query(task_filter)
        self.log.debug("User %s listed %s task(s)", principal.id, len(tasks))
        return [self.project(t) for t in tasks]

    def get_task(self, principal: Principal, task_id: str) -> TaskOut:
        principal = policy.require_principal(principal)
        task = self._load(task_id)
        policy.require(policy.can_read_task(principal, task))
        return self.project(task)

    def update_task(self, principal: Principal, task_id: str, patch: TaskUpdate) -> TaskOut:
        principal = policy.require_principal(principal)
        task = self._load(task_id)
        changes = patch.provided_fields()

        if policy.can_fully_update_task(principal, task):
            if "title" in changes and not changes["title"].strip():
                raise ValidationError("Title must not be empty")
            if "title" in changes:
                changes["title"] = changes["title"].strip()
            if "status" in changes and not changes["status"].strip():
                raise ValidationError("Status must not be empty")
        elif policy.can_update_task_status_only(principal, task):
            if not patch.status:
                raise ValidationError("Status field is required for update")
            forbidden = sorted(name for name in changes if name != "status")
            if forbidden:
                raise ValidationError(
                    "Only the status may be changed, not: " + ", ".join(forbidden)
                )
            changes = {"status": patch.status}
        else:
            policy.require(False)

        if changes:
            if not self.tasks.update_partial(task_id, changes):
                raise NotFound("Task not found")
            self.log.info("Task %s updated by %s: %s", task_id, principal.id, sorted(changes))
        return self.project(self._load(task_id))

    def delete_task(self, principal: Principal, task_id: str) -> None:
        principal = policy.require_principal(principal)
        task = self._load(task_id)
        policy.require(policy.can_delete_task(principal, task))

        for attachment in list(task.attachments or []):
            self._remove_blob(attachment["blob_id"], task_id)

        if not self.tasks.delete(task_id):
            raise NotFound("Task not found")
        self.log.info("Task %s deleted by %s", task_id, principal.id)

    # ---- attachments ----

    def add_attachment(self, principal: Principal, task_id: str, payload: AttachmentPayload) -> AttachmentOut:
        principal = policy.require_principal(principal)
        task = self._load(task_id)
        policy.require(policy.can_manage_attachments(principal, task))

        # ein Byte mehr lesen, um Ueberschreitung zu erkennen
        data = payload.stream.read(self.max_attachment_size + 1)
        if len(data) == 0:
            raise PayloadSizeError("No file uploaded")
        if len(data) > self.max_attachment_size:
            raise PayloadSizeError(
                "File size exceeds the limit of %d bytes" % self.max_attachment_size
            )

        file_name = payload.file_name or "upload"
        # Blob zuerst, damit die Aufgabe nie auf fehlende Daten zeigt
        blob_id = self.blobs.put(io.BytesIO(data), file_name, payload.content_type)
        attachment = {
            "id": str(uuid.uuid4()),
            "file_name": file_name,
            "file_size": len(data),
            "content_type": payload.content_type or "application/octet-stream",
            "blob_id": blob_id,
            "uploaded_at": utc_now().isoformat(),
        }
        # Read-modify-write der ganzen Liste, parallele Uploads koennen sich ueberschreiben
        attachments = list(task.attachments or []) + [attachment]
        if not self.tasks.replace_attachments(task_id, attachments):
            self._remove_blob(blob_id, task_id)
            raise NotFound("Task not found")
        self.log.info("Attachment %s (%s bytes) added to task %s", attachment["id"], len(data), task_id)
        return AttachmentOut(**attachment)

    def _find_attachment(self, task: TaskDB, attachment_id: str) -> dict:
        for attachment in task.attachments or []:
            if attachment.get("id") == attachment_id:
                return attachment
        raise NotFound("Attachment not found")

    def download_attachment(self, principal: Principal, task_id: str, attachment_id: str) -> BlobDownload:
        principal = policy.require_principal(principal)
        task = self._load(task_id)
        policy.require(policy.can_download_attachment(principal, task))
        attachment = self._find_attachment(task, attachment_id)
        # StoredFileMissing propagiert: Metadaten da, Datei weg
        return self.blobs.get(attachment["blob_id"])

    def delete_attachment(self, principal: Principal, task_id: str, attachment_id: str) -> None:
        principal = policy.require_principal(principal)
        task = self._load(task_id)
        policy.require(policy.can_manage_attachments(principal, task))
        attachment = self._find_attachment(task, attachment_id)

        self._remove_blob(attachment["blob_id"], task_id)

        remaining = [a for a in task.attachments or [] if a.get("id") != attachment_id]
        if not self.tasks.replace_attachments(task_id, remaining):
            raise NotFound("Task not found")
        self.log.info("Attachment %s removed from task %s", attachment_id, task_id)
