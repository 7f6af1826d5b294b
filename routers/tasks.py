from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse

from access_policy import Principal
from dependencies import get_principal, get_task_service
from schemas import AttachmentOut, MessageOut, TaskCreate, TaskOut, TaskUpdate
from task_service import AttachmentPayload, TaskQuery, TaskService

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"]
)


@router.get("", response_model=List[TaskOut])
def list_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    query = TaskQuery(status=status, priority=priority, tag=tag, search=search)
    return service.list_tasks(principal, query)


@router.post("", response_model=TaskOut)
def create_task(task: TaskCreate, principal: Principal = Depends(get_principal), service: TaskService = Depends(get_task_service)):
    return service.create_task(principal, task)


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, principal: Principal = Depends(get_principal), service: TaskService = Depends(get_task_service)):
    return service.get_task(principal, task_id)


@router.put("/{task_id}", response_model=TaskOut)
def update_task(task_id: str, patch: TaskUpdate, principal: Principal = Depends(get_principal), service: TaskService = Depends(get_task_service)):
    return service.update_task(principal, task_id, patch)


@router.delete("/{task_id}", response_model=MessageOut)
def delete_task(task_id: str, principal: Principal = Depends(get_principal), service: TaskService = Depends(get_task_service)):
    service.delete_task(principal, task_id)
    return {"message": "Task deleted successfully"}


# --- Attachments ---

@router.post("/{task_id}/attachments", response_model=AttachmentOut)
def upload_attachment(
    task_id: str,
    file: UploadFile = File(...),
    principal: Principal = Depends(get_principal),
    service: TaskService = Depends(get_task_service),
):
    payload = AttachmentPayload(
        file_name=file.filename,
        content_type=file.content_type or "application/octet-stream",
        stream=file.file,
    )
    return service.add_attachment(principal, task_id, payload)


@router.get("/{task_id}/attachments/{attachment_id}")
def download_attachment(task_id: str, attachment_id: str, principal: Principal = Depends(get_principal), service: TaskService = Depends(get_task_service)):
    download = service.download_attachment(principal, task_id, attachment_id)
    disposition = "attachment; filename*=UTF-8''%s" % quote(download.file_name)
    return StreamingResponse(
        download.stream,
        media_type=download.content_type,
        headers={"Content-Disposition": disposition},
    )


@router.delete("/{task_id}/attachments/{attachment_id}", response_model=MessageOut)
def delete_attachment(task_id: str, attachment_id: str, principal: Principal = Depends(get_principal), service: TaskService = Depends(get_task_service)):
    service.delete_attachment(principal, task_id, attachment_id)
    return {"message": "Attachment deleted successfully"}
