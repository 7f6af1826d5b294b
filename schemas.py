from datetime import datetime
from typing import List, Literal, Optional

import bleach
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Priority = Literal["low", "medium", "high"]
Role = Literal["user", "admin"]


def _clean(value: Optional[str]) -> Optional[str]:
    if value:
        # Bleach entfernt alle HTML-Tags (tags=[]) und Attribute
        return bleach.clean(value, tags=[], attributes={}, strip=True)
    return value


# --- User Models ---
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str


class UserLogin(BaseModel):
    email: str
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[Role] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def empty_means_unchanged(cls, v):
        # "" heisst: Feld nicht aendern
        return None if v == "" else v


class UserOut(BaseModel):
    """Public user representation. Never carries the password hash."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: str
    created_at: datetime


class UserSummary(BaseModel):
    id: str
    name: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


# --- Task Models ---
class TaskCreate(BaseModel):
    title: str
    description: str = ""
    status: str = "todo"
    priority: Priority = "medium"
    due_date: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    assigned_user_ids: List[str] = Field(default_factory=list)

    @field_validator("title", "description")
    @classmethod
    def sanitize_input(cls, v: Optional[str]) -> Optional[str]:
        return _clean(v)

    @field_validator("tags")
    @classmethod
    def sanitize_tags(cls, v: List[str]) -> List[str]:
        return [_clean(tag) for tag in v]


class TaskUpdate(BaseModel):
    """
    Partial update. ``None`` means "leave unchanged"; lists replace the stored
    value wholesale.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[str] = None
    tags: Optional[List[str]] = None
    assigned_user_ids: Optional[List[str]] = None

    @field_validator("title", "description")
    @classmethod
    def sanitize_input(cls, v: Optional[str]) -> Optional[str]:
        return _clean(v)

    @field_validator("tags")
    @classmethod
    def sanitize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [_clean(tag) for tag in v]

    def provided_fields(self) -> dict:
        return {name: value for name, value in self if value is not None}


class AttachmentOut(BaseModel):
    id: str
    file_name: str
    file_size: int
    content_type: str
    blob_id: str
    uploaded_at: str


class TaskOut(BaseModel):
    id: str
    title: str
    description: str
    status: str
    priority: str
    due_date: Optional[str] = None
    tags: List[str]
    owner_id: str
    assigned_users: List[UserSummary]
    attachments: List[AttachmentOut]
    created_at: datetime


class MessageOut(BaseModel):
    message: str
