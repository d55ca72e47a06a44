from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import date, datetime

from .models import Gender


class CamelModel(BaseModel):
    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


# =========================
# CLIENT SCHEMAS
# =========================
class ClientFileRead(CamelModel):
    id: int
    filename: str
    path: str
    mimetype: Optional[str] = None
    size: Optional[int] = None


class ClientNoteRead(CamelModel):
    id: int
    body: str
    created_at: datetime


class ClientRead(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    gender: Gender
    date_of_birth: Optional[date] = None
    background: str = ""
    is_active: bool
    files: List[ClientFileRead] = []
    notes: List[ClientNoteRead] = []
    created_at: datetime
    updated_at: datetime


class ClientUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    background: Optional[str] = None


class ClientNoteCreate(BaseModel):
    body: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str


class SetPasswordRequest(CamelModel):
    token: str
    password: str
    confirm_password: str


# =========================
# KNOWLEDGE SCHEMAS
# =========================
class KnowledgeDocRead(CamelModel):
    id: int
    name: str
    file_url: str
    uploaded_at: datetime


# =========================
# JOURNAL SCHEMAS
# =========================
class PromptRead(BaseModel):
    text: str


class SectionRead(BaseModel):
    entryType: str
    title: str
    content: str = ""
    prompts: List[PromptRead] = []


class JournalCreate(CamelModel):
    topic: str = Field(min_length=1)
    background: Optional[str] = None
    booking_link: Optional[str] = None
    client_id: int


class JournalRead(CamelModel):
    id: int
    topic: str
    title: str
    description: str
    table_of_contents: List[SectionRead]
    booking_link: str = ""
    owner_id: int
    client_id: int
    responses: List[List[str]] = []
    created_at: datetime
    updated_at: datetime


class ResponsesPayload(BaseModel):
    responses: List[List[str]]


class ReportRequest(BaseModel):
    responses: Optional[List[List[str]]] = None


class ReportRead(BaseModel):
    report: str


class SuccessRead(BaseModel):
    success: bool = True
