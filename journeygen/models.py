from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, Date, JSON
)
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy import Enum as SAEnum
import enum
from datetime import datetime, timezone

from .database import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Gender(str, enum.Enum):
    male = "Male"
    female = "Female"
    other = "Other"


class EntryType(str, enum.Enum):
    part = "Part"
    section = "Section"
    closing = "Closing"


# ---------------------------
# ADMINISTRATOR
# ---------------------------
class AdminUser(Base):
    __tablename__ = "admin_user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    journals = relationship("Journal", back_populates="owner")


# ---------------------------
# CLIENTS
# ---------------------------
class Client(Base):
    __tablename__ = "client"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    gender = Column(
        SAEnum(Gender, values_callable=lambda e: [m.value for m in e], name="client_gender"),
        default=Gender.other,
        nullable=False,
    )
    date_of_birth = Column(Date, nullable=True)
    background = Column(Text, default="", nullable=False)

    # ---- credential / invitation ----
    password_hash = Column(String, nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    invite_token = Column(String, unique=True, index=True, nullable=True)
    invite_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    files = relationship(
        "ClientFile",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    notes = relationship(
        "ClientNote",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClientNote.id",
        lazy="selectin",
    )
    journals = relationship(
        "Journal",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class ClientFile(Base):
    __tablename__ = "client_file"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("client.id", ondelete="CASCADE"), index=True, nullable=False)
    filename = Column(String, nullable=False)
    path = Column(String, nullable=False)  # /uploads/<filename>
    mimetype = Column(String, nullable=True)
    size = Column(Integer, nullable=True)

    client = relationship("Client", back_populates="files")


class ClientNote(Base):
    """Append-only coach note; never edited through the API."""
    __tablename__ = "client_note"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("client.id", ondelete="CASCADE"), index=True, nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    client = relationship("Client", back_populates="notes")


# ---------------------------
# KNOWLEDGE BANK
# ---------------------------
class KnowledgeDoc(Base):
    __tablename__ = "knowledge_doc"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    file_url = Column(String, nullable=False)  # /uploads/<filename>
    uploaded_at = Column(DateTime(timezone=True), default=_utcnow, index=True, nullable=False)


# ---------------------------
# JOURNALS
# ---------------------------
class Journal(Base):
    __tablename__ = "journal"

    id = Column(Integer, primary_key=True, index=True)
    topic = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    # [{"entryType": "Part|Section|Closing", "title": ..., "content": ..., "prompts": [{"text": ...}]}]
    table_of_contents = Column(JSONType, nullable=False, default=list)
    booking_link = Column(String, default="", nullable=False)
    owner_id = Column(Integer, ForeignKey("admin_user.id", ondelete="RESTRICT"), index=True, nullable=False)
    client_id = Column(Integer, ForeignKey("client.id", ondelete="CASCADE"), index=True, nullable=False)
    # per section, per prompt
    responses = Column(JSONType, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    owner = relationship("AdminUser", back_populates="journals")
    client = relationship("Client", back_populates="journals")
