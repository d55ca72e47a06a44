import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journeygen.auth import Administrator, require_admin
from journeygen.database import get_db
from journeygen.errors import NotFound, ValidationError
from journeygen.models import KnowledgeDoc
from journeygen.schemas import KnowledgeDocRead, SuccessRead
from journeygen.services.storage import delete_upload, save_upload

router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])
logger = logging.getLogger(__name__)


@router.post("", response_model=KnowledgeDocRead, status_code=201)
async def upload_knowledge_doc(
    name: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    doc: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    # the web client posts the document as "doc"
    file = file if file is not None and file.filename else doc
    if file is None or not file.filename:
        raise ValidationError("No file uploaded.", field="file")
    stored = await save_upload(file)
    doc = KnowledgeDoc(name=(name or "").strip() or file.filename, file_url=stored["path"])
    db.add(doc)
    await db.commit()
    await db.refresh(doc)
    logger.info("Knowledge document %s (%r) uploaded", doc.id, doc.name)
    return doc


@router.get("", response_model=list[KnowledgeDocRead])
async def list_knowledge_docs(
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    rows = await db.execute(
        select(KnowledgeDoc).order_by(KnowledgeDoc.uploaded_at.desc(), KnowledgeDoc.id.desc())
    )
    return rows.scalars().all()


@router.delete("/{doc_id}", response_model=SuccessRead)
async def delete_knowledge_doc(
    doc_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    doc = await db.get(KnowledgeDoc, doc_id)
    if not doc:
        raise NotFound("Document not found.")
    await delete_upload(doc.file_url)
    await db.delete(doc)
    await db.commit()
    return SuccessRead()
