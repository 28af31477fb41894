"""
Case document endpoints (metadata only; files live in external storage)
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    get_current_principal,
    load_case,
    require_admin,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.services import document_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()

require_case_staff = require_roles("attorney", "admin")


class DocumentCreate(BaseModel):
    document_type: str
    file_name: str
    file_url: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None


@router.post("/case/{case_id}", status_code=201)
def add_document(
    case_id: str,
    payload: DocumentCreate,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    document = document_service.create_document(
        db,
        case_id,
        principal.id,
        payload.document_type,
        payload.file_name,
        payload.file_url,
        file_size=payload.file_size,
        mime_type=payload.mime_type,
        description=payload.description,
        uploader_type=principal.user_type,
    )
    return {"success": True, "data": document_service.document_to_api(document)}


@router.get("/case/{case_id}")
def case_documents(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {
        "success": True,
        "data": {
            "documents": document_service.get_documents_by_case(db, case_id),
            "stats": document_service.get_document_stats(db, case_id),
        },
    }


@router.get("/{document_id}")
def get_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    document = document_service.get_document(db, document_id)
    if document is None:
        raise NotFoundError("Document", document_id)
    load_case(db, str(document.case_id), principal)
    return {"success": True, "data": document_service.document_to_api(document)}


@router.post("/{document_id}/verify")
def verify_document(
    document_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    document = document_service.verify_document(db, document_id, principal.id)
    return {"success": True, "data": document_service.document_to_api(document)}


@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    document = document_service.get_document(db, document_id)
    if document is None:
        raise NotFoundError("Document", document_id)
    load_case(db, str(document.case_id), principal)
    document_service.delete_document(db, document_id)
    return {"success": True, "message": "Document deleted"}
