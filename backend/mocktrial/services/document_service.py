"""
services/document_service.py

Case document metadata. The file itself lives in external storage; we keep
its URL, size and type, plus admin verification and soft delete.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case as sql_case, func
from sqlalchemy.orm import Session

from mocktrial.db.models import CaseDocument, DocumentType, UserType
from mocktrial.services import case_service
from mocktrial.utils.exceptions import NotFoundError, ValidationError
from mocktrial.utils.helpers import enum_value, iso, str_or_none, to_uuid

logger = logging.getLogger(__name__)

PREFIX = "Document validation failed"


def _document_to_api(d: CaseDocument) -> Dict[str, Any]:
    return {
        "id": str(d.id),
        "caseId": str(d.case_id),
        "uploadedBy": str(d.uploaded_by),
        "uploaderType": enum_value(d.uploader_type),
        "documentType": enum_value(d.document_type),
        "fileName": d.file_name,
        "fileUrl": d.file_url,
        "fileSize": d.file_size,
        "mimeType": d.mime_type,
        "description": d.description,
        "isVerified": d.is_verified,
        "verifiedBy": str_or_none(d.verified_by),
        "verifiedAt": iso(d.verified_at),
        "createdAt": iso(d.created_at),
    }


def create_document(
    db:            Session,
    case_id:       str,
    uploaded_by:   str,
    document_type: str,
    file_name:     str,
    file_url:      str,
    file_size:     Optional[int] = None,
    mime_type:     Optional[str] = None,
    description:   Optional[str] = None,
    uploader_type: str           = "attorney",
) -> CaseDocument:
    errors = []
    if to_uuid(case_id) is None:
        errors.append("Valid case ID is required")
    if to_uuid(uploaded_by) is None:
        errors.append("Valid uploader ID is required")
    if uploader_type not in UserType._value2member_map_:
        errors.append("Invalid uploader type")
    if document_type not in DocumentType._value2member_map_:
        errors.append(f"Invalid document type. Must be one of: {', '.join(t.value for t in DocumentType)}")
    if not file_name or not file_name.strip():
        errors.append("File name is required")
    if not file_url or not file_url.strip():
        errors.append("File URL is required")
    if file_size is not None and (not isinstance(file_size, int) or file_size < 0):
        errors.append("File size must be a non-negative integer")
    if errors:
        raise ValidationError(errors, prefix=PREFIX)

    case = case_service.get_live_case(db, case_id)
    document = CaseDocument(
        case_id=case.id,
        uploaded_by=to_uuid(uploaded_by),
        uploader_type=UserType(uploader_type),
        document_type=DocumentType(document_type),
        file_name=file_name.strip(),
        file_url=file_url.strip(),
        file_size=file_size,
        mime_type=mime_type,
        description=(description or "").strip() or None,
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    logger.info("Document %s added to case %s (%s)", document.id, case.id, document_type)
    return document


def get_document(db: Session, document_id: str) -> Optional[CaseDocument]:
    did = to_uuid(document_id)
    if did is None:
        raise ValidationError(["Valid document ID is required"], prefix=PREFIX)
    document = db.get(CaseDocument, did)
    if document is None or document.is_deleted:
        return None
    return document


def get_documents_by_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(CaseDocument)
        .filter(CaseDocument.case_id == to_uuid(case_id), CaseDocument.is_deleted == False)  # noqa: E712
        .order_by(CaseDocument.created_at.desc())
        .all()
    )
    return [_document_to_api(d) for d in rows]


def verify_document(db: Session, document_id: str, admin_id: str) -> CaseDocument:
    document = get_document(db, document_id)
    if document is None:
        raise NotFoundError("Document", document_id)
    document.is_verified = True
    document.verified_by = to_uuid(admin_id)
    document.verified_at = datetime.utcnow()
    db.commit()
    db.refresh(document)
    return document


def delete_document(db: Session, document_id: str) -> bool:
    did = to_uuid(document_id)
    if did is None:
        raise ValidationError(["Valid document ID is required"], prefix=PREFIX)
    updated = (
        db.query(CaseDocument)
        .filter(CaseDocument.id == did, CaseDocument.is_deleted == False)  # noqa: E712
        .update({"is_deleted": True, "deleted_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated > 0


def get_document_stats(db: Session, case_id: str) -> Dict[str, int]:
    row = (
        db.query(
            func.count(CaseDocument.id),
            func.coalesce(func.sum(sql_case((CaseDocument.is_verified == True, 1), else_=0)), 0),  # noqa: E712
            func.coalesce(func.sum(CaseDocument.file_size), 0),
            func.count(func.distinct(CaseDocument.document_type)),
        )
        .filter(CaseDocument.case_id == to_uuid(case_id), CaseDocument.is_deleted == False)  # noqa: E712
        .one()
    )
    total, verified, size, types = (int(v or 0) for v in row)
    return {"totalDocuments": total, "verifiedDocuments": verified, "totalSize": size, "documentTypes": types}


def document_to_api(document: CaseDocument) -> Dict[str, Any]:
    return _document_to_api(document)
