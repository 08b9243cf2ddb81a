from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.database import get_db
from admissions.middleware.authentication import get_current_user, RoleChecker
from admissions.models.users import User
from admissions.schemas.documents import (
    BulkDocumentDeclaration,
    DocumentDeclaration,
    StudentDocumentInDB,
)
from admissions.schemas.workflow import DocumentResult
from admissions.services import documents, reporting
from admissions.services.workflow import AdmissionWorkflow, get_workflow

router = APIRouter()

# Role-based access control
allow_document_management = RoleChecker(["DocumentOfficer", "Admin", "SuperAdmin"])

@router.post("/students/{student_id}/documents", response_model=DocumentResult, status_code=status.HTTP_201_CREATED)
async def declare_document(
    declaration: DocumentDeclaration,
    student_id: int = Path(..., gt=0),
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_document_management)
):
    """
    Declare (or un-declare) a single document for a student.
    """
    return await workflow.declare_documents(student_id, [declaration], declared_by=current_user.id)

@router.post("/students/{student_id}/documents/bulk", response_model=DocumentResult, status_code=status.HTTP_201_CREATED)
async def declare_documents_bulk(
    payload: BulkDocumentDeclaration,
    student_id: int = Path(..., gt=0),
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_document_management)
):
    """
    Declare several documents for a student in one transaction.
    """
    return await workflow.declare_documents(student_id, payload.documents, declared_by=current_user.id)

@router.get("/students/{student_id}/documents", response_model=List[StudentDocumentInDB])
async def list_student_documents(
    student_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get the document declarations recorded for a student.
    """
    await reporting.get_student(db, student_id)
    return await documents.list_documents(db, student_id)
