from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from admissions.schemas.enums import CompletionState


class DocumentDeclaration(BaseModel):
    document_type_id: int = Field(..., gt=0)
    declared: bool = True
    notes: Optional[str] = None


class BulkDocumentDeclaration(BaseModel):
    documents: List[DocumentDeclaration] = Field(..., min_length=1)


class StudentDocumentInDB(BaseModel):
    id: int
    student_id: int
    document_type_id: int
    declared: bool
    notes: Optional[str] = None
    added_by: Optional[int] = None
    added_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class CompletionSummary(BaseModel):
    state: CompletionState
    required_count: int
    declared_required_count: int
