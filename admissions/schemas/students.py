from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from admissions.schemas.enums import ApplicationStatus
from admissions.schemas.documents import CompletionSummary, StudentDocumentInDB
from admissions.schemas.finance import FeeSummary


class StudentBase(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    category: str = "General"
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    previous_school: Optional[str] = None
    previous_board: Optional[str] = None
    previous_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class StudentCreate(StudentBase):
    course_offering_id: Optional[int] = None


class StudentInDB(StudentBase):
    id: int
    application_number: str
    email: Optional[str] = None
    course_offering_id: Optional[int] = None
    academic_year_id: Optional[int] = None
    status: ApplicationStatus
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class CourseOfferingAssignment(BaseModel):
    course_offering_id: int = Field(..., gt=0)


class StatusChangeRequest(BaseModel):
    reason: Optional[str] = None


class StatusHistoryInDB(BaseModel):
    id: int
    student_id: int
    old_status: Optional[ApplicationStatus] = None
    new_status: ApplicationStatus
    reason: Optional[str] = None
    changed_by: Optional[int] = None
    changed_at: datetime
    
    class Config:
        from_attributes = True


class StudentOverview(BaseModel):
    student: StudentInDB
    fee_summary: Optional[FeeSummary] = None
    completion: CompletionSummary
    documents: List[StudentDocumentInDB]
    status_history: List[StatusHistoryInDB]


class StatusCount(BaseModel):
    status: ApplicationStatus
    count: int
