from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.database import get_db
from admissions.middleware.authentication import get_current_user, RoleChecker
from admissions.models.users import User
from admissions.schemas.enums import ApplicationStatus, FeeStatusEnum
from admissions.schemas.students import (
    CourseOfferingAssignment,
    StatusChangeRequest,
    StatusCount,
    StatusHistoryInDB,
    StudentCreate,
    StudentInDB,
    StudentOverview,
)
from admissions.schemas.workflow import WorkflowResult
from admissions.services import history, reporting
from admissions.services.workflow import AdmissionWorkflow, get_workflow

router = APIRouter()

# Role-based access control
allow_admission_entry = RoleChecker(["AdmissionStaff", "Admin", "SuperAdmin"])
allow_status_management = RoleChecker(["Admin", "SuperAdmin"])

@router.post("/students", response_model=WorkflowResult, status_code=status.HTTP_201_CREATED)
async def register_student(
    student_data: StudentCreate,
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_admission_entry)
):
    """
    Enter a new application.
    """
    return await workflow.register_student(student_data, created_by=current_user.id)

@router.get("/students", response_model=List[StudentInDB])
async def list_students(
    status: Optional[ApplicationStatus] = Query(None),
    fee_status: Optional[FeeStatusEnum] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    List applications, optionally filtered by application status or fee status.
    """
    return await reporting.list_students(
        db,
        status=status,
        fee_status=fee_status.value if fee_status else None,
        skip=skip,
        limit=limit,
    )

@router.get("/students/{student_id}", response_model=StudentOverview)
async def get_student(
    student_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get a student with fee summary, document completion and status history.
    """
    return await reporting.get_overview(db, student_id)

@router.put("/students/{student_id}/course-offering", response_model=WorkflowResult)
async def assign_course_offering(
    assignment: CourseOfferingAssignment,
    student_id: int = Path(..., gt=0),
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_admission_entry)
):
    """
    Assign a course offering (and with it the fee structure) to a student.
    """
    return await workflow.assign_course_offering(
        student_id, assignment.course_offering_id, changed_by=current_user.id
    )

@router.post("/students/{student_id}/admit", response_model=WorkflowResult)
async def admit_student(
    payload: StatusChangeRequest,
    student_id: int = Path(..., gt=0),
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_status_management)
):
    """
    Confirm admission of a student whose documents are complete and fees received.
    """
    return await workflow.admit_student(student_id, changed_by=current_user.id, reason=payload.reason)

@router.post("/students/{student_id}/reconcile", response_model=WorkflowResult)
async def reconcile_student(
    student_id: int = Path(..., gt=0),
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_status_management)
):
    """
    Rebuild the fee ledger from payments and re-derive the application status.
    """
    return await workflow.reconcile_student(student_id, changed_by=current_user.id)

@router.get("/students/{student_id}/history", response_model=List[StatusHistoryInDB])
async def get_status_history(
    student_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get the status history of a student, newest first.
    """
    await reporting.get_student(db, student_id)
    return await history.list_history(db, student_id)

@router.get("/dashboard/status-counts", response_model=List[StatusCount])
async def get_status_counts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Number of applications in each status.
    """
    return await reporting.status_counts(db)
