from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.database import get_db
from admissions.middleware.authentication import get_current_user, RoleChecker
from admissions.models.users import User
from admissions.schemas.finance import (
    FeeAdjustmentCreate,
    FeeAdjustmentInDB,
    FeeSummary,
    PaymentCreate,
    PaymentInDB,
)
from admissions.schemas.workflow import FeeAdjustmentResult, PaymentResult
from admissions.services import ledger, reporting
from admissions.services.workflow import AdmissionWorkflow, get_workflow

router = APIRouter()

# Role-based access control
allow_payment_entry = RoleChecker(["AccountsOfficer", "Admin", "SuperAdmin"])
allow_payment_view = RoleChecker(["AccountsOfficer", "Admin", "SuperAdmin", "Principal", "Director"])
allow_fee_adjustment = RoleChecker(["AccountsOfficer"])

# Payment endpoints
@router.post("/students/{student_id}/payments", response_model=PaymentResult, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_data: PaymentCreate,
    student_id: int = Path(..., gt=0),
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_payment_entry)
):
    """
    Record a fee payment for a student.
    """
    return await workflow.record_payment(
        student_id,
        amount=payment_data.amount_paid,
        payment_mode=payment_data.payment_mode,
        receipt_number=payment_data.receipt_number,
        payment_date=payment_data.payment_date,
        recorded_by=current_user.id,
        payment_reference=payment_data.payment_reference,
        notes=payment_data.notes,
    )

@router.get("/students/{student_id}/payments", response_model=List[PaymentInDB])
async def get_student_payments(
    student_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get all payments recorded for a student, newest first.
    """
    await reporting.get_student(db, student_id)
    return await ledger.list_payments(db, student_id=student_id, limit=1000)

@router.get("/payments", response_model=List[PaymentInDB])
async def get_payments(
    student_id: Optional[int] = Query(None, gt=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(allow_payment_view)
):
    """
    Get fee payments across all students.
    """
    return await ledger.list_payments(db, student_id=student_id, skip=skip, limit=limit)

@router.get("/students/{student_id}/fee-summary", response_model=FeeSummary)
async def get_fee_summary(
    student_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get the fee ledger summary for a student.
    """
    await reporting.get_student(db, student_id)
    summary = await ledger.get_fee_summary(db, student_id)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No fee structure assigned to this student"
        )
    return summary

# Fee adjustment endpoints
@router.post("/students/{student_id}/fee-adjustment", response_model=FeeAdjustmentResult, status_code=status.HTTP_201_CREATED)
async def apply_fee_adjustment(
    adjustment_data: FeeAdjustmentCreate,
    student_id: int = Path(..., gt=0),
    workflow: AdmissionWorkflow = Depends(get_workflow),
    current_user: User = Depends(allow_fee_adjustment)
):
    """
    Apply a one-time fee discount. Only accounts officers may do this.
    """
    return await workflow.apply_fee_adjustment(
        student_id,
        adjusted_fee=adjustment_data.adjusted_fee,
        reason=adjustment_data.adjustment_reason,
        approval_note=adjustment_data.director_approval_note,
        applied_by=current_user.id,
    )

@router.get("/students/{student_id}/fee-adjustment", response_model=Optional[FeeAdjustmentInDB])
async def get_fee_adjustment(
    student_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get the active fee adjustment for a student, if any.
    """
    await reporting.get_student(db, student_id)
    return await ledger.get_active_adjustment(db, student_id)
