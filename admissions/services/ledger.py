"""Fee ledger: payments, the per-student fee summary, and fee adjustments.

The summary row is a projection. ``total_paid`` is always re-aggregated from
``fee_payments`` rather than incremented, so a summary can be rebuilt at any
time from the payment rows alone.
"""
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from sqlalchemy import and_, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from admissions.exceptions import DuplicateReceipt, FeeAdjustmentRefused, NoFeeStructureAssigned
from admissions.models.admissions import FeeStructure, Student
from admissions.models.audit import AuditLog
from admissions.models.finance import FeeAdjustment, FeePayment, StudentFeeSummary
from admissions.schemas.enums import FeeStatusEnum

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def classify_fee(total_fee: Decimal, total_paid: Decimal) -> FeeStatusEnum:
    if total_paid <= 0:
        return FeeStatusEnum.FEE_PENDING
    if total_paid < total_fee:
        return FeeStatusEnum.FEE_PARTIAL
    # Overpayment is tolerated and still counts as received
    return FeeStatusEnum.FEE_RECEIVED


async def resolve_fee_structure(db: AsyncSession, course_offering_id: Optional[int]) -> Optional[FeeStructure]:
    """Active fee structure for a course offering (latest wins), if any."""
    if course_offering_id is None:
        return None
    result = await db.execute(
        select(FeeStructure)
        .where(
            and_(
                FeeStructure.course_offering_id == course_offering_id,
                FeeStructure.is_active.is_(True),
            )
        )
        .order_by(desc(FeeStructure.id))
        .limit(1)
    )
    return result.scalars().first()


async def get_active_adjustment(db: AsyncSession, student_id: int) -> Optional[FeeAdjustment]:
    result = await db.execute(
        select(FeeAdjustment)
        .where(
            and_(
                FeeAdjustment.student_id == student_id,
                FeeAdjustment.is_active.is_(True),
            )
        )
        .order_by(desc(FeeAdjustment.id))
        .limit(1)
    )
    return result.scalars().first()


async def sum_payments(db: AsyncSession, student_id: int) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(FeePayment.amount_paid), 0))
        .where(FeePayment.student_id == student_id)
    )
    return to_money(result.scalar())


async def get_fee_summary(db: AsyncSession, student_id: int) -> Optional[StudentFeeSummary]:
    result = await db.execute(
        select(StudentFeeSummary).where(StudentFeeSummary.student_id == student_id)
    )
    return result.scalars().first()


async def recompute_fee_summary(
    db: AsyncSession,
    student: Student,
    require_structure: bool = False,
) -> Optional[StudentFeeSummary]:
    """
    Rebuild the student's fee summary from the fee structure, any active
    adjustment, and the full set of payment rows.

    Returns the stored summary untouched (possibly None) when no fee structure
    resolves, unless ``require_structure`` is set, in which case
    NoFeeStructureAssigned is raised.
    """
    structure = await resolve_fee_structure(db, student.course_offering_id)
    if structure is None:
        if require_structure:
            raise NoFeeStructureAssigned(
                f"No active fee structure for the course offering of student {student.id}"
            )
        return await get_fee_summary(db, student.id)

    adjustment = await get_active_adjustment(db, student.id)
    total_fee = to_money(adjustment.adjusted_fee if adjustment else structure.total_fee)
    total_paid = await sum_payments(db, student.id)

    summary = await get_fee_summary(db, student.id)
    if summary is None:
        summary = StudentFeeSummary(student_id=student.id)
        db.add(summary)

    summary.fee_structure_id = structure.id
    summary.total_fee = total_fee
    summary.total_paid = total_paid
    # May go negative on overpayment; fee_status carries the display signal
    summary.balance = total_fee - total_paid
    summary.fee_status = classify_fee(total_fee, total_paid).value
    await db.flush()
    return summary


async def record_payment(
    db: AsyncSession,
    student: Student,
    amount: Decimal,
    payment_mode: str,
    receipt_number: str,
    payment_date: date,
    recorded_by: Optional[int],
    payment_reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> Tuple[FeePayment, StudentFeeSummary]:
    """
    Insert a payment row and recompute the ledger in the caller's transaction.

    Raises:
        NoFeeStructureAssigned: the student's course offering has no fee structure
        DuplicateReceipt: the receipt number is already used by any payment
    """
    structure = await resolve_fee_structure(db, student.course_offering_id)
    if structure is None:
        raise NoFeeStructureAssigned(
            f"Cannot record a payment: student {student.id} has no fee structure assigned"
        )

    existing = await db.execute(
        select(FeePayment.id).where(FeePayment.receipt_number == receipt_number)
    )
    if existing.scalars().first() is not None:
        raise DuplicateReceipt(receipt_number)

    payment = FeePayment(
        student_id=student.id,
        amount_paid=amount,
        payment_mode=payment_mode,
        payment_reference=payment_reference,
        receipt_number=receipt_number,
        payment_date=payment_date,
        notes=notes,
        recorded_by=recorded_by,
    )
    db.add(payment)
    try:
        await db.flush()
    except IntegrityError as exc:
        # A concurrent insert can win the race past the pre-check
        if "receipt_number" in str(exc.orig):
            raise DuplicateReceipt(receipt_number) from exc
        raise

    summary = await recompute_fee_summary(db, student, require_structure=True)
    return payment, summary


async def apply_fee_adjustment(
    db: AsyncSession,
    student: Student,
    adjusted_fee: Decimal,
    reason: str,
    approval_note: Optional[str],
    applied_by: Optional[int],
) -> Tuple[FeeAdjustment, StudentFeeSummary]:
    """
    Apply a one-time discount to the student's fee.

    Only one active adjustment is allowed, it must lower the fee, and it
    cannot be applied once anything has been paid.
    """
    structure = await resolve_fee_structure(db, student.course_offering_id)
    if structure is None:
        raise NoFeeStructureAssigned(
            f"Cannot adjust fees: student {student.id} has no fee structure assigned"
        )

    reason = (reason or "").strip()
    if not reason:
        raise FeeAdjustmentRefused("Adjustment reason cannot be empty")

    original_fee = to_money(structure.total_fee)
    adjusted_fee = to_money(adjusted_fee)
    if adjusted_fee < 0:
        raise FeeAdjustmentRefused("Adjusted fee cannot be negative")
    if adjusted_fee >= original_fee:
        raise FeeAdjustmentRefused("Adjusted fee must be less than original fee")

    if await get_active_adjustment(db, student.id) is not None:
        raise FeeAdjustmentRefused(
            "An active fee adjustment already exists for this student. Only one discount is allowed."
        )
    if await sum_payments(db, student.id) > 0:
        raise FeeAdjustmentRefused("Cannot apply discount after partial payment has been made")

    discount_amount = original_fee - adjusted_fee
    discount_percentage = (discount_amount * 100 / original_fee).quantize(CENTS, rounding=ROUND_HALF_UP)
    adjustment = FeeAdjustment(
        student_id=student.id,
        original_fee=original_fee,
        adjusted_fee=adjusted_fee,
        discount_amount=discount_amount,
        discount_percentage=discount_percentage,
        adjustment_reason=reason,
        director_approval_note=(approval_note or "").strip() or None,
        applied_by=applied_by,
        is_active=True,
    )
    db.add(adjustment)
    await db.flush()

    db.add(AuditLog(
        user_id=applied_by,
        action="FEE_ADJUSTMENT_APPLIED",
        entity="fee_adjustments",
        entity_id=adjustment.id,
        old_value={"original_fee": str(original_fee)},
        new_value={
            "adjusted_fee": str(adjusted_fee),
            "discount_amount": str(discount_amount),
            "discount_percentage": str(discount_percentage),
            "reason": reason,
        },
    ))

    summary = await recompute_fee_summary(db, student, require_structure=True)
    return adjustment, summary


async def deactivate_adjustments(db: AsyncSession, student_id: int, changed_by: Optional[int]) -> int:
    """Retire active adjustments, e.g. when the student moves to another offering."""
    result = await db.execute(
        select(FeeAdjustment).where(
            and_(
                FeeAdjustment.student_id == student_id,
                FeeAdjustment.is_active.is_(True),
            )
        )
    )
    adjustments = result.scalars().all()
    for adjustment in adjustments:
        adjustment.is_active = False
        db.add(AuditLog(
            user_id=changed_by,
            action="FEE_ADJUSTMENT_DEACTIVATED",
            entity="fee_adjustments",
            entity_id=adjustment.id,
            old_value={"is_active": True},
            new_value={"is_active": False},
        ))
    if adjustments:
        await db.flush()
    return len(adjustments)


async def list_payments(
    db: AsyncSession,
    student_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[FeePayment]:
    query = select(FeePayment)
    if student_id is not None:
        query = query.where(FeePayment.student_id == student_id)
    query = query.order_by(desc(FeePayment.payment_date), desc(FeePayment.id)).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
