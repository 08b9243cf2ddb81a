from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.future import select

from admissions.exceptions import DuplicateReceipt, FeeAdjustmentRefused, NoFeeStructureAssigned
from admissions.models import AuditLog, FeePayment, Student
from admissions.schemas.enums import FeeStatusEnum
from admissions.services import ledger


@pytest.mark.parametrize(
    "total_fee,total_paid,expected",
    [
        ("50000", "0", FeeStatusEnum.FEE_PENDING),
        ("50000", "0.01", FeeStatusEnum.FEE_PARTIAL),
        ("50000", "49999.99", FeeStatusEnum.FEE_PARTIAL),
        ("50000", "50000", FeeStatusEnum.FEE_RECEIVED),
        ("50000", "55000", FeeStatusEnum.FEE_RECEIVED),
        ("0", "0", FeeStatusEnum.FEE_PENDING),
    ],
)
def test_classify_fee(total_fee, total_paid, expected):
    assert ledger.classify_fee(Decimal(total_fee), Decimal(total_paid)) == expected


def test_to_money_rounds_to_cents():
    assert ledger.to_money("10.005") == Decimal("10.01")
    assert ledger.to_money(20000) == Decimal("20000.00")
    assert ledger.to_money(None) == Decimal("0.00")


async def _student(db, student_id):
    return (await db.execute(select(Student).where(Student.id == student_id))).scalars().first()


async def test_recompute_aggregates_all_payments(db, new_student):
    student = await new_student()
    row = await _student(db, student.id)
    for receipt, amount in (("R-1", "15000"), ("R-2", "5000.50")):
        db.add(FeePayment(
            student_id=row.id, amount_paid=Decimal(amount), payment_mode="Cash",
            receipt_number=receipt, payment_date=date(2026, 7, 1),
        ))
    await db.flush()

    summary = await ledger.recompute_fee_summary(db, row)

    assert summary.total_fee == Decimal("50000.00")
    assert summary.total_paid == Decimal("20000.50")
    assert summary.balance == Decimal("29999.50")
    assert summary.fee_status == FeeStatusEnum.FEE_PARTIAL.value


async def test_recompute_without_structure_keeps_no_summary(db, new_student, seed):
    student = await new_student(course_offering_id=None)
    row = await _student(db, student.id)

    assert await ledger.recompute_fee_summary(db, row) is None
    with pytest.raises(NoFeeStructureAssigned):
        await ledger.recompute_fee_summary(db, row, require_structure=True)


async def test_overpayment_gives_negative_balance(db, new_student):
    student = await new_student()
    row = await _student(db, student.id)

    _, summary = await ledger.record_payment(
        db, row, amount=Decimal("55000.00"), payment_mode="Online", receipt_number="R-OVER",
        payment_date=date(2026, 7, 1), recorded_by=None,
    )

    assert summary.fee_status == FeeStatusEnum.FEE_RECEIVED.value
    assert summary.balance == Decimal("-5000.00")


async def test_receipt_numbers_are_unique_across_students(db, new_student):
    first = await _student(db, (await new_student("First")).id)
    second = await _student(db, (await new_student("Second")).id)

    await ledger.record_payment(
        db, first, amount=Decimal("100.00"), payment_mode="Cash", receipt_number="R-SHARED",
        payment_date=date(2026, 7, 1), recorded_by=None,
    )
    with pytest.raises(DuplicateReceipt):
        await ledger.record_payment(
            db, second, amount=Decimal("100.00"), payment_mode="Cash", receipt_number="R-SHARED",
            payment_date=date(2026, 7, 1), recorded_by=None,
        )


async def test_payment_requires_fee_structure(db, new_student, seed):
    student = await new_student(course_offering_id=seed.unpriced_offering_id)
    row = await _student(db, student.id)

    with pytest.raises(NoFeeStructureAssigned):
        await ledger.record_payment(
            db, row, amount=Decimal("100.00"), payment_mode="Cash", receipt_number="R-NONE",
            payment_date=date(2026, 7, 1), recorded_by=None,
        )


async def test_adjustment_replaces_structure_total(db, new_student, seed):
    student = await new_student()
    row = await _student(db, student.id)
    officer = seed.user_ids["AccountsOfficer"]

    adjustment, summary = await ledger.apply_fee_adjustment(
        db, row, Decimal("40000"), "Merit scholarship", "Approved by director", officer,
    )

    assert adjustment.discount_amount == Decimal("10000.00")
    assert adjustment.discount_percentage == Decimal("20.00")
    assert summary.total_fee == Decimal("40000.00")
    assert summary.balance == Decimal("40000.00")

    audit = (await db.execute(
        select(AuditLog).where(AuditLog.action == "FEE_ADJUSTMENT_APPLIED")
    )).scalars().all()
    assert len(audit) == 1
    assert audit[0].entity_id == adjustment.id
    assert audit[0].user_id == officer


@pytest.mark.parametrize("adjusted_fee", ["50000", "60000", "-1"])
async def test_adjustment_must_lower_fee(db, new_student, adjusted_fee):
    row = await _student(db, (await new_student()).id)

    with pytest.raises(FeeAdjustmentRefused):
        await ledger.apply_fee_adjustment(db, row, Decimal(adjusted_fee), "Discount", None, None)


async def test_only_one_active_adjustment(db, new_student):
    row = await _student(db, (await new_student()).id)
    await ledger.apply_fee_adjustment(db, row, Decimal("45000"), "Sibling discount", None, None)

    with pytest.raises(FeeAdjustmentRefused):
        await ledger.apply_fee_adjustment(db, row, Decimal("40000"), "Second discount", None, None)


async def test_no_adjustment_after_payment(db, new_student):
    row = await _student(db, (await new_student()).id)
    await ledger.record_payment(
        db, row, amount=Decimal("1000.00"), payment_mode="Cash", receipt_number="R-ADV",
        payment_date=date(2026, 7, 1), recorded_by=None,
    )

    with pytest.raises(FeeAdjustmentRefused):
        await ledger.apply_fee_adjustment(db, row, Decimal("40000"), "Late discount", None, None)


async def test_deactivated_adjustment_no_longer_applies(db, new_student):
    row = await _student(db, (await new_student()).id)
    await ledger.apply_fee_adjustment(db, row, Decimal("45000"), "Sibling discount", None, None)

    assert await ledger.deactivate_adjustments(db, row.id, None) == 1
    summary = await ledger.recompute_fee_summary(db, row)

    assert await ledger.get_active_adjustment(db, row.id) is None
    assert summary.total_fee == Decimal("50000.00")
