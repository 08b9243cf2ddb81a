"""Admission workflow engine.

Every write that can move an application (registering a student, assigning a
course offering, declaring documents, recording a payment, adjusting fees,
admitting) runs as one transaction:

    lock student -> apply write -> recompute aggregates -> derive status
    -> update status + append history (only on change) -> commit

The student row is locked ``FOR UPDATE`` first, so two officers writing to
the same student serialize while different students never contend. Any
failure aborts the whole transaction; nothing partial is ever committed.
"""
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from admissions.config import settings
from admissions.database import AsyncSessionLocal
from admissions.exceptions import (
    AdmissionRefused,
    ConcurrencyConflict,
    StorageFailure,
    StudentNotFound,
    ValidationError,
    WorkflowError,
)
from admissions.models.admissions import CourseOffering, Student
from admissions.models.audit import AuditLog
from admissions.schemas.documents import DocumentDeclaration, StudentDocumentInDB
from admissions.schemas.enums import ApplicationStatus, PaymentModeEnum
from admissions.schemas.finance import FeeAdjustmentInDB, FeeSummary, PaymentInDB
from admissions.schemas.students import StatusHistoryInDB, StudentCreate, StudentInDB
from admissions.schemas.workflow import (
    DocumentResult,
    FeeAdjustmentResult,
    PaymentResult,
    WorkflowResult,
)
from admissions.services import documents, history, ledger
from admissions.services.status import derive_status

logger = logging.getLogger(__name__)

# SQLSTATEs for serialization failure and deadlock
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def _is_serialization_failure(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in RETRYABLE_SQLSTATES:
        return True
    return "database is locked" in str(orig)


def _validate_amount(amount) -> Decimal:
    try:
        value = ledger.to_money(amount)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid payment amount: {amount!r}")
    if value <= 0:
        raise ValidationError("Payment amount must be positive")
    return value


class AdmissionWorkflow:
    """Transactional boundary around every write that can change an application's status."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        awaiting_fee_status: Union[ApplicationStatus, str, None] = None,
    ):
        self.session_factory = session_factory
        self.awaiting_fee_status = ApplicationStatus(awaiting_fee_status or settings.AWAITING_FEE_STATUS)

    @asynccontextmanager
    async def _transaction(self, operation: str):
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    yield db
        except WorkflowError as exc:
            logger.warning(f"{operation} refused [{exc.kind}]: {exc.message}")
            raise
        except DBAPIError as exc:
            if _is_serialization_failure(exc):
                logger.warning(f"{operation} hit a serialization conflict: {exc.orig}")
                raise ConcurrencyConflict(
                    f"{operation} conflicted with a concurrent update; retry the operation"
                ) from exc
            logger.error(f"{operation} failed in storage: {exc}", exc_info=True)
            raise StorageFailure(f"{operation} failed; no changes were saved") from exc
        except SQLAlchemyError as exc:
            logger.error(f"{operation} failed in storage: {exc}", exc_info=True)
            raise StorageFailure(f"{operation} failed; no changes were saved") from exc
        except Exception as exc:
            logger.error(f"{operation} failed unexpectedly: {exc}", exc_info=True)
            raise StorageFailure(f"{operation} failed; no changes were saved") from exc

    async def _lock_student(self, db: AsyncSession, student_id: int) -> Student:
        result = await db.execute(
            select(Student).where(Student.id == student_id).with_for_update()
        )
        student = result.scalars().first()
        if student is None:
            raise StudentNotFound(student_id)
        return student

    async def _settle(
        self,
        db: AsyncSession,
        student: Student,
        reason: str,
        changed_by: Optional[int],
    ) -> dict:
        """Derive the status from fresh aggregates and record the transition if any."""
        completion = await documents.compute_completion(db, student.id)
        summary = await ledger.get_fee_summary(db, student.id)

        previous_status = ApplicationStatus(student.status)
        new_status = derive_status(previous_status, completion.state, summary, self.awaiting_fee_status)

        entry = None
        if new_status != previous_status:
            student.status = new_status.value
            await db.flush()
            entry = await history.record_transition(
                db, student.id, previous_status, new_status, reason, changed_by
            )
        await db.refresh(student)

        return {
            "student": StudentInDB.model_validate(student),
            "previous_status": previous_status,
            "status": new_status,
            "fee_summary": FeeSummary.model_validate(summary) if summary is not None else None,
            "completion": completion,
            "history_entry": StatusHistoryInDB.model_validate(entry) if entry is not None else None,
        }

    def _log_outcome(self, operation: str, outcome: dict) -> None:
        student = outcome["student"]
        if outcome["history_entry"] is not None:
            logger.info(
                f"{operation}: student {student.id} [{student.application_number}] "
                f"{outcome['previous_status'].value} -> {outcome['status'].value}"
            )
        else:
            logger.info(
                f"{operation}: student {student.id} [{student.application_number}] "
                f"remains {outcome['status'].value}"
            )

    async def _next_application_number(self, db: AsyncSession) -> str:
        year = datetime.now().year
        prefix = f"{settings.APPLICATION_NUMBER_PREFIX}{year}"
        # Numbers are zero-padded, so the string maximum is the latest one
        result = await db.execute(
            select(func.max(Student.application_number)).where(Student.application_number.like(f"{prefix}%"))
        )
        latest = result.scalar()
        sequence = int(latest[len(prefix):]) + 1 if latest else 1
        return f"{prefix}{sequence:04d}"

    async def register_student(self, details: StudentCreate, created_by: Optional[int] = None) -> WorkflowResult:
        """Create an application in APPLICATION_ENTERED; no history row is written."""
        async with self._transaction("register_student") as db:
            offering = None
            if details.course_offering_id is not None:
                offering = await db.get(CourseOffering, details.course_offering_id)
                if offering is None:
                    raise ValidationError("Invalid course offering")

            student = Student(
                **details.model_dump(exclude={"course_offering_id"}),
                application_number=await self._next_application_number(db),
                course_offering_id=offering.id if offering else None,
                academic_year_id=offering.academic_year_id if offering else None,
                status=ApplicationStatus.APPLICATION_ENTERED.value,
                created_by=created_by,
            )
            db.add(student)
            try:
                await db.flush()
            except IntegrityError as exc:
                raise ConcurrencyConflict("Application number already taken; retry the registration") from exc

            summary = await ledger.recompute_fee_summary(db, student)
            completion = await documents.compute_completion(db, student.id)
            await db.refresh(student)
            result = WorkflowResult(
                student=StudentInDB.model_validate(student),
                previous_status=ApplicationStatus.APPLICATION_ENTERED,
                status=ApplicationStatus.APPLICATION_ENTERED,
                fee_summary=FeeSummary.model_validate(summary) if summary is not None else None,
                completion=completion,
            )
        logger.info(f"Registered student {result.student.id} [{result.student.application_number}]")
        return result

    async def assign_course_offering(
        self,
        student_id: int,
        course_offering_id: int,
        changed_by: Optional[int] = None,
    ) -> WorkflowResult:
        """Attach a course offering, and through it a fee structure, to a student."""
        async with self._transaction("assign_course_offering") as db:
            student = await self._lock_student(db, student_id)
            offering = await db.get(CourseOffering, course_offering_id)
            if offering is None:
                raise ValidationError("Invalid course offering")

            previous_offering_id = student.course_offering_id
            student.course_offering_id = offering.id
            student.academic_year_id = offering.academic_year_id
            await db.flush()

            if previous_offering_id is not None and previous_offering_id != offering.id:
                # A discount granted against the old fee does not carry over
                await ledger.deactivate_adjustments(db, student.id, changed_by)

            await ledger.recompute_fee_summary(db, student, require_structure=True)
            outcome = await self._settle(
                db, student, f"Course offering {offering.id} assigned", changed_by
            )
        self._log_outcome("assign_course_offering", outcome)
        return WorkflowResult(**outcome)

    async def declare_documents(
        self,
        student_id: int,
        declarations: Iterable[DocumentDeclaration],
        declared_by: Optional[int] = None,
    ) -> DocumentResult:
        """Upsert document declarations and re-derive the status."""
        declarations = list(declarations)
        if not declarations:
            raise ValidationError("At least one document declaration is required")

        async with self._transaction("declare_documents") as db:
            student = await self._lock_student(db, student_id)
            rows = await documents.upsert_declarations(db, student.id, declarations, declared_by)
            outcome = await self._settle(
                db, student, f"{len(rows)} document declaration(s) updated", declared_by
            )
            declared = [StudentDocumentInDB.model_validate(row) for row in rows]
        self._log_outcome("declare_documents", outcome)
        return DocumentResult(**outcome, documents=declared)

    async def record_payment(
        self,
        student_id: int,
        amount,
        payment_mode: Union[PaymentModeEnum, str],
        receipt_number: str,
        payment_date: Optional[date] = None,
        recorded_by: Optional[int] = None,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        """Record a payment, recompute the ledger and re-derive the status.

        The receipt number doubles as an idempotency key: replaying a payment
        with the same receipt fails with DuplicateReceipt and changes nothing.
        """
        amount = _validate_amount(amount)
        receipt_number = (receipt_number or "").strip()
        if not receipt_number:
            raise ValidationError("receipt_number is required")
        try:
            payment_mode = PaymentModeEnum(payment_mode).value
        except ValueError:
            raise ValidationError(f"Unsupported payment mode: {payment_mode!r}")

        async with self._transaction("record_payment") as db:
            student = await self._lock_student(db, student_id)
            payment, _ = await ledger.record_payment(
                db,
                student,
                amount=amount,
                payment_mode=payment_mode,
                receipt_number=receipt_number,
                payment_date=payment_date or date.today(),
                recorded_by=recorded_by,
                payment_reference=payment_reference,
                notes=notes,
            )
            outcome = await self._settle(
                db, student, f"Payment of {amount} recorded (receipt {receipt_number})", recorded_by
            )
            await db.refresh(payment)
            recorded = PaymentInDB.model_validate(payment)
        self._log_outcome("record_payment", outcome)
        return PaymentResult(**outcome, payment=recorded)

    async def apply_fee_adjustment(
        self,
        student_id: int,
        adjusted_fee,
        reason: str,
        approval_note: Optional[str] = None,
        applied_by: Optional[int] = None,
    ) -> FeeAdjustmentResult:
        """Apply a one-time discount; the adjusted fee replaces the structure total."""
        try:
            adjusted_fee = ledger.to_money(adjusted_fee)
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"Invalid adjusted fee: {adjusted_fee!r}")

        async with self._transaction("apply_fee_adjustment") as db:
            student = await self._lock_student(db, student_id)
            adjustment, _ = await ledger.apply_fee_adjustment(
                db, student, adjusted_fee, reason, approval_note, applied_by
            )
            outcome = await self._settle(
                db, student, f"Fee adjusted to {adjustment.adjusted_fee}", applied_by
            )
            await db.refresh(adjustment)
            applied = FeeAdjustmentInDB.model_validate(adjustment)
        self._log_outcome("apply_fee_adjustment", outcome)
        return FeeAdjustmentResult(**outcome, adjustment=applied)

    async def admit_student(
        self,
        student_id: int,
        changed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> WorkflowResult:
        """Confirm admission of a fully documented, fully paid applicant."""
        async with self._transaction("admit_student") as db:
            student = await self._lock_student(db, student_id)
            completion = await documents.compute_completion(db, student.id)
            summary = await ledger.get_fee_summary(db, student.id)

            previous_status = ApplicationStatus(student.status)
            if previous_status == ApplicationStatus.ADMITTED:
                raise AdmissionRefused(f"Student {student.id} is already admitted")
            derived = derive_status(previous_status, completion.state, summary, self.awaiting_fee_status)
            if derived != ApplicationStatus.FEE_RECEIVED:
                raise AdmissionRefused(
                    f"Student {student.id} cannot be admitted from {derived.value}; "
                    f"documents must be complete and fees received"
                )

            student.status = ApplicationStatus.ADMITTED.value
            await db.flush()
            entry = await history.record_transition(
                db, student.id, previous_status, ApplicationStatus.ADMITTED,
                reason or "Admission confirmed", changed_by,
            )
            db.add(AuditLog(
                user_id=changed_by,
                action="STUDENT_ADMITTED",
                entity="students",
                entity_id=student.id,
                old_value={"status": previous_status.value},
                new_value={"status": ApplicationStatus.ADMITTED.value},
            ))
            await db.flush()
            await db.refresh(student)
            outcome = {
                "student": StudentInDB.model_validate(student),
                "previous_status": previous_status,
                "status": ApplicationStatus.ADMITTED,
                "fee_summary": FeeSummary.model_validate(summary) if summary is not None else None,
                "completion": completion,
                "history_entry": StatusHistoryInDB.model_validate(entry) if entry is not None else None,
            }
        self._log_outcome("admit_student", outcome)
        return WorkflowResult(**outcome)

    async def reconcile_student(self, student_id: int, changed_by: Optional[int] = None) -> WorkflowResult:
        """Rebuild the ledger from payment rows and re-derive the status.

        Used after master data changes (e.g. a fee structure total is edited);
        past history rows are never rewritten.
        """
        async with self._transaction("reconcile_student") as db:
            student = await self._lock_student(db, student_id)
            await ledger.recompute_fee_summary(db, student)
            outcome = await self._settle(db, student, "Status reconciled", changed_by)
        self._log_outcome("reconcile_student", outcome)
        return WorkflowResult(**outcome)


def get_workflow() -> AdmissionWorkflow:
    """FastAPI dependency providing the engine bound to the application database."""
    return AdmissionWorkflow(AsyncSessionLocal)
