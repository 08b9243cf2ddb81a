"""Read-only queries for dashboards and the student detail page."""
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from admissions.exceptions import StudentNotFound
from admissions.models.admissions import Student
from admissions.models.finance import StudentFeeSummary
from admissions.schemas.documents import StudentDocumentInDB
from admissions.schemas.enums import ApplicationStatus
from admissions.schemas.finance import FeeSummary
from admissions.schemas.students import StatusCount, StatusHistoryInDB, StudentInDB, StudentOverview
from admissions.services import documents, history, ledger


async def get_student(db: AsyncSession, student_id: int) -> Student:
    result = await db.execute(select(Student).where(Student.id == student_id))
    student = result.scalars().first()
    if student is None:
        raise StudentNotFound(student_id)
    return student


async def get_overview(db: AsyncSession, student_id: int) -> StudentOverview:
    student = await get_student(db, student_id)
    summary = await ledger.get_fee_summary(db, student.id)
    return StudentOverview(
        student=StudentInDB.model_validate(student),
        fee_summary=FeeSummary.model_validate(summary) if summary is not None else None,
        completion=await documents.compute_completion(db, student.id),
        documents=[
            StudentDocumentInDB.model_validate(row)
            for row in await documents.list_documents(db, student.id)
        ],
        status_history=[
            StatusHistoryInDB.model_validate(row)
            for row in await history.list_history(db, student.id)
        ],
    )


async def list_students(
    db: AsyncSession,
    status: Optional[ApplicationStatus] = None,
    fee_status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Student]:
    query = select(Student)
    if status is not None:
        query = query.where(Student.status == ApplicationStatus(status).value)
    if fee_status is not None:
        query = query.join(StudentFeeSummary, StudentFeeSummary.student_id == Student.id)
        query = query.where(StudentFeeSummary.fee_status == fee_status)
    query = query.order_by(Student.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def status_counts(db: AsyncSession) -> List[StatusCount]:
    """Number of students per application status, including empty statuses."""
    result = await db.execute(
        select(Student.status, func.count(Student.id)).group_by(Student.status)
    )
    counts = {status: count for status, count in result.all()}
    return [
        StatusCount(status=status, count=counts.get(status.value, 0))
        for status in ApplicationStatus
    ]
