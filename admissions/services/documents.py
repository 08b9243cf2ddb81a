import logging
from typing import Iterable, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from admissions.exceptions import ValidationError
from admissions.models.admissions import DocumentType, StudentDocument
from admissions.schemas.documents import CompletionSummary, DocumentDeclaration
from admissions.schemas.enums import CompletionState

logger = logging.getLogger(__name__)


def classify_completion(required_count: int, declared_required_count: int) -> CompletionState:
    # With nothing required the checklist is vacuously complete
    if required_count == 0:
        return CompletionState.COMPLETE
    if declared_required_count == 0:
        return CompletionState.NONE_DECLARED
    if declared_required_count < required_count:
        return CompletionState.INCOMPLETE
    return CompletionState.COMPLETE


async def compute_completion(db: AsyncSession, student_id: int) -> CompletionSummary:
    """Re-count required and declared-required documents for a student."""
    required_result = await db.execute(
        select(func.count(DocumentType.id)).where(DocumentType.is_required.is_(True))
    )
    required_count = required_result.scalar() or 0

    declared_result = await db.execute(
        select(func.count(func.distinct(StudentDocument.document_type_id)))
        .join(DocumentType, StudentDocument.document_type_id == DocumentType.id)
        .where(
            and_(
                StudentDocument.student_id == student_id,
                StudentDocument.declared.is_(True),
                DocumentType.is_required.is_(True),
            )
        )
    )
    declared_required_count = declared_result.scalar() or 0

    return CompletionSummary(
        state=classify_completion(required_count, declared_required_count),
        required_count=required_count,
        declared_required_count=declared_required_count,
    )


async def upsert_declarations(
    db: AsyncSession,
    student_id: int,
    declarations: Iterable[DocumentDeclaration],
    declared_by: Optional[int],
) -> List[StudentDocument]:
    """
    Create or update one student document row per declaration.

    A document type repeated in the same call keeps the last declaration.

    Raises:
        ValidationError: no declarations, or an unknown document type
    """
    by_type = {}
    for declaration in declarations:
        by_type[declaration.document_type_id] = declaration
    if not by_type:
        raise ValidationError("At least one document declaration is required")

    type_result = await db.execute(
        select(DocumentType.id).where(DocumentType.id.in_(list(by_type)))
    )
    missing_type_ids = set(by_type.keys()) - set(type_result.scalars().all())
    if missing_type_ids:
        raise ValidationError(f"Unknown document types: {sorted(missing_type_ids)}")

    existing_result = await db.execute(
        select(StudentDocument).where(
            and_(
                StudentDocument.student_id == student_id,
                StudentDocument.document_type_id.in_(list(by_type)),
            )
        )
    )
    existing = {document.document_type_id: document for document in existing_result.scalars().all()}

    documents = []
    for document_type_id, declaration in by_type.items():
        document = existing.get(document_type_id)
        if document is None:
            document = StudentDocument(student_id=student_id, document_type_id=document_type_id)
            db.add(document)
        document.declared = declaration.declared
        document.notes = declaration.notes
        document.added_by = declared_by
        documents.append(document)

    await db.flush()
    for document in documents:
        await db.refresh(document)
    logger.debug(f"Upserted {len(documents)} document declarations for student {student_id}")
    return documents


async def list_documents(db: AsyncSession, student_id: int) -> List[StudentDocument]:
    result = await db.execute(
        select(StudentDocument)
        .where(StudentDocument.student_id == student_id)
        .order_by(StudentDocument.document_type_id)
    )
    return list(result.scalars().all())
