import pytest

from admissions.exceptions import ValidationError
from admissions.schemas.documents import DocumentDeclaration
from admissions.schemas.enums import CompletionState
from admissions.services import documents


@pytest.mark.parametrize(
    "required,declared,expected",
    [
        (3, 0, CompletionState.NONE_DECLARED),
        (3, 2, CompletionState.INCOMPLETE),
        (3, 3, CompletionState.COMPLETE),
        (0, 0, CompletionState.COMPLETE),
    ],
)
def test_classify_completion(required, declared, expected):
    assert documents.classify_completion(required, declared) == expected


async def test_optional_documents_do_not_count(db, seed, new_student):
    student = await new_student()

    await documents.upsert_declarations(
        db, student.id, [DocumentDeclaration(document_type_id=seed.optional_doc_id)], None
    )
    completion = await documents.compute_completion(db, student.id)

    assert completion.state == CompletionState.NONE_DECLARED
    assert completion.required_count == 3
    assert completion.declared_required_count == 0


async def test_upsert_updates_existing_row(db, seed, new_student):
    student = await new_student()
    doc_id = seed.required_doc_ids[0]

    first = await documents.upsert_declarations(db, student.id, [DocumentDeclaration(document_type_id=doc_id)], None)
    second = await documents.upsert_declarations(
        db, student.id, [DocumentDeclaration(document_type_id=doc_id, declared=False, notes="Illegible copy")], None
    )

    assert first[0].id == second[0].id
    rows = await documents.list_documents(db, student.id)
    assert len(rows) == 1
    assert rows[0].declared is False
    assert rows[0].notes == "Illegible copy"


async def test_undeclared_rows_do_not_count(db, seed, new_student):
    student = await new_student()
    declarations = [DocumentDeclaration(document_type_id=doc_id) for doc_id in seed.required_doc_ids]
    declarations[-1] = DocumentDeclaration(document_type_id=seed.required_doc_ids[-1], declared=False)

    await documents.upsert_declarations(db, student.id, declarations, None)
    completion = await documents.compute_completion(db, student.id)

    assert completion.state == CompletionState.INCOMPLETE
    assert completion.declared_required_count == 2


async def test_repeated_type_keeps_last_declaration(db, seed, new_student):
    student = await new_student()
    doc_id = seed.required_doc_ids[0]

    rows = await documents.upsert_declarations(
        db,
        student.id,
        [
            DocumentDeclaration(document_type_id=doc_id, declared=True),
            DocumentDeclaration(document_type_id=doc_id, declared=False),
        ],
        None,
    )

    assert len(rows) == 1
    assert rows[0].declared is False


async def test_unknown_document_type_rejected(db, new_student):
    student = await new_student()

    with pytest.raises(ValidationError):
        await documents.upsert_declarations(db, student.id, [DocumentDeclaration(document_type_id=999)], None)


async def test_empty_declaration_list_rejected(db, new_student):
    student = await new_student()

    with pytest.raises(ValidationError):
        await documents.upsert_declarations(db, student.id, [], None)
