import os

# Must be set before admissions.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from decimal import Decimal
from types import SimpleNamespace

import pytest

from admissions.database import Base, build_engine, build_session_factory
from admissions.models import (
    AcademicYear, Course, CourseOffering, DocumentType, FeeStructure, Role, User,
)
from admissions.schemas.enums import RoleName
from admissions.schemas.students import StudentCreate
from admissions.services.auth import get_password_hash
from admissions.services.workflow import AdmissionWorkflow

TEST_PASSWORD = "correct-horse-battery"
PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture
async def engine(tmp_path):
    # A file database so every session in a test sees the same data
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'admissions.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(session_factory):
    """Roles, one user per role, a course with three offerings, and the document catalog.

    ``offering_id`` carries a 50000 fee, ``second_offering_id`` a 60000 fee and
    ``unpriced_offering_id`` no fee structure at all.
    """
    async with session_factory() as session:
        async with session.begin():
            roles = {name.value: Role(name=name.value) for name in RoleName}
            session.add_all(roles.values())
            await session.flush()

            users = {}
            for name, role in roles.items():
                user = User(
                    role_id=role.id,
                    username=name.lower(),
                    full_name=f"{name} User",
                    email=f"{name.lower()}@college.edu",
                    hashed_password=PASSWORD_HASH,
                )
                session.add(user)
                users[name] = user

            course = Course(course_code="BSC-CS", course_name="B.Sc. Computer Science", duration_years=3)
            current_year = AcademicYear(year_label="2026-27", is_current=True)
            next_year = AcademicYear(year_label="2027-28")
            later_year = AcademicYear(year_label="2028-29")
            session.add_all([course, current_year, next_year, later_year])
            await session.flush()

            offering = CourseOffering(course_id=course.id, academic_year_id=current_year.id)
            second_offering = CourseOffering(course_id=course.id, academic_year_id=next_year.id)
            unpriced_offering = CourseOffering(course_id=course.id, academic_year_id=later_year.id)
            session.add_all([offering, second_offering, unpriced_offering])
            await session.flush()

            session.add_all([
                FeeStructure(course_offering_id=offering.id, total_fee=Decimal("50000.00")),
                FeeStructure(course_offering_id=second_offering.id, total_fee=Decimal("60000.00")),
            ])

            marksheet = DocumentType(code="MARKSHEET_12", name="Class XII Marksheet")
            transfer = DocumentType(code="TC", name="Transfer Certificate")
            identity = DocumentType(code="ID_PROOF", name="Identity Proof")
            photo = DocumentType(code="PHOTO", name="Passport Photo", is_required=False)
            session.add_all([marksheet, transfer, identity, photo])
            await session.flush()

            ids = SimpleNamespace(
                user_ids={name: user.id for name, user in users.items()},
                offering_id=offering.id,
                second_offering_id=second_offering.id,
                unpriced_offering_id=unpriced_offering.id,
                academic_year_id=current_year.id,
                required_doc_ids=[marksheet.id, transfer.id, identity.id],
                optional_doc_id=photo.id,
            )
    return ids


@pytest.fixture
def workflow(session_factory):
    return AdmissionWorkflow(session_factory)


@pytest.fixture
def new_student(workflow, seed):
    """Factory registering a student on the priced offering unless told otherwise."""
    async def _register(full_name="Asha Rao", course_offering_id="default", **details):
        if course_offering_id == "default":
            course_offering_id = seed.offering_id
        result = await workflow.register_student(
            StudentCreate(full_name=full_name, course_offering_id=course_offering_id, **details),
            created_by=seed.user_ids["AdmissionStaff"],
        )
        return result.student
    return _register


@pytest.fixture
def password():
    """Plain-text password shared by every seeded user."""
    return TEST_PASSWORD
