"""Admission workflow schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the reference data (courses, academic years, offerings, fee
structures, document types), the student aggregate (students, declared
documents, fee summary, status history) and the append-only payment and
audit tables. Seeds the back-office roles.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

APPLICATION_STATUSES = (
    "APPLICATION_ENTERED", "DOCUMENTS_INCOMPLETE", "DOCUMENTS_DECLARED",
    "FEE_PENDING", "FEE_PARTIAL", "FEE_RECEIVED", "ADMITTED",
)
FEE_STATUSES = ("FEE_PENDING", "FEE_PARTIAL", "FEE_RECEIVED")
ROLES = (
    ("SuperAdmin", "Full system access"),
    ("Admin", "Administration and status management"),
    ("AdmissionStaff", "Application entry"),
    ("DocumentOfficer", "Document verification"),
    ("AccountsOfficer", "Fee collection and adjustments"),
    ("Principal", "Read-only oversight"),
    ("Director", "Read-only oversight and discount approval"),
)


def _in(column, values):
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


def _timestamp(name, **kwargs):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), **kwargs)


def upgrade():
    roles = op.create_table(
        "roles",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("description", sa.Text),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("role_id", sa.Integer, sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.Text, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("course_code", sa.String(20), nullable=False, unique=True),
        sa.Column("course_name", sa.String(255), nullable=False),
        sa.Column("duration_years", sa.Integer),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
    )
    op.create_table(
        "academic_years",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("year_label", sa.String(20), nullable=False, unique=True),
        sa.Column("start_date", sa.Date),
        sa.Column("end_date", sa.Date),
        sa.Column("is_current", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "course_offerings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("course_id", sa.Integer, sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("academic_year_id", sa.Integer, sa.ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False),
        sa.Column("intake_capacity", sa.Integer),
        sa.Column("is_open", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("course_id", "academic_year_id", name="uq_course_offering"),
    )
    op.create_table(
        "fee_structures",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("course_offering_id", sa.Integer, sa.ForeignKey("course_offerings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("total_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("total_fee >= 0", name="check_fee_structure_total"),
    )
    op.create_table(
        "document_types",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "students",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("application_number", sa.String(50), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("date_of_birth", sa.Date),
        sa.Column("gender", sa.String(20)),
        sa.Column("category", sa.String(50)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("address", sa.Text),
        sa.Column("previous_school", sa.String(255)),
        sa.Column("previous_board", sa.String(100)),
        sa.Column("previous_percentage", sa.Numeric(5, 2)),
        sa.Column("course_offering_id", sa.Integer, sa.ForeignKey("course_offerings.id")),
        sa.Column("academic_year_id", sa.Integer, sa.ForeignKey("academic_years.id")),
        sa.Column("status", sa.String(30), nullable=False, server_default="APPLICATION_ENTERED"),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(_in("status", APPLICATION_STATUSES), name="check_student_status"),
    )
    op.create_index("ix_students_status", "students", ["status"])
    op.create_table(
        "student_documents",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False),
        sa.Column("document_type_id", sa.Integer, sa.ForeignKey("document_types.id"), nullable=False),
        sa.Column("declared", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text),
        sa.Column("added_by", sa.Integer, sa.ForeignKey("users.id")),
        _timestamp("added_at"),
        sa.UniqueConstraint("student_id", "document_type_id", name="uq_student_document"),
    )
    op.create_table(
        "status_history",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("old_status", sa.String(30)),
        sa.Column("new_status", sa.String(30), nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("changed_by", sa.Integer, sa.ForeignKey("users.id")),
        _timestamp("changed_at", nullable=False),
    )
    op.create_table(
        "fee_payments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_mode", sa.String(50), nullable=False),
        sa.Column("payment_reference", sa.String(255)),
        sa.Column("receipt_number", sa.String(100), nullable=False, unique=True),
        sa.Column("payment_date", sa.Date, nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("recorded_by", sa.Integer, sa.ForeignKey("users.id")),
        _timestamp("recorded_at"),
        sa.CheckConstraint("amount_paid > 0", name="check_payment_amount_positive"),
    )
    op.create_table(
        "student_fee_summary",
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("fee_structure_id", sa.Integer, sa.ForeignKey("fee_structures.id")),
        sa.Column("total_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_paid", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("fee_status", sa.String(20), nullable=False, server_default="FEE_PENDING"),
        _timestamp("updated_at"),
        sa.CheckConstraint(_in("fee_status", FEE_STATUSES), name="check_summary_fee_status"),
    )
    op.create_table(
        "fee_adjustments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("student_id", sa.Integer, sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("original_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("adjusted_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("adjustment_reason", sa.Text, nullable=False),
        sa.Column("director_approval_note", sa.Text),
        sa.Column("applied_by", sa.Integer, sa.ForeignKey("users.id")),
        _timestamp("applied_at"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.CheckConstraint("adjusted_fee >= 0", name="check_adjusted_fee"),
        sa.CheckConstraint("adjusted_fee < original_fee", name="check_adjustment_is_discount"),
    )
    # At most one active discount per student
    op.create_index(
        "uq_fee_adjustments_active",
        "fee_adjustments",
        ["student_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active"),
    )
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id")),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity", sa.String(100)),
        sa.Column("entity_id", sa.Integer),
        sa.Column("old_value", sa.JSON),
        sa.Column("new_value", sa.JSON),
        _timestamp("created_at"),
    )

    op.bulk_insert(roles, [{"name": name, "description": description} for name, description in ROLES])


def downgrade():
    op.drop_table("audit_logs")
    op.drop_index("uq_fee_adjustments_active", table_name="fee_adjustments")
    op.drop_table("fee_adjustments")
    op.drop_table("student_fee_summary")
    op.drop_table("fee_payments")
    op.drop_table("status_history")
    op.drop_table("student_documents")
    op.drop_index("ix_students_status", table_name="students")
    op.drop_table("students")
    op.drop_table("document_types")
    op.drop_table("fee_structures")
    op.drop_table("course_offerings")
    op.drop_table("academic_years")
    op.drop_table("courses")
    op.drop_table("users")
    op.drop_table("roles")
