from sqlalchemy import (
    Column, Integer, String, DateTime, Date, ForeignKey, Text, Boolean, Numeric,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from admissions.database import Base
from admissions.schemas.enums import ApplicationStatus, sql_in

# Course model
class Course(Base):
    __tablename__ = "courses"
    
    id = Column(Integer, primary_key=True, index=True)
    course_code = Column(String(20), unique=True, nullable=False)
    course_name = Column(String(255), nullable=False)
    duration_years = Column(Integer)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    offerings = relationship("CourseOffering", back_populates="course")

# Academic Year model
class AcademicYear(Base):
    __tablename__ = "academic_years"
    
    id = Column(Integer, primary_key=True, index=True)
    year_label = Column(String(20), unique=True, nullable=False)
    start_date = Column(Date)
    end_date = Column(Date)
    is_current = Column(Boolean, default=False, nullable=False)
    
    # Relationships
    offerings = relationship("CourseOffering", back_populates="academic_year")

# Course Offering: a course opened for intake in one academic year
class CourseOffering(Base):
    __tablename__ = "course_offerings"
    
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(Integer, ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False)
    intake_capacity = Column(Integer)
    is_open = Column(Boolean, default=True, nullable=False)
    
    __table_args__ = (
        UniqueConstraint("course_id", "academic_year_id", name="uq_course_offering"),
    )
    
    # Relationships
    course = relationship("Course", back_populates="offerings")
    academic_year = relationship("AcademicYear", back_populates="offerings")
    fee_structures = relationship("FeeStructure", back_populates="course_offering")

# Fee Structure model
class FeeStructure(Base):
    __tablename__ = "fee_structures"
    
    id = Column(Integer, primary_key=True, index=True)
    course_offering_id = Column(Integer, ForeignKey("course_offerings.id", ondelete="CASCADE"), nullable=False)
    total_fee = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    __table_args__ = (
        CheckConstraint("total_fee >= 0", name="check_fee_structure_total"),
    )
    
    # Relationships
    course_offering = relationship("CourseOffering", back_populates="fee_structures")

# Required-document catalog
class DocumentType(Base):
    __tablename__ = "document_types"
    
    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    is_required = Column(Boolean, default=True, nullable=False)

# Student (applicant) model
class Student(Base):
    __tablename__ = "students"
    
    id = Column(Integer, primary_key=True, index=True)
    application_number = Column(String(50), unique=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    date_of_birth = Column(Date)
    gender = Column(String(20))
    category = Column(String(50), default="General")
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    previous_school = Column(String(255))
    previous_board = Column(String(100))
    previous_percentage = Column(Numeric(5, 2))
    course_offering_id = Column(Integer, ForeignKey("course_offerings.id"))
    academic_year_id = Column(Integer, ForeignKey("academic_years.id"))
    status = Column(String(30), default=ApplicationStatus.APPLICATION_ENTERED.value, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    __table_args__ = (
        CheckConstraint(sql_in("status", ApplicationStatus), name="check_student_status"),
    )
    
    # Relationships
    course_offering = relationship("CourseOffering")
    documents = relationship("StudentDocument", back_populates="student")
    payments = relationship("FeePayment", back_populates="student")
    fee_summary = relationship("StudentFeeSummary", back_populates="student", uselist=False)
    status_history = relationship("StatusHistory", back_populates="student", order_by="StatusHistory.id")

# Declared document for a student; absence of a row counts as not declared
class StudentDocument(Base):
    __tablename__ = "student_documents"
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    document_type_id = Column(Integer, ForeignKey("document_types.id"), nullable=False)
    declared = Column(Boolean, default=False, nullable=False)
    notes = Column(Text)
    added_by = Column(Integer, ForeignKey("users.id"))
    added_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    __table_args__ = (
        UniqueConstraint("student_id", "document_type_id", name="uq_student_document"),
    )
    
    # Relationships
    student = relationship("Student", back_populates="documents")
    document_type = relationship("DocumentType", lazy="joined")

# Append-only status audit trail
class StatusHistory(Base):
    __tablename__ = "status_history"
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(String(30))
    new_status = Column(String(30), nullable=False)
    reason = Column(Text)
    changed_by = Column(Integer, ForeignKey("users.id"))
    changed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    # Relationships
    student = relationship("Student", back_populates="status_history")
