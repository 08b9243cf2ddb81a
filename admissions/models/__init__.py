# Import all models to ensure they're registered with SQLAlchemy
from admissions.database import Base
from admissions.models.users import User, Role
from admissions.models.admissions import (
    Course, AcademicYear, CourseOffering, FeeStructure, DocumentType,
    Student, StudentDocument, StatusHistory,
)
from admissions.models.finance import FeePayment, StudentFeeSummary, FeeAdjustment
from admissions.models.audit import AuditLog
