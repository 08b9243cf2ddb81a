from sqlalchemy import (
    Column, Integer, String, DateTime, Date, ForeignKey, Text, Numeric, Boolean,
    CheckConstraint, Index, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from admissions.database import Base
from admissions.schemas.enums import FeeStatusEnum, sql_in

# Fee Payment model; rows are never updated or deleted
class FeePayment(Base):
    __tablename__ = "fee_payments"
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(50), nullable=False)
    payment_reference = Column(String(255))
    receipt_number = Column(String(100), unique=True, nullable=False)
    payment_date = Column(Date, nullable=False)
    notes = Column(Text)
    recorded_by = Column(Integer, ForeignKey("users.id"))
    recorded_at = Column(DateTime(timezone=True), server_default=func.now())
    
    __table_args__ = (
        CheckConstraint("amount_paid > 0", name="check_payment_amount_positive"),
    )
    
    # Relationships
    student = relationship("Student", back_populates="payments")

# Derived ledger row, recomputed from fee_payments on every write
class StudentFeeSummary(Base):
    __tablename__ = "student_fee_summary"
    
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    fee_structure_id = Column(Integer, ForeignKey("fee_structures.id"))
    total_fee = Column(Numeric(12, 2), nullable=False, default=0)
    total_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    fee_status = Column(String(20), default=FeeStatusEnum.FEE_PENDING.value, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    __table_args__ = (
        CheckConstraint(sql_in("fee_status", FeeStatusEnum), name="check_summary_fee_status"),
    )
    
    # Relationships
    student = relationship("Student", back_populates="fee_summary")

# One-time fee discount approved for a student
class FeeAdjustment(Base):
    __tablename__ = "fee_adjustments"
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    original_fee = Column(Numeric(12, 2), nullable=False)
    adjusted_fee = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False)
    adjustment_reason = Column(Text, nullable=False)
    director_approval_note = Column(Text)
    applied_by = Column(Integer, ForeignKey("users.id"))
    applied_at = Column(DateTime(timezone=True), server_default=func.now())
    is_active = Column(Boolean, default=True, nullable=False)
    
    __table_args__ = (
        CheckConstraint("adjusted_fee >= 0", name="check_adjusted_fee"),
        CheckConstraint("adjusted_fee < original_fee", name="check_adjustment_is_discount"),
        # At most one active discount per student
        Index(
            "uq_fee_adjustments_active", "student_id", unique=True,
            postgresql_where=text("is_active"), sqlite_where=text("is_active"),
        ),
    )
