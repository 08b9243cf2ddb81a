from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, condecimal

from admissions.schemas.enums import FeeStatusEnum, PaymentModeEnum


# Fee Summary (ledger snapshot)
class FeeSummary(BaseModel):
    student_id: int
    fee_structure_id: Optional[int] = None
    total_fee: Decimal
    total_paid: Decimal
    balance: Decimal
    fee_status: FeeStatusEnum
    
    class Config:
        from_attributes = True


# Payment schemas
class PaymentBase(BaseModel):
    amount_paid: condecimal(max_digits=12, decimal_places=2, gt=0)
    payment_mode: PaymentModeEnum
    receipt_number: str = Field(..., min_length=1, max_length=100)
    payment_reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentCreate(PaymentBase):
    payment_date: Optional[date] = None


class PaymentInDB(BaseModel):
    id: int
    student_id: int
    amount_paid: Decimal
    payment_mode: str
    receipt_number: str
    payment_reference: Optional[str] = None
    payment_date: date
    notes: Optional[str] = None
    recorded_by: Optional[int] = None
    recorded_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


# Fee adjustment (one-time discount) schemas
class FeeAdjustmentCreate(BaseModel):
    adjusted_fee: condecimal(max_digits=12, decimal_places=2)
    adjustment_reason: str = Field(..., min_length=1)
    director_approval_note: Optional[str] = None


class FeeAdjustmentInDB(BaseModel):
    id: int
    student_id: int
    original_fee: Decimal
    adjusted_fee: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    adjustment_reason: str
    director_approval_note: Optional[str] = None
    applied_by: Optional[int] = None
    applied_at: Optional[datetime] = None
    is_active: bool
    
    class Config:
        from_attributes = True
