from typing import List, Optional
from pydantic import BaseModel

from admissions.schemas.enums import ApplicationStatus
from admissions.schemas.documents import CompletionSummary, StudentDocumentInDB
from admissions.schemas.finance import FeeSummary, PaymentInDB, FeeAdjustmentInDB
from admissions.schemas.students import StudentInDB, StatusHistoryInDB


class WorkflowResult(BaseModel):
    """Outcome of one engine transaction: new status, ledger and completion snapshots."""
    student: StudentInDB
    previous_status: ApplicationStatus
    status: ApplicationStatus
    fee_summary: Optional[FeeSummary] = None
    completion: CompletionSummary
    history_entry: Optional[StatusHistoryInDB] = None
    
    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.status


class PaymentResult(WorkflowResult):
    payment: PaymentInDB


class DocumentResult(WorkflowResult):
    documents: List[StudentDocumentInDB]


class FeeAdjustmentResult(WorkflowResult):
    adjustment: FeeAdjustmentInDB
