"""Error kinds reported by the admission workflow engine.

Every failure leaves the engine as one of these, so callers (the HTTP layer,
scripts, tests) can branch on ``kind`` instead of on driver exceptions.
"""
from fastapi import status


class WorkflowError(Exception):
    kind = "workflow_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Rejected before any write."""
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class StudentNotFound(WorkflowError):
    kind = "student_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, student_id: int):
        super().__init__(f"Student {student_id} not found")
        self.student_id = student_id


class DuplicateReceipt(WorkflowError):
    kind = "duplicate_receipt"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, receipt_number: str):
        super().__init__(f"Receipt number {receipt_number} already used")
        self.receipt_number = receipt_number


class NoFeeStructureAssigned(WorkflowError):
    kind = "no_fee_structure_assigned"
    status_code = status.HTTP_400_BAD_REQUEST


class FeeAdjustmentRefused(ValidationError):
    kind = "fee_adjustment_refused"


class AdmissionRefused(WorkflowError):
    kind = "admission_refused"
    status_code = status.HTTP_409_CONFLICT


class ConcurrencyConflict(WorkflowError):
    """Serialization failure; retry the whole operation."""
    kind = "concurrency_conflict"
    status_code = status.HTTP_409_CONFLICT


class StorageFailure(WorkflowError):
    kind = "storage_failure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
