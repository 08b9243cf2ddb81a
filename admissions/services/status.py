"""Application status derivation.

The overall status of an application is never authored directly (apart from
admission itself); it is derived from the document completion state and the
fee ledger every time either of them is written.
"""
from typing import Optional, Protocol, Union

from admissions.schemas.enums import ApplicationStatus, CompletionState, FeeStatusEnum

AWAITING_FEE_STATUSES = frozenset({
    ApplicationStatus.DOCUMENTS_DECLARED,
    ApplicationStatus.FEE_PENDING,
})


class FeeSignal(Protocol):
    fee_status: Union[FeeStatusEnum, str]


def derive_status(
    current: Union[ApplicationStatus, str],
    completion: Union[CompletionState, str],
    fee: Optional[FeeSignal],
    awaiting_fee_status: Union[ApplicationStatus, str] = ApplicationStatus.DOCUMENTS_DECLARED,
) -> ApplicationStatus:
    """Combine completion and fee classifications into the application status.

    Args:
        current: The status currently stored for the student.
        completion: Document completion classification.
        fee: Ledger snapshot, or None when no fee structure is assigned yet.
        awaiting_fee_status: Label for "documents complete, nothing paid"
            once a fee structure exists (DOCUMENTS_DECLARED or FEE_PENDING).

    Returns:
        The derived status. Pure: reads and writes nothing.
    """
    current = ApplicationStatus(current)
    completion = CompletionState(completion)
    awaiting_fee_status = ApplicationStatus(awaiting_fee_status)
    if awaiting_fee_status not in AWAITING_FEE_STATUSES:
        raise ValueError(f"{awaiting_fee_status.value} cannot label an application awaiting fees")

    # Missing mandatory documents always wins over any payment history
    if completion == CompletionState.INCOMPLETE:
        return ApplicationStatus.DOCUMENTS_INCOMPLETE
    if completion == CompletionState.NONE_DECLARED:
        return ApplicationStatus.APPLICATION_ENTERED

    if fee is None:
        return ApplicationStatus.DOCUMENTS_DECLARED

    fee_status = FeeStatusEnum(fee.fee_status)
    if fee_status == FeeStatusEnum.FEE_RECEIVED:
        if current == ApplicationStatus.ADMITTED:
            return ApplicationStatus.ADMITTED
        return ApplicationStatus.FEE_RECEIVED
    if fee_status == FeeStatusEnum.FEE_PARTIAL:
        return ApplicationStatus.FEE_PARTIAL
    return awaiting_fee_status
