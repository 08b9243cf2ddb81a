from enum import Enum


class ApplicationStatus(str, Enum):
    APPLICATION_ENTERED = "APPLICATION_ENTERED"
    DOCUMENTS_INCOMPLETE = "DOCUMENTS_INCOMPLETE"
    DOCUMENTS_DECLARED = "DOCUMENTS_DECLARED"
    FEE_PENDING = "FEE_PENDING"
    FEE_PARTIAL = "FEE_PARTIAL"
    FEE_RECEIVED = "FEE_RECEIVED"
    ADMITTED = "ADMITTED"


class CompletionState(str, Enum):
    NONE_DECLARED = "NONE_DECLARED"
    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"


class FeeStatusEnum(str, Enum):
    FEE_PENDING = "FEE_PENDING"
    FEE_PARTIAL = "FEE_PARTIAL"
    FEE_RECEIVED = "FEE_RECEIVED"


class PaymentModeEnum(str, Enum):
    cash = "Cash"
    cheque = "Cheque"
    online = "Online"
    demand_draft = "DD"
    card = "Card"


class RoleName(str, Enum):
    super_admin = "SuperAdmin"
    admin = "Admin"
    admission_staff = "AdmissionStaff"
    document_officer = "DocumentOfficer"
    accounts_officer = "AccountsOfficer"
    principal = "Principal"
    director = "Director"


def sql_in(column: str, enum_cls) -> str:
    """Render a CHECK constraint body limiting ``column`` to the enum's values."""
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"
