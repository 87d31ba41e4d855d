"""Domain exceptions raised by the service layer.

Endpoints translate these into HTTP errors; services never raise
HTTPException themselves. A FinanceError that escapes an endpoint is
answered with 400 and its ``code`` by the handler in main.py.
"""


class FinanceError(Exception):
    """Base class for finance rule violations"""
    code = "FINANCE_ERROR"


class InvalidAmountError(FinanceError, ValueError):
    """A payment amount that is zero or negative"""
    code = "INVALID_AMOUNT"

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Payment amount must be greater than zero, got {amount}")


class OverpaymentError(FinanceError):
    """Amount exceeds the pending balance of a single invoice"""
    code = "OVERPAYMENT"


class DuplicateInvoiceError(FinanceError):
    """Invoices already exist for the requested billing period"""
    code = "DUPLICATE_INVOICE"


class FeeStructureMissingError(FinanceError):
    """No fee structure is configured for the class"""
    code = "FEE_STRUCTURE_MISSING"


class NoStudentsError(FinanceError):
    """The class has no students to bill"""
    code = "NO_STUDENTS"


class ClassRequiredError(FinanceError):
    """The student is not enrolled in a class and none was given"""
    code = "CLASS_REQUIRED"


class NotFoundError(Exception):
    """A referenced record does not exist in the caller's school"""


class ConflictError(Exception):
    """A uniqueness rule would be violated"""
