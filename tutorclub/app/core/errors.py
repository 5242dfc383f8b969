"""Domain errors raised by billing services.

Services raise these instead of ``HTTPException``; ``main.py`` maps them onto
JSON responses.
"""

from fastapi import status


class BillingError(Exception):
    code = "billing_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ValidationFailed(BillingError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFound(BillingError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class LedgerError(BillingError):
    code = "ledger_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class AuditWriteError(BillingError):
    code = "audit_write_failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UnsupportedStore(BillingError):
    code = "unsupported_store"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
