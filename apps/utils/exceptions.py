from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "business_error"

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)

    def as_dict(self):
        return {"error": self.message, "code": self.code}


# ==========================
# VALIDATION (400)
# ==========================

class LedgerValidationError(BusinessLogicException):
    default_code = "validation_error"


class InvalidQuantityError(LedgerValidationError):
    default_code = "invalid_quantity"


class InvalidChoiceError(LedgerValidationError):
    default_code = "invalid_choice"


class InsufficientAvailabilityError(LedgerValidationError):
    default_code = "insufficient_availability"

    def __init__(self, message, available=None, requested=None, code=None):
        self.available = available
        self.requested = requested
        super().__init__(message, code)

    def as_dict(self):
        data = super().as_dict()
        if self.available is not None:
            data["available"] = self.available
        if self.requested is not None:
            data["requested"] = self.requested
        return data


class InsufficientInventoryError(InsufficientAvailabilityError):
    default_code = "insufficient_inventory"


class NegativeQuantityError(LedgerValidationError):
    default_code = "negative_quantity"


class NegativeInventoryError(LedgerValidationError):
    default_code = "negative_inventory"


class SameWarehouseError(LedgerValidationError):
    default_code = "same_warehouse"


# ==========================
# CONFLICTS (409)
# ==========================

class ConflictError(BusinessLogicException):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class DuplicateKeyError(ConflictError):
    default_code = "duplicate_key"


class DuplicateRequestError(ConflictError):
    default_code = "duplicate_request"


class ImmutableRecordError(ConflictError):
    default_code = "immutable_record"


class InvalidStateError(ConflictError):
    """
    Transition not legal from the record's current state.
    """
    default_code = "invalid_state"

    def __init__(self, message, current_state=None, code=None):
        self.current_state = current_state
        super().__init__(message, code)

    def as_dict(self):
        data = super().as_dict()
        data["current_state"] = self.current_state
        return data


# ==========================
# NOT FOUND (404)
# ==========================

class NotFoundError(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


# ==========================
# SYSTEM
# ==========================

class ReferenceGenerationError(Exception):
    """
    No unique reference number could be produced.
    """


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if isinstance(exc, BusinessLogicException):
        return Response(exc.as_dict(), status=exc.status_code)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
