from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').
    """
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code="business_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(BusinessLogicException):
    """Malformed input. Always raised before anything is written."""

    def __init__(self, message, code="validation_error"):
        super().__init__(message, code)


class NotFoundError(BusinessLogicException):
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, message, code="not_found"):
        super().__init__(message, code)


class InvalidStateError(BusinessLogicException):
    """The requested transition is illegal from the order's current status."""
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message, code="invalid_state"):
        super().__init__(message, code)


class InsufficientStockError(BusinessLogicException):
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message, product_id=None, requested=None, available=None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(message, "insufficient_stock")


class ConflictError(BusinessLogicException):
    """The record changed underneath us (stale version)."""
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message, code="conflict"):
        super().__init__(message, code)


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if isinstance(exc, BusinessLogicException):
        return Response(
            {"error": exc.message, "code": exc.code},
            status=exc.http_status,
        )

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
