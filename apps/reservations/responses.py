from rest_framework import status
from rest_framework.response import Response

from apps.settlements.services.exceptions import PayoutOutcomeUnknownError

from .exceptions import (
    AuthorizationRejection,
    BusinessRuleDeferral,
    ExternalSystemError,
    NotFoundRejection,
    PreconditionRejection,
    ValidationRejection,
)

# Checked in order; the first matching base class wins
_STATUS_BY_CATEGORY = [
    (ValidationRejection, status.HTTP_400_BAD_REQUEST),
    (AuthorizationRejection, status.HTTP_403_FORBIDDEN),
    (NotFoundRejection, status.HTTP_404_NOT_FOUND),
    (PreconditionRejection, status.HTTP_409_CONFLICT),
    (BusinessRuleDeferral, status.HTTP_409_CONFLICT),
]


def ledger_error_response(exc):
    """Translate a ledger service error into an API response."""
    http_status = status.HTTP_400_BAD_REQUEST
    if isinstance(exc, PayoutOutcomeUnknownError):
        http_status = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, ExternalSystemError):
        http_status = status.HTTP_502_BAD_GATEWAY
    else:
        for category, category_status in _STATUS_BY_CATEGORY:
            if isinstance(exc, category):
                http_status = category_status
                break

    return Response({'error': exc.message, **exc.as_dict()}, status=http_status)
