"""API error types shared by the apps.

All of them are DRF ``APIException`` subclasses so views can simply raise
them and let DRF render the JSON error response.
"""

from rest_framework import status
from rest_framework.exceptions import APIException


class InvalidTransition(APIException):
    """Requested order status change is not in the allowed transition table."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'invalid_transition'

    def __init__(self, source: str, target: str, allowed=()):
        self.source = source
        self.target = target
        self.allowed = sorted(allowed)
        super().__init__(detail={
            'detail': f'Cannot transition from {source} to {target}.',
            'source': source,
            'target': target,
            'allowed_statuses': self.allowed,
        })


class OrderNotEditable(APIException):
    """Order contents can only change while the order is a draft."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Only DRAFT orders can be edited.'
    default_code = 'order_not_editable'


class SequenceExhausted(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The number sequence for this period is exhausted.'
    default_code = 'sequence_exhausted'


class ExternalServiceError(APIException):
    """A notification or OTP provider failed; the caller may retry."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'External service is unavailable. Please try again.'
    default_code = 'external_service_error'


class ServiceNotConfigured(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'This service is not configured.'
    default_code = 'service_not_configured'


class ResourceInUse(APIException):
    """Row is still referenced by orders and cannot be deleted."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This record is referenced by existing orders and cannot be deleted.'
    default_code = 'resource_in_use'
