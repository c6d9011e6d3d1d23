"""Error taxonomy shared by the scheduling and exam services.

Services raise these directly; views never translate them. The DRF
exception handler below renders every error as
``{"kind", "reason", "detail", "status_code"}`` so the frontend can show a
precise message per reason code.
"""
import logging
from typing import Optional

from django.db import DatabaseError, IntegrityError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class TutoringError(APIException):
    kind = 'Error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request failed.'
    default_code = 'error'

    def __init__(self, detail: Optional[str] = None, reason: Optional[str] = None):
        self.reason = reason or self.default_code
        super().__init__(detail or self.default_detail, self.reason)

    def as_dict(self) -> dict:
        return {
            'kind': self.kind,
            'reason': self.reason,
            'detail': str(self.detail),
        }


class ValidationError(TutoringError):
    """Malformed input, rejected before persistence is touched."""
    kind = 'ValidationError'
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'Invalid'


class PolicyViolation(TutoringError):
    """Expected business-rule rejection. Terminal for the request."""
    kind = 'PolicyViolation'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request violates a scheduling rule.'
    default_code = 'PolicyViolation'

    def __init__(self, reason: str, detail: Optional[str] = None, detail_reason: Optional[str] = None):
        self.detail_reason = detail_reason
        super().__init__(detail or reason, reason)

    def as_dict(self) -> dict:
        data = super().as_dict()
        if self.detail_reason:
            data['detail_reason'] = self.detail_reason
        return data


class ConflictError(TutoringError):
    """Concurrent modification detected at commit time; safe to retry once."""
    kind = 'ConflictError'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The record was modified concurrently. Reload and try again.'
    default_code = 'Conflict'


class PersistenceError(TutoringError):
    kind = 'PersistenceError'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Storage is unavailable.'
    default_code = 'StorageUnavailable'


# Reason codes
TEACHER_CHANGE_NOT_PERMITTED = 'TeacherChangeNotPermitted'
PACKAGE_NOT_ELIGIBLE = 'PackageNotEligible'
SLOT_UNAVAILABLE = 'SlotUnavailable'
DUPLICATE_BINDING = 'DuplicateBinding'
DUPLICATE_ASSIGNMENT = 'DuplicateAssignment'
INVALID_TRANSITION = 'InvalidTransition'
NOT_FOUND = 'NotFound'
CLASS_NOT_RESCHEDULABLE = 'ClassNotReschedulable'
TEACHER_INACTIVE = 'TeacherInactive'


def custom_exception_handler(exc, context):
    if isinstance(exc, DatabaseError) and not isinstance(exc, IntegrityError):
        logger.exception('Storage failure while handling %s', context.get('view').__class__.__name__)
        exc = PersistenceError()

    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, TutoringError):
            response.data = exc.as_dict()
        elif not isinstance(response.data, dict):
            response.data = {'detail': response.data}
        response.data['status_code'] = response.status_code

    return response
