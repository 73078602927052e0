"""
Workflow Errors
===============

Every failure the workflow core can produce. Each error carries a stable
``kind`` and renders to a plain dict for the API layer:

    try:
        apply_action(...)
    except WorkflowError as exc:
        return JsonResponse(exc.to_dict(), status=exc.status_code)
"""

from django.core.exceptions import PermissionDenied


class WorkflowError(Exception):
    """Base class for all workflow failures"""

    kind = 'WorkflowError'
    status_code = 400

    def __init__(self, message=''):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'kind': self.kind, 'message': self.message}


class UnknownStateError(WorkflowError):
    """A status value that is not part of the registry"""

    kind = 'UnknownStateError'
    status_code = 500

    def __init__(self, status, message=''):
        self.status = status
        super().__init__(message or f"Unknown request status: {status!r}")

    def to_dict(self):
        data = super().to_dict()
        data['status'] = self.status
        return data


class InvalidTransitionError(WorkflowError):
    """No edge exists for the requested action from the current state"""

    kind = 'InvalidTransitionError'
    status_code = 409

    def __init__(self, current_state, action, target=None, message=''):
        self.current_state = current_state
        self.action = action
        self.target = target
        super().__init__(
            message or f"Action '{action}' is not available while the request is {current_state}"
        )

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'current_state': self.current_state,
            'rejected_action': self.action,
            'rejected_target': self.target,
        })
        return data


class AuthorizationError(WorkflowError, PermissionDenied):
    """Role or ownership/scope predicate failed"""

    kind = 'AuthorizationError'
    status_code = 403


class ValidationError(WorkflowError):
    """Missing or malformed action input"""

    kind = 'ValidationError'

    def __init__(self, message='', errors=None):
        self.errors = errors or {}
        super().__init__(message or 'Invalid input')

    def to_dict(self):
        data = super().to_dict()
        if self.errors:
            data['errors'] = self.errors
        return data


class InvalidOfferTermsError(ValidationError):
    """Offer amount, tenure or rate outside the allowed domain"""

    kind = 'InvalidOfferTermsError'


class StaleStateError(WorkflowError):
    """The request changed since the caller read it"""

    kind = 'StaleStateError'
    status_code = 409

    def __init__(self, current_state, message=''):
        self.current_state = current_state
        super().__init__(
            message or f"Request was modified concurrently and is now {current_state}; re-fetch and retry"
        )

    def to_dict(self):
        data = super().to_dict()
        data['current_state'] = self.current_state
        return data
