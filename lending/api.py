"""
Workflow API
============

Entry points for an outer API layer. Callers identify themselves explicitly
(caller id + role); nothing is read from a request-global "current user".

    available_actions_for(request_id, Role.CUSTOMER, user.pk)
    act(request_id, 'accept-offer', user.pk, Role.CUSTOMER)
    preview_offer('45000', 6, '12')
"""

from django.shortcuts import get_object_or_404

from lending import audit
from lending.exceptions import AuthorizationError
from lending.models import LoanRequest, User
from lending.permissions import PermissionChecker, partition_actions
from lending.utils.emi import compute_schedule
from lending.workflow import apply_action


def _caller(caller_id):
    if caller_id is None:
        return None
    user = User.objects.filter(pk=caller_id).first()
    if user is None:
        raise AuthorizationError('Unknown caller')
    return user


def available_actions_for(request_id, role, caller_id):
    """Legal actions for the caller on the request's current state"""
    loan_request = get_object_or_404(LoanRequest, pk=request_id)
    checker = PermissionChecker(_caller(caller_id), role)
    return checker.available_actions(loan_request)


def grouped_actions_for(request_id, role, caller_id):
    """Same as ``available_actions_for`` split into primary and secondary lists"""
    primary, secondary = partition_actions(available_actions_for(request_id, role, caller_id))
    return {'primary': primary, 'secondary': secondary}


def act(request_id, action_id, caller_id, role, data=None, expected_version=None):
    """Apply an action; returns a TransitionResult"""
    loan_request = get_object_or_404(LoanRequest, pk=request_id)
    return apply_action(
        loan_request, action_id, _caller(caller_id), role, data,
        expected_version=expected_version,
    )


def preview_offer(principal, tenure_months, interest_rate, first_payment_date=None):
    """EMI preview for prospective offer terms; nothing is stored"""
    return compute_schedule(principal, interest_rate, tenure_months, first_payment_date)


def request_history(request_id, role, caller_id):
    """History entries in insertion order, for callers allowed to see the request"""
    loan_request = get_object_or_404(LoanRequest, pk=request_id)
    checker = PermissionChecker(_caller(caller_id), role)
    if not checker.can_view(loan_request):
        raise AuthorizationError('Caller may not view this request')
    return audit.list_history(loan_request)
