"""
Permission Matrix – Family-based Access Control
===============================================

Every transition in the registry belongs to one action family. A role acts
in exactly one family, and each family has one ownership/scope predicate:

    customer  →  caller owns the request
    admin     →  request district is inside the admin's district set
                 (SUPER_ADMIN always matches)
    agent     →  caller is the request's assigned agent
    system    →  no predicate; actor-less

There is no role hierarchy. An admin who is also a customer gets customer
actions only when acting *as* CUSTOMER, and vice versa.

Every caller should:
    checker = PermissionChecker(user, role)
    actions = checker.available_actions(loan_request)
"""

from dataclasses import dataclass

from django.conf import settings

from lending.constants import ActionFamily, ROLE_FAMILY, Role
from lending.exceptions import AuthorizationError, InvalidTransitionError
from lending.registry import find_transition, has_action, targets_for, transitions_from


# =============================================================================
# CONTEXT
# =============================================================================

@dataclass(frozen=True)
class RequestContext:
    """Ownership and scope flags of one caller against one request"""

    is_owner: bool = False
    is_assigned_agent: bool = False
    is_district_scope_match: bool = False

    @classmethod
    def for_caller(cls, loan_request, user, role):
        if user is None:
            return cls()
        if role == Role.SUPER_ADMIN:
            scope_match = True
        elif role == Role.DISTRICT_ADMIN:
            scope_match = user.serves_district(loan_request.district)
        else:
            scope_match = False
        return cls(
            is_owner=loan_request.customer_id == user.pk,
            is_assigned_agent=loan_request.assigned_agent_id is not None
            and loan_request.assigned_agent_id == user.pk,
            is_district_scope_match=scope_match,
        )

    def satisfies(self, family):
        if family == ActionFamily.CUSTOMER:
            return self.is_owner
        if family == ActionFamily.ADMIN:
            return self.is_district_scope_match
        if family == ActionFamily.AGENT:
            return self.is_assigned_agent
        return family == ActionFamily.SYSTEM


# =============================================================================
# RESOLVER
# =============================================================================

def family_for(role):
    return ROLE_FAMILY.get(role)


def available_actions(current_status, role, context):
    """
    Legal actions for (state, role, context), highest priority first

    Pure: reads only the registry, so identical inputs give identical lists.
    """
    family = family_for(role)
    if family is None:
        return []
    actions = [
        action for action in transitions_from(current_status)
        if action.family == family and context.satisfies(family)
    ]
    return sorted(actions, key=lambda action: action.priority)


def partition_actions(actions, limit=None):
    """Split into (primary, secondary); ordering is presentation only"""
    if limit is None:
        limit = getattr(settings, 'LENDING_PRIMARY_ACTION_LIMIT', 2)
    return actions[:limit], actions[limit:]


def rejected_target(action_id):
    targets = targets_for(action_id)
    return next(iter(targets)) if len(targets) == 1 else None


def check_action(current_status, action_id, role, context):
    """
    Re-validate one action against the current state

    Returns:
        WorkflowAction: the matching edge

    Raises:
        UnknownStateError: status not in the registry
        InvalidTransitionError: no edge for the action out of this state
        AuthorizationError: edge exists but not for this role or caller
    """
    if not has_action(current_status, action_id):
        raise InvalidTransitionError(current_status, action_id, target=rejected_target(action_id))

    family = family_for(role)
    action = find_transition(current_status, action_id, family) if family else None
    if action is None:
        raise AuthorizationError(f"Role {role} may not perform '{action_id}'")
    if not context.satisfies(family):
        raise AuthorizationError(f"Caller does not meet the {family} requirement for '{action_id}'")
    return action


# =============================================================================
# PERMISSION CHECKER
# =============================================================================

def verify_role(user, role):
    """The caller must actually hold the role it claims"""
    if role == Role.SYSTEM:
        if user is not None:
            raise AuthorizationError('System actions cannot be performed by a user')
        return
    if role not in ROLE_FAMILY:
        raise AuthorizationError(f"Unknown role: {role}")
    if user is None or not user.is_active or not user.has_role(role):
        raise AuthorizationError(f"Caller does not hold the {role} role")


class PermissionChecker:

    def __init__(self, user, role):
        verify_role(user, role)
        self.user = user
        self.role = role

    def context_for(self, loan_request):
        return RequestContext.for_caller(loan_request, self.user, self.role)

    def available_actions(self, loan_request):
        return available_actions(loan_request.current_status, self.role, self.context_for(loan_request))

    def check(self, loan_request, action_id):
        return check_action(loan_request.current_status, action_id, self.role, self.context_for(loan_request))

    def can_view(self, loan_request):
        context = self.context_for(loan_request)
        return self.role == Role.SYSTEM or context.satisfies(family_for(self.role))
