"""
Workflow JSON Views
===================

Thin JSON endpoints over ``lending.api``. Every workflow error is returned as
``exc.to_dict()`` with the status code of its kind:

    ValidationError / InvalidOfferTermsError   400
    AuthorizationError                         403
    InvalidTransitionError / StaleStateError   409
    UnknownStateError                          500
"""

import json
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from lending import api
from lending.exceptions import ValidationError, WorkflowError


def workflow_errors(view_func):
    """Render WorkflowError as JSON instead of letting it propagate"""

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except WorkflowError as exc:
            return JsonResponse(exc.to_dict(), status=exc.status_code)
    return wrapper


def _json_body(request):
    try:
        body = json.loads(request.body or b'{}')
    except (TypeError, ValueError):
        raise ValidationError('Request body must be valid JSON')
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return body


def _required_role(value):
    if not value:
        raise ValidationError('Role is required', errors={'role': ['This field is required.']})
    return value


def _expected_version(value):
    if value is None:
        return None
    error = ValidationError(
        'expected_version must be an integer',
        errors={'expected_version': ['Enter a whole number.']},
    )
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise error
    try:
        return int(value)
    except ValueError:
        raise error


def serialize_request(loan_request):
    return {
        'id': str(loan_request.id),
        'request_number': loan_request.request_number,
        'current_status': loan_request.current_status,
        'customer_id': str(loan_request.customer_id),
        'district': loan_request.district,
        'assigned_agent_id': str(loan_request.assigned_agent_id) if loan_request.assigned_agent_id else None,
        'requested_amount': str(loan_request.requested_amount),
        'admin_offered_amount': _str_or_none(loan_request.admin_offered_amount),
        'admin_tenure_months': loan_request.admin_tenure_months,
        'admin_interest_rate': _str_or_none(loan_request.admin_interest_rate),
        'offer_made_date': loan_request.offer_made_date.isoformat() if loan_request.offer_made_date else None,
        'version': loan_request.version,
        'created_at': loan_request.created_at.isoformat(),
        'updated_at': loan_request.updated_at.isoformat(),
    }


def _str_or_none(value):
    return None if value is None else str(value)


# =============================================================================
# ENDPOINTS
# =============================================================================

@login_required
@require_GET
@workflow_errors
def available_actions_view(request, request_id):
    """
    GET /requests/<id>/actions/?role=<ROLE>

    Returns JSON with the caller's legal actions split into primary and
    secondary lists.
    """
    role = _required_role(request.GET.get('role'))
    grouped = api.grouped_actions_for(request_id, role, request.user.pk)
    return JsonResponse({
        'primary': [action.as_dict() for action in grouped['primary']],
        'secondary': [action.as_dict() for action in grouped['secondary']],
    })


@login_required
@require_POST
@workflow_errors
def act_view(request, request_id, action_id):
    """
    POST /requests/<id>/actions/<action>/

    Body: {"role": "...", "input": {...}, "expected_version": n}
    """
    body = _json_body(request)
    role = _required_role(body.get('role'))
    result = api.act(
        request_id, action_id, request.user.pk, role,
        data=body.get('input'),
        expected_version=_expected_version(body.get('expected_version')),
    )
    return JsonResponse({
        'request': serialize_request(result.request),
        'history_entry': result.history_entry.as_dict(),
    })


@login_required
@require_GET
@workflow_errors
def offer_preview_view(request):
    """GET /offers/preview/?principal=&tenure_months=&interest_rate="""
    preview = api.preview_offer(
        request.GET.get('principal'),
        request.GET.get('tenure_months'),
        request.GET.get('interest_rate'),
    )
    return JsonResponse(preview.as_dict())


@login_required
@require_GET
@workflow_errors
def request_history_view(request, request_id):
    """GET /requests/<id>/history/?role=<ROLE>"""
    role = _required_role(request.GET.get('role'))
    entries = api.request_history(request_id, role, request.user.pk)
    return JsonResponse({'history': [entry.as_dict() for entry in entries]})
