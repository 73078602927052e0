"""
Transition Executor
===================

The only code path that changes a request's status.

    result = apply_action(loan_request, 'create-offer', admin, Role.DISTRICT_ADMIN,
                          {'amount': '45000', 'tenure_months': 6, 'interest_rate': '12'})
    result.request.current_status      # 'OFFER_SENT'
    result.history_entry.action        # 'create-offer'

EXECUTION ORDER:
1. The action id must be a known action and the caller must hold the role
2. Inside one transaction the request row is locked and re-read; a caller
   holding an older version gets StaleStateError
3. The action is re-validated against the *persisted* status (never against
   a previously listed set of actions)
4. Input is bound to the action's form and validated
5. Side effects run, the status moves with a version-guarded UPDATE, and
   exactly one history entry is written

Any failure rolls the whole transaction back.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from dateutil.relativedelta import relativedelta
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from lending import audit
from lending.constants import (
    ActionType,
    EMIStatus,
    HISTORY_REQUEST_SUBMITTED,
    LoanStatus,
    RequestStatus,
    Role,
)
from lending.exceptions import (
    InvalidOfferTermsError,
    StaleStateError,
    ValidationError,
    WorkflowError,
)
from lending.forms import LoanRequestForm, form_for
from lending.models import EMISchedule, Loan, LoanRequest
from lending.permissions import PermissionChecker, verify_role
from lending.registry import OFFER_ACTIONS, ensure_known_state, is_known_action
from lending.signals import request_transitioned


logger = logging.getLogger(__name__)


# Fields a transition may change besides status and version
WORKFLOW_FIELDS = [
    'assigned_agent',
    'admin_offered_amount',
    'admin_tenure_months',
    'admin_interest_rate',
    'offer_made_date',
    'offer_emi',
    'offer_total_interest',
    'offer_total_payment',
    'offer_accepted_at',
    'inspection_scheduled_at',
    'inspection_notes',
    'customer_notes',
    'payout_details',
    'transfer_reference',
]

LOAN_STATUS_FOR_REQUEST = {
    RequestStatus.ACTIVE: LoanStatus.ACTIVE,
    RequestStatus.PAYMENT_OVERDUE: LoanStatus.ACTIVE,
    RequestStatus.COMPLETED: LoanStatus.COMPLETED,
    RequestStatus.DEFAULTED: LoanStatus.DEFAULTED,
}


@dataclass(frozen=True)
class TransitionResult:
    request: LoanRequest
    history_entry: object


@dataclass
class Step:
    """Everything a side effect needs; ``metadata`` is merged into the history entry"""

    request: LoanRequest
    action: object
    actor: object
    form: object
    now: datetime
    metadata: dict = field(default_factory=dict)

    @property
    def data(self):
        return self.form.cleaned_data if self.form is not None else {}


# =============================================================================
# PUBLIC API
# =============================================================================

def submit_request(customer, data):
    """
    Create a PENDING request for a customer

    Args:
        customer: User holding the CUSTOMER role
        data: district, requested_amount, asset_type, asset_description

    Returns:
        TransitionResult with the ``request-submitted`` history entry
    """
    verify_role(customer, Role.CUSTOMER)

    form = LoanRequestForm(data=data)
    if not form.is_valid():
        raise ValidationError('Invalid loan request', errors={k: list(v) for k, v in form.errors.items()})

    with transaction.atomic():
        loan_request = form.save(commit=False)
        loan_request.customer = customer
        loan_request.current_status = RequestStatus.PENDING
        loan_request.save()
        entry = audit.record(loan_request, customer, HISTORY_REQUEST_SUBMITTED, {
            'to_status': RequestStatus.PENDING,
            'requested_amount': loan_request.requested_amount,
            'district': loan_request.district,
        })

    logger.info(f"Loan request {loan_request.request_number} submitted by {customer.email}")
    return TransitionResult(request=loan_request, history_entry=entry)


def apply_action(loan_request, action_id, actor, role, data=None, expected_version=None):
    """
    Validate and apply one workflow action

    Args:
        loan_request: LoanRequest as the caller last read it
        action_id: ActionType value
        actor: acting User, or None for system actions
        role: role the caller acts in
        data: action input (dict), required when the action requires input
        expected_version: version the caller read (default: loan_request.version)

    Returns:
        TransitionResult

    Raises:
        ValidationError, InvalidOfferTermsError, UnknownStateError,
        InvalidTransitionError, AuthorizationError, StaleStateError
    """
    if expected_version is None:
        expected_version = loan_request.version

    try:
        result = _apply(loan_request, action_id, actor, role, data, expected_version)
    except WorkflowError as exc:
        logger.warning(
            f"Rejected '{action_id}' on {loan_request.request_number} as {role}: "
            f"{exc.kind}: {exc.message}"
        )
        raise

    entry = result.history_entry
    logger.info(
        f"{result.request.request_number}: {entry.metadata['from_status']} -> "
        f"{entry.metadata['to_status']} via '{action_id}' by {actor or 'system'}"
    )
    return result


def _apply(loan_request, action_id, actor, role, data, expected_version):
    if not is_known_action(action_id):
        raise ValidationError(f"Unknown action: {action_id!r}", errors={'action': ['Unknown action']})
    if data is not None and not isinstance(data, dict):
        raise ValidationError(
            f"Input for '{action_id}' must be an object",
            errors={'input': ['Input must be an object']},
        )

    checker = PermissionChecker(actor, role)

    with transaction.atomic():
        locked = LoanRequest.objects.select_for_update().get(pk=loan_request.pk)
        if locked.version != expected_version:
            raise StaleStateError(locked.current_status)

        source = ensure_known_state(locked.current_status)
        action = checker.check(locked, action_id)

        if action.requires_input and not data:
            raise ValidationError(
                f"Action '{action_id}' requires input",
                errors={'input': ['This action requires input']},
            )

        form = form_for(action_id, data, loan_request=locked)
        if form is not None and not form.is_valid():
            error_class = InvalidOfferTermsError if action_id in OFFER_ACTIONS else ValidationError
            raise error_class(f"Invalid input for '{action_id}'", errors=form.error_dict())

        now = timezone.now()
        step = Step(request=locked, action=action, actor=actor, form=form, now=now)
        for effect in SIDE_EFFECTS.get(action_id, ()):
            effect(step)
        _mirror_loan_status(step)

        updated = LoanRequest.objects.filter(pk=locked.pk, version=expected_version).update(
            current_status=action.target_status,
            status_changed_at=now,
            updated_at=now,
            version=F('version') + 1,
            **{name: getattr(locked, name) for name in WORKFLOW_FIELDS},
        )
        if updated != 1:
            raise StaleStateError(LoanRequest.objects.values_list('current_status', flat=True).get(pk=locked.pk))

        metadata = {
            'from_status': source.value,
            'to_status': action.target_status,
            'role': role,
        }
        metadata.update(step.metadata)
        entry = audit.record(locked, actor, action_id, metadata)

        locked.refresh_from_db()
        transaction.on_commit(lambda: request_transitioned.send(
            sender=LoanRequest,
            request=locked,
            history_entry=entry,
            action=action_id,
            from_status=source.value,
            to_status=action.target_status,
        ))

    # keep the caller's instance in step with what was persisted
    loan_request.refresh_from_db()
    return TransitionResult(request=locked, history_entry=entry)


# =============================================================================
# SIDE EFFECTS
# =============================================================================

SIDE_EFFECTS = {}


def side_effect(*action_ids):
    def register(func):
        for action_id in action_ids:
            SIDE_EFFECTS.setdefault(action_id, []).append(func)
        return func
    return register


@side_effect(
    ActionType.DECLINE_OFFER, ActionType.REFUSE_SIGNATURE, ActionType.REQUEST_MORE_INFO,
    ActionType.CANCEL_OFFER, ActionType.REQUEST_DIFFERENT_DETAILS, ActionType.REPORT_TRANSFER_FAILURE,
    ActionType.MARK_DEFAULTED, ActionType.REOPEN, ActionType.CANCEL, ActionType.REJECT,
    ActionType.REPORT_CUSTOMER_ABSENT, ActionType.REPORT_ASSET_MISMATCH, ActionType.DECLINE_INSPECTION,
)
def _record_reason(step):
    step.metadata['reason'] = step.data['reason']


@side_effect(ActionType.SUBMIT_INFO, ActionType.PROVIDE_EXPLANATION)
def _store_customer_notes(step):
    step.request.customer_notes = step.data['notes']
    step.metadata['notes'] = step.data['notes']


# ── offer ───────────────────────────────────────────────────────────────

@side_effect(ActionType.CREATE_OFFER, ActionType.REVISE_OFFER)
def _store_offer(step):
    loan_request = step.request
    preview = step.data['preview']
    if loan_request.has_offer:
        amount, rate, tenure = loan_request.offer_terms
        step.metadata['previous_terms'] = {
            'amount': amount, 'interest_rate': rate, 'tenure_months': tenure,
        }

    # a new offer must be accepted again before an agent goes out
    loan_request.assigned_agent = None
    loan_request.inspection_scheduled_at = None
    loan_request.set_offer(preview)

    step.metadata.update({
        'amount': preview.principal,
        'interest_rate': preview.annual_rate,
        'tenure_months': preview.tenure_months,
        'emi': preview.emi,
        'total_interest': preview.total_interest,
        'total_payment': preview.total_payment,
    })


@side_effect(ActionType.RESEND_OFFER)
def _resend_offer(step):
    _require_offer(step.request)
    step.request.offer_made_date = step.now


@side_effect(ActionType.CANCEL_OFFER)
def _cancel_offer(step):
    step.request.assigned_agent = None
    step.request.inspection_scheduled_at = None
    step.request.clear_offer()


@side_effect(ActionType.ACCEPT_OFFER)
def _accept_offer(step):
    _require_offer(step.request)
    step.request.offer_accepted_at = step.now
    step.metadata['offer_made_date'] = step.request.offer_made_date


def _require_offer(loan_request):
    if not loan_request.has_offer:
        raise ValidationError('Request has no offer', errors={'offer': ['No offer on this request']})


# ── inspection ──────────────────────────────────────────────────────────

@side_effect(ActionType.ASSIGN_AGENT, ActionType.REASSIGN_AGENT)
def _assign_agent(step):
    loan_request = step.request
    if not loan_request.offer_accepted_at:
        raise ValidationError(
            'An agent can only be assigned after the offer is accepted',
            errors={'agent_id': ['Offer has not been accepted']},
        )
    agent = step.data['agent_id']
    step.metadata['previous_agent_id'] = str(loan_request.assigned_agent_id) if loan_request.assigned_agent_id else None
    step.metadata['agent_id'] = str(agent.pk)
    loan_request.assigned_agent = agent
    loan_request.inspection_scheduled_at = step.data.get('scheduled_at')
    if loan_request.inspection_scheduled_at:
        step.metadata['scheduled_at'] = loan_request.inspection_scheduled_at


@side_effect(ActionType.REQUEST_RESCHEDULE, ActionType.RESCHEDULE_INSPECTION)
def _reschedule(step):
    scheduled_at = step.data['scheduled_at']
    step.metadata['scheduled_at'] = scheduled_at
    if step.data.get('reason'):
        step.metadata['reason'] = step.data['reason']
    if step.action.target_status == RequestStatus.INSPECTION_SCHEDULED:
        step.request.inspection_scheduled_at = scheduled_at


@side_effect(ActionType.REPORT_CUSTOMER_ABSENT, ActionType.REPORT_ASSET_MISMATCH, ActionType.DECLINE_INSPECTION)
def _store_inspection_reason(step):
    step.request.inspection_notes = step.data['reason']


@side_effect(ActionType.COMPLETE_INSPECTION)
def _complete_inspection(step):
    step.request.inspection_notes = step.data['notes']
    step.metadata['notes'] = step.data['notes']
    if step.data.get('verified_value') is not None:
        step.metadata['verified_value'] = step.data['verified_value']


# ── payout details ──────────────────────────────────────────────────────

@side_effect(ActionType.SUBMIT_BANK_DETAILS, ActionType.UPDATE_BANK_DETAILS)
def _store_payout_details(step):
    step.request.payout_details = step.form.payout_details()
    step.metadata['method'] = step.data['method']


@side_effect(ActionType.REQUEST_DIFFERENT_DETAILS)
def _clear_payout_details(step):
    step.request.payout_details = {}


@side_effect(ActionType.SIGN_AGREEMENT)
def _sign_agreement(step):
    step.metadata['signed_at'] = step.now


# ── loan ────────────────────────────────────────────────────────────────

@side_effect(ActionType.FINALIZE)
def _finalize(step):
    """
    Create the Loan and its EMI rows from the stored offer snapshot

    The snapshot is copied, never recomputed. Finalizing again with the same
    terms reuses the existing loan; different terms are refused.
    """
    loan_request = step.request
    _require_offer(loan_request)

    existing = Loan.objects.filter(request=loan_request).first()
    if existing is not None:
        if existing.terms != loan_request.offer_terms:
            raise ValidationError(
                'Loan already finalized with different terms',
                errors={'offer': [f"Loan {existing.loan_number} was created with different terms"]},
            )
        step.metadata.update({'loan_id': str(existing.pk), 'loan_number': existing.loan_number, 'reused': True})
        return

    installments = list(loan_request.offer_installments.order_by('installment_number'))
    if not installments:
        raise ValidationError('Offer has no EMI schedule', errors={'offer': ['Missing EMI schedule']})

    loan = Loan.objects.create(
        request=loan_request,
        customer=loan_request.customer,
        approved_amount=loan_request.admin_offered_amount,
        interest_rate=loan_request.admin_interest_rate,
        tenure_months=loan_request.admin_tenure_months,
        emi_amount=loan_request.offer_emi,
        total_interest=loan_request.offer_total_interest,
        total_payment=loan_request.offer_total_payment,
        first_emi_date=installments[0].payment_date,
        last_emi_date=installments[-1].payment_date,
    )
    EMISchedule.objects.bulk_create([
        EMISchedule(
            loan=loan,
            emi_number=row.installment_number,
            due_date=row.payment_date,
            emi_amount=row.payment_amount,
            principal_amount=row.principal_component,
            interest_amount=row.interest_component,
            remaining_balance=row.remaining_balance,
        )
        for row in installments
    ])
    step.metadata.update({'loan_id': str(loan.pk), 'loan_number': loan.loan_number, 'reused': False})


def _loan_for(loan_request):
    loan = Loan.objects.filter(request=loan_request).first()
    if loan is None:
        raise ValidationError('Request has no loan', errors={'loan': ['Loan has not been finalized']})
    return loan


@side_effect(ActionType.TRANSFER_AMOUNT)
def _start_transfer(step):
    step.request.transfer_reference = step.data['reference']
    step.metadata['reference'] = step.data['reference']


@side_effect(ActionType.CONFIRM_TRANSFER)
def _confirm_transfer(step):
    loan = _loan_for(step.request)
    loan.disbursed_at = step.now
    loan.save(update_fields=['disbursed_at', 'updated_at'])
    step.request.transfer_reference = step.data['reference']
    step.metadata['reference'] = step.data['reference']


@side_effect(ActionType.ACTIVATE_LOAN)
def _activate_loan(step):
    """Re-date the installments from the first EMI date; amounts never change"""
    loan = _loan_for(step.request)
    first_emi_date = step.data['first_emi_date']
    emis = list(loan.emis.order_by('emi_number'))
    for emi in emis:
        emi.due_date = first_emi_date + relativedelta(months=emi.emi_number - 1)
    EMISchedule.objects.bulk_update(emis, ['due_date'])

    loan.first_emi_date = emis[0].due_date
    loan.last_emi_date = emis[-1].due_date
    loan.activated_at = step.now
    loan.save(update_fields=['first_emi_date', 'last_emi_date', 'activated_at', 'updated_at'])
    step.metadata.update({'loan_number': loan.loan_number, 'first_emi_date': first_emi_date})


@side_effect(ActionType.MARK_OVERDUE, ActionType.FLAG_OVERDUE)
def _flag_overdue(step):
    loan = _loan_for(step.request)
    missed = list(loan.missed_emis(timezone.localdate(step.now)).filter(status=EMIStatus.PENDING))
    for emi in missed:
        emi.status = EMIStatus.OVERDUE
    EMISchedule.objects.bulk_update(missed, ['status'])
    step.metadata['overdue_emis'] = [emi.emi_number for emi in missed]


@side_effect(ActionType.MARK_PAID)
def _mark_paid(step):
    loan = _loan_for(step.request)
    unpaid = loan.emis.unpaid().order_by('emi_number')
    emi_number = step.data.get('emi_number')
    emi = unpaid.filter(emi_number=emi_number).first() if emi_number else unpaid.first()
    if emi is None:
        raise ValidationError('No unpaid EMI to mark as paid', errors={'emi_number': ['No matching unpaid EMI']})

    emi.status = EMIStatus.PAID
    emi.paid_at = step.now
    emi.payment_reference = step.data['reference']
    emi.save(update_fields=['status', 'paid_at', 'payment_reference', 'updated_at'])
    step.metadata.update({'emi_number': emi.emi_number, 'reference': step.data['reference']})


@side_effect(ActionType.MARK_DEFAULTED, ActionType.DEFAULT_LOAN)
def _default_loan(step):
    loan = _loan_for(step.request)
    defaulted = loan.emis.unpaid().update(status=EMIStatus.DEFAULTED)
    step.metadata['defaulted_emis'] = defaulted


@side_effect(ActionType.MARK_SETTLED)
def _settle(step):
    _loan_for(step.request)
    step.metadata.update({
        'settlement_amount': step.data['settlement_amount'],
        'reference': step.data['reference'],
    })


@side_effect(ActionType.MARK_COMPLETED, ActionType.CLOSE_LOAN)
def _complete_loan(step):
    loan = _loan_for(step.request)
    outstanding = loan.emis.exclude(status=EMIStatus.PAID).count()
    if outstanding:
        raise ValidationError(
            'Loan still has unpaid EMIs',
            errors={'loan': [f"{outstanding} EMI(s) are not paid"]},
        )


@side_effect(ActionType.REOPEN)
def _reopen(step):
    loan_request = step.request
    if Loan.objects.filter(request=loan_request).exists():
        raise ValidationError('A request with a loan cannot be reopened', errors={'loan': ['Loan exists']})
    loan_request.assigned_agent = None
    loan_request.inspection_scheduled_at = None
    loan_request.clear_offer()


def _mirror_loan_status(step):
    loan_status = LOAN_STATUS_FOR_REQUEST.get(step.action.target_status)
    if loan_status is None:
        return
    loan = Loan.objects.filter(request=step.request).first()
    if loan is None or loan.status == loan_status:
        return
    loan.status = loan_status
    update_fields = ['status', 'updated_at']
    if loan_status in (LoanStatus.COMPLETED, LoanStatus.DEFAULTED):
        loan.closed_at = step.now
        update_fields.append('closed_at')
    loan.save(update_fields=update_fields)

