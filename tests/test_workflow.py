from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from lending.constants import ActionType, EMIStatus, LoanStatus, RequestStatus, Role
from lending.exceptions import (
    AuthorizationError,
    InvalidOfferTermsError,
    InvalidTransitionError,
    StaleStateError,
    ValidationError,
)
from lending.models import EMISchedule, Loan, LoanRequest, OfferInstallment, RequestHistory
from lending.signals import request_transitioned
from lending.workflow import apply_action, submit_request

from .conftest import OFFER_TERMS


pytestmark = pytest.mark.django_db


def _history_actions(loan_request):
    return list(RequestHistory.objects.for_request(loan_request).values_list('action', flat=True))


# =============================================================================
# INTAKE
# =============================================================================

def test_submit_request_creates_pending_request_with_history(customer):
    result = submit_request(customer, {
        'district': 'north', 'requested_amount': '25000', 'asset_type': 'Bike',
    })
    assert result.request.current_status == RequestStatus.PENDING
    assert result.request.request_number.startswith('REQ')
    assert result.history_entry.action == 'request-submitted'
    assert result.history_entry.actor == customer


def test_submit_request_rejects_non_customer(district_admin):
    with pytest.raises(AuthorizationError):
        submit_request(district_admin, {'district': 'north', 'requested_amount': '100', 'asset_type': 'Car'})


def test_submit_request_validates_amount(customer):
    with pytest.raises(ValidationError) as exc_info:
        submit_request(customer, {'district': 'north', 'requested_amount': '0', 'asset_type': 'Car'})
    assert 'requested_amount' in exc_info.value.errors


# =============================================================================
# OFFERS
# =============================================================================

def test_create_offer_stores_terms_and_schedule(offer_sent):
    offer_sent.refresh_from_db()
    assert offer_sent.current_status == RequestStatus.OFFER_SENT
    assert offer_sent.offer_terms == (Decimal('45000.00'), Decimal('12.00'), 6)
    assert offer_sent.offer_emi == Decimal('7764.68')
    assert offer_sent.offer_total_interest == Decimal('1588.06')
    assert offer_sent.offer_installments.count() == 6

    entry = RequestHistory.objects.for_request(offer_sent).last()
    assert entry.action == ActionType.CREATE_OFFER
    assert entry.metadata['from_status'] == RequestStatus.UNDER_REVIEW
    assert entry.metadata['to_status'] == RequestStatus.OFFER_SENT
    assert entry.metadata['emi'] == '7764.68'


def test_revised_offer_replaces_schedule_entirely(offer_sent, district_admin):
    old_rows = set(OfferInstallment.objects.filter(request=offer_sent).values_list('pk', flat=True))

    apply_action(offer_sent, 'revise-offer', district_admin, Role.DISTRICT_ADMIN,
                 {'amount': '40000', 'tenure_months': 9, 'interest_rate': '10'})

    rows = OfferInstallment.objects.filter(request=offer_sent)
    assert rows.count() == 9
    assert not old_rows & set(rows.values_list('pk', flat=True))
    assert sum(row.principal_component for row in rows) == Decimal('40000.00')
    assert rows.order_by('installment_number').last().remaining_balance == Decimal('0.00')

    offer_sent.refresh_from_db()
    assert offer_sent.current_status == RequestStatus.OFFER_SENT
    assert offer_sent.offer_terms == (Decimal('40000.00'), Decimal('10.00'), 9)
    entry = RequestHistory.objects.for_request(offer_sent).last()
    assert entry.metadata['previous_terms'] == {
        'amount': '45000.00', 'interest_rate': '12.00', 'tenure_months': 6,
    }


@pytest.mark.parametrize('terms', [
    {'amount': '0', 'tenure_months': 6, 'interest_rate': '12'},
    {'amount': '45000', 'tenure_months': 0, 'interest_rate': '12'},
    {'amount': '45000', 'tenure_months': 6, 'interest_rate': '-1'},
    {'amount': '45000', 'tenure_months': '6.5', 'interest_rate': '12'},
])
def test_invalid_offer_terms_leave_request_untouched(loan_request, district_admin, terms):
    apply_action(loan_request, 'start-review', district_admin, Role.DISTRICT_ADMIN)
    history_before = RequestHistory.objects.for_request(loan_request).count()

    with pytest.raises(InvalidOfferTermsError):
        apply_action(loan_request, 'create-offer', district_admin, Role.DISTRICT_ADMIN, terms)

    loan_request.refresh_from_db()
    assert loan_request.current_status == RequestStatus.UNDER_REVIEW
    assert not loan_request.has_offer
    assert RequestHistory.objects.for_request(loan_request).count() == history_before


def test_create_offer_while_offer_sent_is_invalid_transition(offer_sent, district_admin):
    with pytest.raises(InvalidTransitionError) as exc_info:
        apply_action(offer_sent, 'create-offer', district_admin, Role.DISTRICT_ADMIN, OFFER_TERMS)
    assert exc_info.value.current_state == RequestStatus.OFFER_SENT
    assert exc_info.value.to_dict()['rejected_target'] == RequestStatus.OFFER_SENT


def test_non_owner_cannot_accept_offer(offer_sent, other_customer):
    with pytest.raises(AuthorizationError):
        apply_action(offer_sent, 'accept-offer', other_customer, Role.CUSTOMER)
    offer_sent.refresh_from_db()
    assert offer_sent.current_status == RequestStatus.OFFER_SENT


def test_admin_cannot_accept_offer_on_customers_behalf(offer_sent, district_admin):
    with pytest.raises(AuthorizationError):
        apply_action(offer_sent, 'accept-offer', district_admin, Role.DISTRICT_ADMIN)


def test_caller_must_hold_claimed_role(offer_sent, other_customer):
    with pytest.raises(AuthorizationError):
        apply_action(offer_sent, 'revise-offer', other_customer, Role.DISTRICT_ADMIN, OFFER_TERMS)


def test_admin_outside_district_is_rejected(loan_request, other_district_admin, super_admin):
    with pytest.raises(AuthorizationError):
        apply_action(loan_request, 'start-review', other_district_admin, Role.DISTRICT_ADMIN)
    apply_action(loan_request, 'start-review', super_admin, Role.SUPER_ADMIN)
    assert loan_request.current_status == RequestStatus.UNDER_REVIEW


def test_decline_then_revise(offer_sent, customer, district_admin):
    apply_action(offer_sent, 'decline-offer', customer, Role.CUSTOMER, {'reason': 'Rate too high'})
    assert offer_sent.current_status == RequestStatus.OFFER_DECLINED

    apply_action(offer_sent, 'revise-offer', district_admin, Role.DISTRICT_ADMIN,
                 {'amount': '45000', 'tenure_months': 6, 'interest_rate': '10'})
    assert offer_sent.current_status == RequestStatus.OFFER_SENT


def test_cancel_offer_clears_terms_as_a_unit(offer_sent, district_admin):
    apply_action(offer_sent, 'cancel-offer', district_admin, Role.DISTRICT_ADMIN, {'reason': 'Duplicate'})
    offer_sent.refresh_from_db()
    assert offer_sent.current_status == RequestStatus.CANCELLED
    assert offer_sent.offer_terms is None
    assert offer_sent.offer_installments.count() == 0


# =============================================================================
# INPUT & UNKNOWN ACTIONS
# =============================================================================

def test_unknown_action_is_validation_error(loan_request, district_admin):
    with pytest.raises(ValidationError):
        apply_action(loan_request, 'teleport', district_admin, Role.DISTRICT_ADMIN)


def test_missing_required_input(loan_request, district_admin):
    with pytest.raises(ValidationError) as exc_info:
        apply_action(loan_request, 'reject', district_admin, Role.DISTRICT_ADMIN)
    assert exc_info.value.kind == 'ValidationError'
    loan_request.refresh_from_db()
    assert loan_request.current_status == RequestStatus.PENDING


def test_reject_records_reason(loan_request, district_admin):
    result = apply_action(loan_request, 'reject', district_admin, Role.DISTRICT_ADMIN,
                          {'reason': 'Asset not eligible'})
    assert result.request.current_status == RequestStatus.REJECTED
    assert result.history_entry.metadata['reason'] == 'Asset not eligible'
    assert result.history_entry.metadata['role'] == Role.DISTRICT_ADMIN


# =============================================================================
# AGENT ASSIGNMENT
# =============================================================================

def test_assign_agent_moves_to_inspection(inspection_scheduled, agent):
    inspection_scheduled.refresh_from_db()
    assert inspection_scheduled.current_status == RequestStatus.INSPECTION_SCHEDULED
    assert inspection_scheduled.assigned_agent == agent
    entry = RequestHistory.objects.for_request(inspection_scheduled).last()
    assert entry.metadata['agent_id'] == str(agent.pk)


def test_agent_must_serve_request_district(offer_accepted, district_admin, south_agent):
    with pytest.raises(ValidationError) as exc_info:
        apply_action(offer_accepted, 'assign-agent', district_admin, Role.DISTRICT_ADMIN,
                     {'agent_id': south_agent.pk})
    assert 'agent_id' in exc_info.value.errors


def test_assignee_must_be_an_agent(offer_accepted, district_admin, customer):
    with pytest.raises(ValidationError):
        apply_action(offer_accepted, 'assign-agent', district_admin, Role.DISTRICT_ADMIN,
                     {'agent_id': customer.pk})


def test_concurrent_assignments_only_one_wins(offer_accepted, district_admin, agent, other_agent):
    first_view = LoanRequest.objects.get(pk=offer_accepted.pk)
    second_view = LoanRequest.objects.get(pk=offer_accepted.pk)

    apply_action(first_view, 'assign-agent', district_admin, Role.DISTRICT_ADMIN, {'agent_id': agent.pk})
    with pytest.raises(StaleStateError) as exc_info:
        apply_action(second_view, 'assign-agent', district_admin, Role.DISTRICT_ADMIN,
                     {'agent_id': other_agent.pk})

    assert exc_info.value.current_state == RequestStatus.INSPECTION_SCHEDULED
    offer_accepted.refresh_from_db()
    assert offer_accepted.assigned_agent == agent
    assert _history_actions(offer_accepted).count(ActionType.ASSIGN_AGENT) == 1


def test_only_assigned_agent_can_inspect(inspection_scheduled, other_agent):
    with pytest.raises(AuthorizationError):
        apply_action(inspection_scheduled, 'start-inspection', other_agent, Role.AGENT)


def test_reassign_after_agent_declines(inspection_scheduled, agent, other_agent, district_admin):
    apply_action(inspection_scheduled, 'decline-inspection', agent, Role.AGENT, {'reason': 'Unwell'})
    assert inspection_scheduled.current_status == RequestStatus.AGENT_NOT_AVAILABLE

    apply_action(inspection_scheduled, 'reassign-agent', district_admin, Role.DISTRICT_ADMIN,
                 {'agent_id': other_agent.pk})
    inspection_scheduled.refresh_from_db()
    assert inspection_scheduled.assigned_agent == other_agent
    assert inspection_scheduled.current_status == RequestStatus.INSPECTION_SCHEDULED


def test_customer_reschedule_after_no_show(inspection_scheduled, agent, customer):
    apply_action(inspection_scheduled, 'report-customer-absent', agent, Role.AGENT, {'reason': 'Door locked'})
    when = timezone.now() + timedelta(days=2)
    apply_action(inspection_scheduled, 'request-reschedule', customer, Role.CUSTOMER,
                 {'scheduled_at': when.isoformat()})
    inspection_scheduled.refresh_from_db()
    assert inspection_scheduled.current_status == RequestStatus.INSPECTION_SCHEDULED
    assert inspection_scheduled.inspection_scheduled_at is not None


def test_asset_mismatch_revision_unassigns_agent(inspection_scheduled, agent, district_admin):
    apply_action(inspection_scheduled, 'start-inspection', agent, Role.AGENT)
    apply_action(inspection_scheduled, 'report-asset-mismatch', agent, Role.AGENT, {'reason': '18 carat'})
    apply_action(inspection_scheduled, 'revise-offer', district_admin, Role.DISTRICT_ADMIN,
                 {'amount': '30000', 'tenure_months': 6, 'interest_rate': '12'})

    inspection_scheduled.refresh_from_db()
    assert inspection_scheduled.current_status == RequestStatus.OFFER_SENT
    assert inspection_scheduled.assigned_agent is None
    assert inspection_scheduled.offer_accepted_at is None


# =============================================================================
# FINALIZE & LOAN LIFECYCLE
# =============================================================================

def test_finalize_copies_snapshot_into_loan(processing):
    loan = Loan.objects.get(request=processing)
    assert processing.current_status == RequestStatus.PROCESSING_LOAN
    assert loan.terms == (Decimal('45000.00'), Decimal('12.00'), 6)
    assert loan.emi_amount == Decimal('7764.68')
    assert loan.status == LoanStatus.PROCESSING

    offer_rows = list(processing.offer_installments.values_list(
        'installment_number', 'payment_amount', 'principal_component', 'interest_component'))
    loan_rows = list(loan.emis.values_list('emi_number', 'emi_amount', 'principal_amount', 'interest_amount'))
    assert loan_rows == offer_rows


def test_finalize_after_approval_path(approved, district_admin):
    assert approved.current_status == RequestStatus.APPROVED
    apply_action(approved, 'finalize', district_admin, Role.DISTRICT_ADMIN)
    assert approved.current_status == RequestStatus.PROCESSING_LOAN


def _disburse(loan_request, customer, district_admin, first_emi_date):
    apply_action(loan_request, 'transfer-amount', district_admin, Role.DISTRICT_ADMIN, {'reference': 'UTR1'})
    apply_action(loan_request, 'confirm-transfer', district_admin, Role.DISTRICT_ADMIN, {'reference': 'UTR1'})
    apply_action(loan_request, 'activate-loan', district_admin, Role.DISTRICT_ADMIN,
                 {'first_emi_date': first_emi_date.isoformat()})


def test_transfer_failure_then_refinalize_reuses_loan(processing, customer, district_admin):
    apply_action(processing, 'transfer-amount', district_admin, Role.DISTRICT_ADMIN, {'reference': 'UTR1'})
    apply_action(processing, 'report-transfer-failure', district_admin, Role.DISTRICT_ADMIN,
                 {'reason': 'Account closed'})
    apply_action(processing, 'update-bank-details', customer, Role.CUSTOMER,
                 {'method': 'upi', 'upi_id': 'someone@bank'})
    result = apply_action(processing, 'finalize', district_admin, Role.DISTRICT_ADMIN)

    assert Loan.objects.filter(request=processing).count() == 1
    assert result.history_entry.metadata['reused'] is True
    assert processing.payout_details == {'method': 'upi', 'upi_id': 'someone@bank'}


def test_activation_redates_without_repricing(processing, customer, district_admin):
    loan = Loan.objects.get(request=processing)
    amounts_before = list(loan.emis.values_list('emi_amount', flat=True))
    first = timezone.localdate() + timedelta(days=10)

    _disburse(processing, customer, district_admin, first)

    loan.refresh_from_db()
    assert processing.current_status == RequestStatus.ACTIVE
    assert loan.status == LoanStatus.ACTIVE
    assert loan.first_emi_date == first
    assert list(loan.emis.values_list('emi_amount', flat=True)) == amounts_before
    assert loan.emis.get(emi_number=1).due_date == first


def test_overdue_payment_and_completion(processing, customer, district_admin):
    _disburse(processing, customer, district_admin, timezone.localdate() + timedelta(days=1))
    loan = Loan.objects.get(request=processing)
    EMISchedule.objects.filter(loan=loan, emi_number=1).update(due_date=timezone.localdate() - timedelta(days=3))

    result = apply_action(processing, 'mark-overdue', district_admin, Role.DISTRICT_ADMIN)
    assert result.history_entry.metadata['overdue_emis'] == [1]
    assert loan.emis.get(emi_number=1).status == EMIStatus.OVERDUE

    apply_action(processing, 'mark-paid', district_admin, Role.DISTRICT_ADMIN, {'reference': 'PAY1'})
    assert processing.current_status == RequestStatus.ACTIVE
    assert loan.emis.get(emi_number=1).status == EMIStatus.PAID

    with pytest.raises(ValidationError):
        apply_action(processing, 'mark-completed', district_admin, Role.DISTRICT_ADMIN)

    loan.emis.update(status=EMIStatus.PAID)
    apply_action(processing, 'mark-completed', district_admin, Role.DISTRICT_ADMIN)
    loan.refresh_from_db()
    assert processing.current_status == RequestStatus.COMPLETED
    assert loan.status == LoanStatus.COMPLETED
    assert loan.closed_at is not None


def test_default_and_settlement(processing, customer, district_admin):
    _disburse(processing, customer, district_admin, timezone.localdate() + timedelta(days=1))
    apply_action(processing, 'mark-overdue', district_admin, Role.DISTRICT_ADMIN)
    apply_action(processing, 'mark-defaulted', district_admin, Role.DISTRICT_ADMIN, {'reason': 'No contact'})

    loan = Loan.objects.get(request=processing)
    assert loan.status == LoanStatus.DEFAULTED
    assert not loan.emis.unpaid().exists()

    apply_action(processing, 'mark-settled', district_admin, Role.DISTRICT_ADMIN,
                 {'settlement_amount': '20000', 'reference': 'SET1'})
    loan.refresh_from_db()
    assert loan.status == LoanStatus.COMPLETED


def test_reopen_rejected_request(loan_request, district_admin):
    apply_action(loan_request, 'reject', district_admin, Role.DISTRICT_ADMIN, {'reason': 'Blurry photos'})
    apply_action(loan_request, 'reopen', district_admin, Role.DISTRICT_ADMIN, {'reason': 'New photos'})
    assert loan_request.current_status == RequestStatus.UNDER_REVIEW


# =============================================================================
# CONSISTENCY
# =============================================================================

def test_every_transition_writes_exactly_one_entry_and_bumps_version(loan_request, district_admin, customer):
    steps = [
        ('start-review', district_admin, Role.DISTRICT_ADMIN, None),
        ('create-offer', district_admin, Role.DISTRICT_ADMIN, OFFER_TERMS),
        ('accept-offer', customer, Role.CUSTOMER, None),
    ]
    for action_id, actor, role, data in steps:
        before_version = loan_request.version
        before_count = RequestHistory.objects.for_request(loan_request).count()
        apply_action(loan_request, action_id, actor, role, data)
        assert loan_request.version == before_version + 1
        assert RequestHistory.objects.for_request(loan_request).count() == before_count + 1
    assert _history_actions(loan_request) == [
        'request-submitted', 'start-review', 'create-offer', 'accept-offer',
    ]


def test_signal_sent_after_commit(loan_request, district_admin, django_capture_on_commit_callbacks):
    received = []

    def receiver(sender, **kwargs):
        received.append(kwargs)

    request_transitioned.connect(receiver)
    try:
        with django_capture_on_commit_callbacks(execute=True):
            apply_action(loan_request, 'start-review', district_admin, Role.DISTRICT_ADMIN)
    finally:
        request_transitioned.disconnect(receiver)

    assert len(received) == 1
    assert received[0]['action'] == 'start-review'
    assert received[0]['from_status'] == RequestStatus.PENDING
    assert received[0]['to_status'] == RequestStatus.UNDER_REVIEW


def test_no_signal_for_rejected_action(loan_request, other_district_admin, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks() as callbacks:
        with pytest.raises(AuthorizationError):
            apply_action(loan_request, 'start-review', other_district_admin, Role.DISTRICT_ADMIN)
    assert callbacks == []


def test_system_role_cannot_be_claimed_by_a_user(offer_sent, super_admin):
    with pytest.raises(AuthorizationError):
        apply_action(offer_sent, 'expire-offer', super_admin, Role.SYSTEM)


def test_system_expires_offer(offer_sent):
    result = apply_action(offer_sent, 'expire-offer', None, Role.SYSTEM)
    assert result.request.current_status == RequestStatus.OFFER_EXPIRED
    assert result.history_entry.actor is None
    assert result.history_entry.metadata['role'] == Role.SYSTEM


@pytest.mark.parametrize('data', ['too low', ['reason'], 42])
def test_non_object_input_is_rejected_before_any_change(offer_sent, customer, data):
    with pytest.raises(ValidationError) as exc_info:
        apply_action(offer_sent, 'decline-offer', customer, Role.CUSTOMER, data)
    assert exc_info.value.errors == {'input': ['Input must be an object']}
    offer_sent.refresh_from_db()
    assert offer_sent.current_status == RequestStatus.OFFER_SENT
