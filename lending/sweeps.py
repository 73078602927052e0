"""
System Sweeps
=============

Applies the actor-less SYSTEM transitions:

- expire-offer        OFFER_SENT longer than LENDING_OFFER_VALIDITY_DAYS
- request-signature   every APPROVED request
- expire-request      PENDING_SIGNATURE / PENDING_BANK_DETAILS past their window
- flag-overdue        ACTIVE loans with a missed EMI
- close-loan          ACTIVE loans with every EMI paid
- default-loan        PAYMENT_OVERDUE loans with LENDING_DEFAULT_AFTER_MISSED_EMIS missed EMIs

Each request goes through ``apply_action`` like any other caller. A request
that moved underneath the sweep is skipped and picked up on the next run.
"""

import logging
from collections import Counter

from django.conf import settings
from django.utils import timezone

from lending.constants import ActionType, EMIStatus, RequestStatus, Role
from lending.exceptions import InvalidTransitionError, StaleStateError
from lending.models import Loan, LoanRequest
from lending.workflow import apply_action


logger = logging.getLogger(__name__)


def _setting(name, default):
    return getattr(settings, name, default)


def due_transitions(now=None):
    """
    Yield (loan_request, action_id) pairs the system should apply now

    Read-only: nothing is changed until the pairs are applied.
    """
    now = now or timezone.now()
    today = timezone.localdate(now)
    requests = LoanRequest.objects.actionable_by_system()

    for loan_request in requests.idle_since(
        RequestStatus.OFFER_SENT, _setting('LENDING_OFFER_VALIDITY_DAYS', 7), now
    ):
        yield loan_request, ActionType.EXPIRE_OFFER

    for loan_request in requests.in_status(RequestStatus.APPROVED):
        yield loan_request, ActionType.REQUEST_SIGNATURE

    for loan_request in requests.idle_since(
        RequestStatus.PENDING_SIGNATURE, _setting('LENDING_SIGNATURE_WINDOW_DAYS', 7), now
    ):
        yield loan_request, ActionType.EXPIRE_REQUEST

    for loan_request in requests.idle_since(
        RequestStatus.PENDING_BANK_DETAILS, _setting('LENDING_BANK_DETAILS_WINDOW_DAYS', 7), now
    ):
        yield loan_request, ActionType.EXPIRE_REQUEST

    loans = Loan.objects.select_related('request')
    for loan in loans.filter(request__current_status=RequestStatus.ACTIVE):
        if not loan.emis.exclude(status=EMIStatus.PAID).exists():
            yield loan.request, ActionType.CLOSE_LOAN
        elif loan.missed_emis(today).exists():
            yield loan.request, ActionType.FLAG_OVERDUE

    threshold = _setting('LENDING_DEFAULT_AFTER_MISSED_EMIS', 3)
    for loan in loans.filter(request__current_status=RequestStatus.PAYMENT_OVERDUE):
        if loan.missed_emis(today).count() >= threshold:
            yield loan.request, ActionType.DEFAULT_LOAN


def run_sweeps(now=None):
    """
    Apply every due system transition

    Returns:
        Counter: applied count per action id, plus 'skipped'
    """
    counts = Counter()
    for loan_request, action_id in list(due_transitions(now)):
        try:
            apply_action(loan_request, action_id, None, Role.SYSTEM)
        except (StaleStateError, InvalidTransitionError):
            # apply_action has already logged the rejection
            counts['skipped'] += 1
            continue
        counts[action_id] += 1

    logger.info(f"Workflow sweep finished: {dict(counts) or 'nothing due'}")
    return counts
