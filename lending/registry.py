"""
State Registry
==============

The static lifecycle table: every request status, and every legal transition
out of it grouped by action family (customer / admin / agent / system).

This table is the single source of truth. Callers never hard-code which
actions exist in which state; they ask ``transitions_from`` or the resolver
in ``lending.permissions``.
"""

from dataclasses import dataclass

from lending.constants import ActionFamily, ActionType, RequestStatus, ROLE_FAMILY
from lending.exceptions import UnknownStateError


S = RequestStatus
A = ActionType


@dataclass(frozen=True)
class WorkflowAction:
    """
    One legal edge of the state machine

    ``label``, ``description`` and ``priority`` are presentation metadata only;
    authorization comes from ``family`` and the scope predicates.
    """

    id: str
    label: str
    source: str
    target_status: str
    family: str
    priority: int = 99
    requires_input: bool = False
    requires_confirmation: bool = False
    description: str = ''

    @property
    def allowed_roles(self):
        return frozenset(role for role, family in ROLE_FAMILY.items() if family == self.family)

    def as_dict(self):
        return {
            'id': self.id,
            'label': self.label,
            'target_status': self.target_status,
            'allowed_roles': sorted(self.allowed_roles),
            'requires_input': self.requires_input,
            'requires_confirmation': self.requires_confirmation,
            'priority': self.priority,
            'description': self.description,
        }


def customer(action, target, **options):
    return ActionFamily.CUSTOMER, action, target, options


def admin(action, target, **options):
    return ActionFamily.ADMIN, action, target, options


def agent(action, target, **options):
    return ActionFamily.AGENT, action, target, options


def system(action, target, **options):
    return ActionFamily.SYSTEM, action, target, options


# =============================================================================
# STATE DESCRIPTIONS
# =============================================================================

STATE_DESCRIPTIONS = {
    S.PENDING: 'Customer submitted request, waiting for admin to review',
    S.UNDER_REVIEW: 'Admin is reviewing the request',
    S.MORE_INFO_REQUIRED: 'Admin needs additional documents from customer',
    S.OFFER_SENT: 'Admin sent offer, waiting for customer response',
    S.OFFER_ACCEPTED: 'Customer accepted offer, ready to assign agent',
    S.OFFER_DECLINED: 'Customer declined the offer',
    S.OFFER_EXPIRED: 'Offer expired, customer did not respond in time',
    S.INSPECTION_SCHEDULED: 'Agent assigned with scheduled date and time',
    S.INSPECTION_RESCHEDULE_REQUESTED: 'Customer requested to reschedule inspection',
    S.INSPECTION_IN_PROGRESS: 'Agent is conducting physical inspection',
    S.INSPECTION_COMPLETED: 'Agent completed inspection, decision pending',
    S.CUSTOMER_NOT_AVAILABLE: 'Customer was not available at scheduled time',
    S.ASSET_MISMATCH: 'Asset does not match description provided',
    S.AGENT_NOT_AVAILABLE: 'Agent cannot make the scheduled inspection',
    S.APPROVED: 'Agent approved the request',
    S.PENDING_SIGNATURE: 'Waiting for customer to sign loan agreement',
    S.PENDING_BANK_DETAILS: 'Waiting for customer to provide UPI/bank details',
    S.BANK_DETAILS_SUBMITTED: 'Customer submitted bank details, admin verifying',
    S.PROCESSING_LOAN: 'Loan record created, ready for transfer',
    S.TRANSFERRING_AMOUNT: 'Admin is transferring money to customer',
    S.TRANSFER_FAILED: 'Transfer failed, need different bank details',
    S.AMOUNT_DISBURSED: 'Money successfully sent to customer',
    S.ACTIVE: 'Loan is active, customer paying EMIs',
    S.PAYMENT_OVERDUE: 'Customer missed EMI payment',
    S.DEFAULTED: 'Multiple missed payments, loan defaulted',
    S.COMPLETED: 'All EMIs paid, loan successfully closed',
    S.REJECTED: 'Request was rejected',
    S.CANCELLED: 'Request was cancelled',
}


# =============================================================================
# TRANSITION TABLE
# =============================================================================

_MATRIX = {

    # ── submission & review ─────────────────────────────────────────────
    S.PENDING: [
        customer(A.WITHDRAW, S.CANCELLED, requires_confirmation=True, priority=10),
        admin(A.START_REVIEW, S.UNDER_REVIEW, priority=1),
        admin(A.REJECT, S.REJECTED, requires_input=True, requires_confirmation=True, priority=5),
    ],
    S.UNDER_REVIEW: [
        admin(A.CREATE_OFFER, S.OFFER_SENT, requires_input=True, priority=1),
        admin(A.REQUEST_MORE_INFO, S.MORE_INFO_REQUIRED, requires_input=True, priority=2),
        admin(A.REJECT, S.REJECTED, requires_input=True, requires_confirmation=True, priority=5),
    ],
    S.MORE_INFO_REQUIRED: [
        customer(A.SUBMIT_INFO, S.PENDING, requires_input=True, priority=1),
        customer(A.WITHDRAW, S.CANCELLED, requires_confirmation=True, priority=10),
        admin(A.RESUME_REVIEW, S.UNDER_REVIEW, priority=2),
        admin(A.CANCEL, S.CANCELLED, requires_input=True, requires_confirmation=True, priority=10),
    ],

    # ── offer & negotiation ─────────────────────────────────────────────
    S.OFFER_SENT: [
        customer(A.ACCEPT_OFFER, S.OFFER_ACCEPTED, priority=1),
        customer(A.DECLINE_OFFER, S.OFFER_DECLINED, requires_input=True, priority=2),
        admin(A.REVISE_OFFER, S.OFFER_SENT, requires_input=True, priority=2),
        admin(A.CANCEL_OFFER, S.CANCELLED, requires_input=True, requires_confirmation=True, priority=10),
        system(A.EXPIRE_OFFER, S.OFFER_EXPIRED, description='Expires when the customer does not respond in time'),
    ],
    S.OFFER_ACCEPTED: [
        admin(A.ASSIGN_AGENT, S.INSPECTION_SCHEDULED, requires_input=True, priority=1,
              label='Assign Agent for Inspection'),
        admin(A.FINALIZE, S.PROCESSING_LOAN, requires_confirmation=True, priority=3),
        admin(A.CANCEL, S.CANCELLED, requires_input=True, requires_confirmation=True, priority=10),
    ],
    S.OFFER_DECLINED: [
        admin(A.REVISE_OFFER, S.OFFER_SENT, requires_input=True, priority=1, label='Make New Offer'),
        admin(A.CLOSE_REQUEST, S.CANCELLED, priority=5),
    ],
    S.OFFER_EXPIRED: [
        admin(A.RESEND_OFFER, S.OFFER_SENT, priority=1),
        admin(A.CLOSE_REQUEST, S.CANCELLED, priority=5),
    ],

    # ── inspection ──────────────────────────────────────────────────────
    S.INSPECTION_SCHEDULED: [
        customer(A.REQUEST_RESCHEDULE, S.INSPECTION_RESCHEDULE_REQUESTED, requires_input=True, priority=5),
        customer(A.WITHDRAW, S.CANCELLED, requires_confirmation=True, priority=10),
        admin(A.REASSIGN_AGENT, S.INSPECTION_SCHEDULED, requires_input=True, priority=5),
        admin(A.CANCEL, S.CANCELLED, requires_input=True, requires_confirmation=True, priority=10),
        agent(A.START_INSPECTION, S.INSPECTION_IN_PROGRESS, priority=1),
        agent(A.REPORT_CUSTOMER_ABSENT, S.CUSTOMER_NOT_AVAILABLE, requires_input=True, priority=5),
        agent(A.DECLINE_INSPECTION, S.AGENT_NOT_AVAILABLE, requires_input=True, priority=10),
    ],
    S.INSPECTION_RESCHEDULE_REQUESTED: [
        customer(A.WITHDRAW, S.CANCELLED, requires_confirmation=True, priority=10),
        admin(A.REASSIGN_AGENT, S.INSPECTION_SCHEDULED, requires_input=True, priority=1,
              label='Reschedule Inspection'),
        admin(A.CANCEL, S.CANCELLED, requires_input=True, requires_confirmation=True, priority=10),
    ],
    S.INSPECTION_IN_PROGRESS: [
        agent(A.COMPLETE_INSPECTION, S.INSPECTION_COMPLETED, requires_input=True, priority=1),
        agent(A.REPORT_ASSET_MISMATCH, S.ASSET_MISMATCH, requires_input=True, priority=5),
    ],
    S.INSPECTION_COMPLETED: [
        agent(A.APPROVE, S.APPROVED, priority=1),
        agent(A.REJECT, S.REJECTED, requires_input=True, requires_confirmation=True, priority=2),
        admin(A.FINALIZE, S.PROCESSING_LOAN, requires_confirmation=True, priority=3),
    ],
    S.CUSTOMER_NOT_AVAILABLE: [
        customer(A.REQUEST_RESCHEDULE, S.INSPECTION_SCHEDULED, requires_input=True, priority=1,
                 label='Reschedule Inspection'),
        admin(A.RESCHEDULE_INSPECTION, S.INSPECTION_SCHEDULED, requires_input=True, priority=1),
        admin(A.REJECT, S.REJECTED, requires_input=True, requires_confirmation=True, priority=5,
              label='Reject (Too Many No-Shows)'),
        admin(A.CANCEL, S.CANCELLED, requires_input=True, priority=10),
    ],
    S.ASSET_MISMATCH: [
        customer(A.PROVIDE_EXPLANATION, S.ASSET_MISMATCH, requires_input=True, priority=5),
        admin(A.REVISE_OFFER, S.OFFER_SENT, requires_input=True, priority=1, label='Revise Offer (Lower Amount)'),
        admin(A.REJECT, S.REJECTED, requires_input=True, requires_confirmation=True, priority=2),
        admin(A.RESCHEDULE_INSPECTION, S.INSPECTION_SCHEDULED, requires_input=True, priority=5),
    ],
    S.AGENT_NOT_AVAILABLE: [
        admin(A.REASSIGN_AGENT, S.INSPECTION_SCHEDULED, requires_input=True, priority=1,
              label='Reassign to New Agent'),
        admin(A.CANCEL, S.CANCELLED, requires_input=True, priority=10),
    ],

    # ── approval & documentation ────────────────────────────────────────
    S.APPROVED: [
        admin(A.FINALIZE, S.PROCESSING_LOAN, requires_confirmation=True, priority=3),
        system(A.REQUEST_SIGNATURE, S.PENDING_SIGNATURE, priority=1,
               description='Moves approved requests to the signature stage'),
    ],
    S.PENDING_SIGNATURE: [
        customer(A.SIGN_AGREEMENT, S.PENDING_BANK_DETAILS, priority=1),
        customer(A.REFUSE_SIGNATURE, S.CANCELLED, requires_input=True, requires_confirmation=True, priority=10),
        system(A.EXPIRE_REQUEST, S.CANCELLED, description='Cancels when the agreement is not signed in time'),
    ],
    S.PENDING_BANK_DETAILS: [
        customer(A.SUBMIT_BANK_DETAILS, S.BANK_DETAILS_SUBMITTED, requires_input=True, priority=1),
        system(A.EXPIRE_REQUEST, S.CANCELLED, description='Cancels when bank details are not submitted in time'),
    ],

    # ── loan processing & disbursement ──────────────────────────────────
    S.BANK_DETAILS_SUBMITTED: [
        admin(A.FINALIZE, S.PROCESSING_LOAN, requires_confirmation=True, priority=1, label='Process Loan'),
        admin(A.REQUEST_DIFFERENT_DETAILS, S.PENDING_BANK_DETAILS, requires_input=True, priority=5),
    ],
    S.PROCESSING_LOAN: [
        admin(A.TRANSFER_AMOUNT, S.TRANSFERRING_AMOUNT, requires_input=True, priority=1),
    ],
    S.TRANSFERRING_AMOUNT: [
        admin(A.CONFIRM_TRANSFER, S.AMOUNT_DISBURSED, requires_input=True, priority=1,
              label='Upload Proof & Confirm'),
        admin(A.REPORT_TRANSFER_FAILURE, S.TRANSFER_FAILED, requires_input=True, priority=5),
    ],
    S.TRANSFER_FAILED: [
        customer(A.UPDATE_BANK_DETAILS, S.BANK_DETAILS_SUBMITTED, requires_input=True, priority=1),
        admin(A.CANCEL, S.CANCELLED, requires_input=True, requires_confirmation=True, priority=10),
    ],
    S.AMOUNT_DISBURSED: [
        admin(A.ACTIVATE_LOAN, S.ACTIVE, requires_input=True, priority=1),
    ],

    # ── active loan ─────────────────────────────────────────────────────
    S.ACTIVE: [
        admin(A.MARK_OVERDUE, S.PAYMENT_OVERDUE, priority=5),
        admin(A.MARK_COMPLETED, S.COMPLETED, requires_confirmation=True, priority=10),
        system(A.FLAG_OVERDUE, S.PAYMENT_OVERDUE, description='Marks overdue when an EMI is missed'),
        system(A.CLOSE_LOAN, S.COMPLETED, description='Completes when all EMIs are paid'),
    ],
    S.PAYMENT_OVERDUE: [
        admin(A.MARK_PAID, S.ACTIVE, requires_input=True, priority=1),
        admin(A.MARK_DEFAULTED, S.DEFAULTED, requires_input=True, requires_confirmation=True, priority=5),
        system(A.DEFAULT_LOAN, S.DEFAULTED, description='Defaults after repeated missed EMIs'),
    ],
    S.DEFAULTED: [
        admin(A.MARK_SETTLED, S.COMPLETED, requires_input=True, requires_confirmation=True, priority=5),
    ],
    S.COMPLETED: [],

    # ── terminal ────────────────────────────────────────────────────────
    S.REJECTED: [
        admin(A.REOPEN, S.UNDER_REVIEW, requires_input=True, priority=10),
    ],
    S.CANCELLED: [
        admin(A.REOPEN, S.UNDER_REVIEW, requires_input=True, priority=10),
    ],
}


def _build(matrix):
    table = {}
    for source, entries in matrix.items():
        actions = []
        for family, action, target, options in entries:
            options = dict(options)
            label = options.pop('label', None) or ActionType(action).label
            actions.append(WorkflowAction(
                id=ActionType(action).value,
                label=label,
                source=RequestStatus(source).value,
                target_status=RequestStatus(target).value,
                family=ActionFamily(family).value,
                **options,
            ))
        table[RequestStatus(source).value] = tuple(actions)
    return table


WORKFLOW_MATRIX = _build(_MATRIX)

STATES = frozenset(RequestStatus.values)

# Pre-disbursement states a loan may be finalized from
FINALIZE_FROM_STATUSES = frozenset(
    source for source, actions in WORKFLOW_MATRIX.items()
    if any(action.id == ActionType.FINALIZE for action in actions)
)

# Actions whose side effect is storing fresh offer terms and a new EMI snapshot
OFFER_ACTIONS = frozenset({ActionType.CREATE_OFFER, ActionType.REVISE_OFFER})


# =============================================================================
# LOOKUPS
# =============================================================================

def ensure_known_state(status):
    if status not in STATES:
        raise UnknownStateError(status)
    return RequestStatus(status)


def is_known_action(action_id):
    return action_id in ActionType.values


def transitions_from(status):
    """All transitions out of ``status``, every family, in table order"""
    return WORKFLOW_MATRIX[ensure_known_state(status)]


def find_transition(status, action_id, family):
    for action in transitions_from(status):
        if action.id == action_id and action.family == family:
            return action
    return None


def has_action(status, action_id):
    return any(action.id == action_id for action in transitions_from(status))


def is_declared_edge(source, target):
    return any(action.target_status == target for action in transitions_from(source))


def targets_for(action_id):
    """Every status the action can lead to, across all sources"""
    return frozenset(
        action.target_status
        for actions in WORKFLOW_MATRIX.values()
        for action in actions
        if action.id == action_id
    )


def state_description(status):
    return STATE_DESCRIPTIONS.get(status, status)
