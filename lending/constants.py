"""
Lending Constants
=================

Closed enumerations shared by the registry, the models and the executor.
Every persisted status and every action id must be a member of one of these.
"""

from django.db import models


class RequestStatus(models.TextChoices):
    # submission & review
    PENDING = 'PENDING', 'Pending'
    UNDER_REVIEW = 'UNDER_REVIEW', 'Under Review'
    MORE_INFO_REQUIRED = 'MORE_INFO_REQUIRED', 'More Info Required'

    # offer & negotiation
    OFFER_SENT = 'OFFER_SENT', 'Offer Sent'
    OFFER_ACCEPTED = 'OFFER_ACCEPTED', 'Offer Accepted'
    OFFER_DECLINED = 'OFFER_DECLINED', 'Offer Declined'
    OFFER_EXPIRED = 'OFFER_EXPIRED', 'Offer Expired'

    # inspection
    INSPECTION_SCHEDULED = 'INSPECTION_SCHEDULED', 'Inspection Scheduled'
    INSPECTION_RESCHEDULE_REQUESTED = 'INSPECTION_RESCHEDULE_REQUESTED', 'Reschedule Requested'
    INSPECTION_IN_PROGRESS = 'INSPECTION_IN_PROGRESS', 'Inspection In Progress'
    INSPECTION_COMPLETED = 'INSPECTION_COMPLETED', 'Inspection Completed'
    CUSTOMER_NOT_AVAILABLE = 'CUSTOMER_NOT_AVAILABLE', 'Customer Not Available'
    ASSET_MISMATCH = 'ASSET_MISMATCH', 'Asset Mismatch'
    AGENT_NOT_AVAILABLE = 'AGENT_NOT_AVAILABLE', 'Agent Not Available'

    # approval & documentation
    APPROVED = 'APPROVED', 'Approved'
    PENDING_SIGNATURE = 'PENDING_SIGNATURE', 'Pending Signature'
    PENDING_BANK_DETAILS = 'PENDING_BANK_DETAILS', 'Pending Bank Details'

    # loan processing & disbursement
    BANK_DETAILS_SUBMITTED = 'BANK_DETAILS_SUBMITTED', 'Bank Details Submitted'
    PROCESSING_LOAN = 'PROCESSING_LOAN', 'Processing Loan'
    TRANSFERRING_AMOUNT = 'TRANSFERRING_AMOUNT', 'Transferring Amount'
    TRANSFER_FAILED = 'TRANSFER_FAILED', 'Transfer Failed'
    AMOUNT_DISBURSED = 'AMOUNT_DISBURSED', 'Amount Disbursed'

    # active loan
    ACTIVE = 'ACTIVE', 'Active'
    PAYMENT_OVERDUE = 'PAYMENT_OVERDUE', 'Payment Overdue'
    DEFAULTED = 'DEFAULTED', 'Defaulted'
    COMPLETED = 'COMPLETED', 'Completed'

    # terminal
    REJECTED = 'REJECTED', 'Rejected'
    CANCELLED = 'CANCELLED', 'Cancelled'


class Role(models.TextChoices):
    CUSTOMER = 'CUSTOMER', 'Customer'
    DISTRICT_ADMIN = 'DISTRICT_ADMIN', 'District Admin'
    SUPER_ADMIN = 'SUPER_ADMIN', 'Super Admin'
    AGENT = 'AGENT', 'Agent'
    # never stored on a user; used for actor-less automated transitions
    SYSTEM = 'SYSTEM', 'System'


STORED_ROLES = frozenset({Role.CUSTOMER, Role.DISTRICT_ADMIN, Role.SUPER_ADMIN, Role.AGENT})


class ActionType(models.TextChoices):
    # customer
    WITHDRAW = 'withdraw', 'Withdraw Request'
    SUBMIT_INFO = 'submit-info', 'Submit Additional Info'
    ACCEPT_OFFER = 'accept-offer', 'Accept Offer'
    DECLINE_OFFER = 'decline-offer', 'Decline Offer'
    REQUEST_RESCHEDULE = 'request-reschedule', 'Request Reschedule'
    PROVIDE_EXPLANATION = 'provide-explanation', 'Provide Explanation'
    SIGN_AGREEMENT = 'sign-agreement', 'Sign Agreement'
    REFUSE_SIGNATURE = 'refuse-signature', 'Refuse to Sign'
    SUBMIT_BANK_DETAILS = 'submit-bank-details', 'Submit Bank Details'
    UPDATE_BANK_DETAILS = 'update-bank-details', 'Update Bank Details'

    # admin
    START_REVIEW = 'start-review', 'Start Review'
    REQUEST_MORE_INFO = 'request-more-info', 'Request More Info'
    RESUME_REVIEW = 'resume-review', 'Resume Review'
    CREATE_OFFER = 'create-offer', 'Create Offer'
    REVISE_OFFER = 'revise-offer', 'Revise Offer'
    RESEND_OFFER = 'resend-offer', 'Resend Offer'
    CANCEL_OFFER = 'cancel-offer', 'Cancel Offer'
    ASSIGN_AGENT = 'assign-agent', 'Assign Agent'
    REASSIGN_AGENT = 'reassign-agent', 'Reassign Agent'
    RESCHEDULE_INSPECTION = 'reschedule-inspection', 'Reschedule Inspection'
    FINALIZE = 'finalize', 'Finalize Loan'
    REQUEST_DIFFERENT_DETAILS = 'request-different-details', 'Request Different Details'
    TRANSFER_AMOUNT = 'transfer-amount', 'Transfer Amount'
    CONFIRM_TRANSFER = 'confirm-transfer', 'Confirm Transfer'
    REPORT_TRANSFER_FAILURE = 'report-transfer-failure', 'Transfer Failed'
    ACTIVATE_LOAN = 'activate-loan', 'Create EMI Schedule & Activate'
    MARK_OVERDUE = 'mark-overdue', 'Mark Overdue'
    MARK_PAID = 'mark-paid', 'Mark as Paid'
    MARK_DEFAULTED = 'mark-defaulted', 'Mark as Defaulted'
    MARK_SETTLED = 'mark-settled', 'Mark as Settled'
    MARK_COMPLETED = 'mark-completed', 'Mark Completed'
    CLOSE_REQUEST = 'close-request', 'Close Request'
    REOPEN = 'reopen', 'Reopen Request'
    CANCEL = 'cancel', 'Cancel'
    REJECT = 'reject', 'Reject'

    # agent
    START_INSPECTION = 'start-inspection', 'Start Inspection'
    COMPLETE_INSPECTION = 'complete-inspection', 'Complete Inspection'
    REPORT_CUSTOMER_ABSENT = 'report-customer-absent', 'Customer Not Available'
    REPORT_ASSET_MISMATCH = 'report-asset-mismatch', 'Asset Mismatch'
    DECLINE_INSPECTION = 'decline-inspection', "Can't Make It"
    APPROVE = 'approve', 'Approve'

    # system
    EXPIRE_OFFER = 'expire-offer', 'Expire Offer'
    REQUEST_SIGNATURE = 'request-signature', 'Request Signature'
    EXPIRE_REQUEST = 'expire-request', 'Auto-cancel'
    FLAG_OVERDUE = 'flag-overdue', 'Auto Mark Overdue'
    CLOSE_LOAN = 'close-loan', 'Auto Complete'
    DEFAULT_LOAN = 'default-loan', 'Auto Default'


class ActionFamily(models.TextChoices):
    CUSTOMER = 'customer', 'Customer'
    ADMIN = 'admin', 'Admin'
    AGENT = 'agent', 'Agent'
    SYSTEM = 'system', 'System'


# Role -> the single action family it may act in. No role inherits another's family.
ROLE_FAMILY = {
    Role.CUSTOMER: ActionFamily.CUSTOMER,
    Role.DISTRICT_ADMIN: ActionFamily.ADMIN,
    Role.SUPER_ADMIN: ActionFamily.ADMIN,
    Role.AGENT: ActionFamily.AGENT,
    Role.SYSTEM: ActionFamily.SYSTEM,
}


class LoanStatus(models.TextChoices):
    PROCESSING = 'PROCESSING', 'Processing'
    ACTIVE = 'ACTIVE', 'Active'
    COMPLETED = 'COMPLETED', 'Completed'
    DEFAULTED = 'DEFAULTED', 'Defaulted'


class EMIStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    PAID = 'PAID', 'Paid'
    OVERDUE = 'OVERDUE', 'Overdue'
    DEFAULTED = 'DEFAULTED', 'Defaulted'


# Request history action tags that are not workflow transitions
HISTORY_REQUEST_SUBMITTED = 'request-submitted'
HISTORY_CORRECTION = 'correction'
