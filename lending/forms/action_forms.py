"""
Action Input Forms
==================

One form per kind of action input. The executor binds the caller's input to
the form registered for the action and rejects the action if it is invalid;
``cleaned_data`` is what the side effects and the history metadata see.
"""

from decimal import Decimal

from django import forms
from django.utils import timezone

from lending.constants import ActionType, Role
from lending.exceptions import InvalidOfferTermsError
from lending.models import User
from lending.utils.emi import compute_schedule


class ActionForm(forms.Form):
    """Base form; every action form knows the request it acts on"""

    def __init__(self, *args, **kwargs):
        self.loan_request = kwargs.pop('loan_request', None)
        super().__init__(*args, **kwargs)

    def error_dict(self):
        return {field: list(errors) for field, errors in self.errors.items()}


class ReasonForm(ActionForm):
    """Rejections, cancellations, refusals and failure reports"""

    reason = forms.CharField(max_length=1000, strip=True)


class ExplanationForm(ActionForm):
    """Additional information or an explanation from the customer"""

    notes = forms.CharField(max_length=4000, strip=True)


class OfferTermsForm(ActionForm):
    """
    Offer amount, tenure and rate

    Runs the EMI engine in ``clean`` so that an accepted form always carries
    the schedule it will be stored with (``cleaned_data['preview']``).
    """

    amount = forms.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    tenure_months = forms.IntegerField(min_value=1)
    interest_rate = forms.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'))
    first_payment_date = forms.DateField(required=False)

    def clean(self):
        cleaned_data = super().clean()
        amount = cleaned_data.get('amount')
        tenure = cleaned_data.get('tenure_months')
        rate = cleaned_data.get('interest_rate')

        if amount is not None and tenure is not None and rate is not None:
            try:
                cleaned_data['preview'] = compute_schedule(
                    amount, rate, tenure, cleaned_data.get('first_payment_date')
                )
            except InvalidOfferTermsError as exc:
                for field, messages in exc.errors.items():
                    for message in messages:
                        self.add_error(field, message)

        return cleaned_data


class AgentAssignmentForm(ActionForm):
    """Agent to send for inspection, optionally with a scheduled time"""

    agent_id = forms.ModelChoiceField(queryset=User.objects.all())
    scheduled_at = forms.DateTimeField(required=False)

    def clean_agent_id(self):
        agent = self.cleaned_data['agent_id']
        if not agent.is_active or not agent.has_role(Role.AGENT):
            raise forms.ValidationError('Selected user is not an active agent')
        if self.loan_request and not agent.serves_district(self.loan_request.district):
            raise forms.ValidationError(
                f"Agent does not serve district {self.loan_request.district}"
            )
        return agent

    def clean_scheduled_at(self):
        scheduled_at = self.cleaned_data.get('scheduled_at')
        if scheduled_at and scheduled_at < timezone.now():
            raise forms.ValidationError('Inspection cannot be scheduled in the past')
        return scheduled_at


class RescheduleForm(ActionForm):
    """New inspection time, proposed by the customer or set by an admin"""

    scheduled_at = forms.DateTimeField()
    reason = forms.CharField(max_length=1000, required=False)

    def clean_scheduled_at(self):
        scheduled_at = self.cleaned_data['scheduled_at']
        if scheduled_at < timezone.now():
            raise forms.ValidationError('Inspection cannot be scheduled in the past')
        return scheduled_at


class InspectionReportForm(ActionForm):
    """Agent's findings at the end of an inspection"""

    notes = forms.CharField(max_length=4000)
    verified_value = forms.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False
    )


class BankDetailsForm(ActionForm):
    """Where the loan amount should be sent"""

    METHOD_CHOICES = [
        ('upi', 'UPI'),
        ('bank_transfer', 'Bank Transfer'),
    ]

    method = forms.ChoiceField(choices=METHOD_CHOICES)
    upi_id = forms.CharField(max_length=100, required=False)
    account_holder = forms.CharField(max_length=200, required=False)
    account_number = forms.CharField(max_length=34, required=False)
    ifsc_code = forms.CharField(max_length=11, required=False)

    def clean(self):
        cleaned_data = super().clean()
        method = cleaned_data.get('method')

        if method == 'upi' and not cleaned_data.get('upi_id'):
            self.add_error('upi_id', 'UPI ID is required for UPI payouts')

        if method == 'bank_transfer':
            if not cleaned_data.get('account_holder'):
                self.add_error('account_holder', 'Account holder name is required')
            if not cleaned_data.get('account_number'):
                self.add_error('account_number', 'Account number is required')
            if not cleaned_data.get('ifsc_code'):
                self.add_error('ifsc_code', 'IFSC code is required for bank transfers')

        return cleaned_data

    def payout_details(self):
        fields = ['method', 'upi_id'] if self.cleaned_data['method'] == 'upi' else [
            'method', 'account_holder', 'account_number', 'ifsc_code'
        ]
        return {field: self.cleaned_data[field] for field in fields}


class TransferForm(ActionForm):
    """Start of a payout"""

    reference = forms.CharField(max_length=100)
    notes = forms.CharField(max_length=1000, required=False)


class PaymentReferenceForm(ActionForm):
    """Proof of a completed transfer or of a received EMI payment"""

    reference = forms.CharField(max_length=100)
    emi_number = forms.IntegerField(min_value=1, required=False)
    notes = forms.CharField(max_length=1000, required=False)


class ActivationForm(ActionForm):
    """Date the first EMI falls due once the money has been received"""

    first_emi_date = forms.DateField()

    def clean_first_emi_date(self):
        first_emi_date = self.cleaned_data['first_emi_date']
        if first_emi_date < timezone.localdate():
            raise forms.ValidationError('First EMI date cannot be in the past')
        return first_emi_date


class SettlementForm(ActionForm):
    """Negotiated settlement closing a defaulted loan"""

    settlement_amount = forms.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    reference = forms.CharField(max_length=100)
    notes = forms.CharField(max_length=1000, required=False)


# =============================================================================
# ACTION → FORM
# =============================================================================

ACTION_FORMS = {
    # customer
    ActionType.SUBMIT_INFO: ExplanationForm,
    ActionType.DECLINE_OFFER: ReasonForm,
    ActionType.REQUEST_RESCHEDULE: RescheduleForm,
    ActionType.PROVIDE_EXPLANATION: ExplanationForm,
    ActionType.REFUSE_SIGNATURE: ReasonForm,
    ActionType.SUBMIT_BANK_DETAILS: BankDetailsForm,
    ActionType.UPDATE_BANK_DETAILS: BankDetailsForm,

    # admin
    ActionType.REQUEST_MORE_INFO: ReasonForm,
    ActionType.CREATE_OFFER: OfferTermsForm,
    ActionType.REVISE_OFFER: OfferTermsForm,
    ActionType.CANCEL_OFFER: ReasonForm,
    ActionType.ASSIGN_AGENT: AgentAssignmentForm,
    ActionType.REASSIGN_AGENT: AgentAssignmentForm,
    ActionType.RESCHEDULE_INSPECTION: RescheduleForm,
    ActionType.REQUEST_DIFFERENT_DETAILS: ReasonForm,
    ActionType.TRANSFER_AMOUNT: TransferForm,
    ActionType.CONFIRM_TRANSFER: PaymentReferenceForm,
    ActionType.REPORT_TRANSFER_FAILURE: ReasonForm,
    ActionType.ACTIVATE_LOAN: ActivationForm,
    ActionType.MARK_PAID: PaymentReferenceForm,
    ActionType.MARK_DEFAULTED: ReasonForm,
    ActionType.MARK_SETTLED: SettlementForm,
    ActionType.REOPEN: ReasonForm,
    ActionType.CANCEL: ReasonForm,
    ActionType.REJECT: ReasonForm,

    # agent
    ActionType.COMPLETE_INSPECTION: InspectionReportForm,
    ActionType.REPORT_CUSTOMER_ABSENT: ReasonForm,
    ActionType.REPORT_ASSET_MISMATCH: ReasonForm,
    ActionType.DECLINE_INSPECTION: ReasonForm,
}


def form_for(action_id, data, loan_request=None):
    """Bound form for the action's input, or None if the action takes none"""
    form_class = ACTION_FORMS.get(action_id)
    if form_class is None:
        return None
    return form_class(data=data or {}, loan_request=loan_request)
